"""Trade executor: balance, allowance, gas, submission and confirmation."""

import asyncio

import structlog

from ..alerts.events import EventRecorder
from ..core.errors import (
    InsufficientBalance,
    InsufficientGasFunds,
    RejectReason,
    TradeError,
    TransactionFailed,
    ValidationRejected,
)
from ..core.interfaces import (
    AllowanceStrategy,
    SwapTarget,
    TokenClient,
    TransactionTracker,
)
from ..core.types import TradeRequest, TxResult
from ..core.units import apply_gas_multiplier
from ..quoting.classify import classify_execution_error
from ..risk.session import SessionState

logger = structlog.get_logger(__name__)


class TradeExecutor:
    """Runs a validated trade request against the chain.

    A request is submitted at most once. Failures are classified and
    recorded, and never advance the cooldown.
    """

    def __init__(
        self,
        tokens: TokenClient,
        tracker: TransactionTracker,
        target: SwapTarget,
        allowance: AllowanceStrategy,
        session: SessionState,
        recorder: EventRecorder,
        gas_multiplier_pct: int = 120,
        confirmation_timeout: float = 180.0,
        dry_run: bool = False,
    ) -> None:
        self.tokens = tokens
        self.tracker = tracker
        self.target = target
        self.allowance = allowance
        self.session = session
        self.recorder = recorder
        self.gas_multiplier_pct = gas_multiplier_pct
        self.confirmation_timeout = confirmation_timeout
        self.dry_run = dry_run
        self._pending: set[asyncio.Task] = set()

        logger.info(
            "Trade executor initialized",
            target=type(target).__name__,
            allowance=type(allowance).__name__,
            dry_run=dry_run,
        )

    @property
    def pending(self) -> int:
        """Number of submitted transactions still awaiting confirmation."""
        return len(self._pending)

    async def execute(self, request: TradeRequest) -> TxResult:
        token = request.token_out
        try:
            self._check_request(request)
            owner = self.tracker.account
            await self._check_balance(request, owner)

            if self.dry_run:
                return await self._simulate(request, owner)

            approvals = await self._ensure_allowance(request, owner)
            gas_limit = await self._estimate_gas(request, owner)
            await self._check_gas_funds(owner, gas_limit, token)
            tx_hash = await self._submit(request, gas_limit)
        except TradeError as e:
            await self.recorder.failure(e, token)
            raise
        except Exception as e:
            error = classify_execution_error(e, token)
            await self.recorder.failure(error, token)
            raise error from e

        await self.recorder.emit(
            "Waiting for transaction confirmation...", token=token, tx_hash=tx_hash
        )

        # The confirmation outlives a cancelled caller so the cooldown and
        # the outcome are still recorded.
        confirmation = asyncio.ensure_future(
            self._confirm(request, tx_hash, gas_limit, approvals)
        )
        self._pending.add(confirmation)
        confirmation.add_done_callback(self._confirmation_done)
        try:
            return await asyncio.shield(confirmation)
        except asyncio.CancelledError:
            logger.warning(
                "Trade flow cancelled, tracking transaction to completion",
                tx_hash=tx_hash,
            )
            raise

    async def drain(self) -> None:
        """Wait for every detached confirmation to settle."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _confirmation_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if not task.cancelled():
            # Retrieve so a detached failure is not reported as unhandled;
            # it was already recorded by _confirm.
            task.exception()

    def _check_request(self, request: TradeRequest) -> None:
        quote = request.quote
        matches = (
            quote.token_in.lower() == request.token_in.lower()
            and quote.token_out.lower() == request.token_out.lower()
            and quote.amount_in == request.amount_in
        )
        if not matches or quote.amount_out <= 0:
            raise ValidationRejected(
                RejectReason.QUOTE_MISMATCH,
                "Trade request does not match its quote",
                token=request.token_out,
            )

    async def _check_balance(self, request: TradeRequest, owner: str) -> None:
        try:
            balance = await self.tokens.balance_of(request.token_in, owner)
        except Exception as e:
            raise classify_execution_error(e, request.token_out) from e
        if balance < request.amount_in:
            raise InsufficientBalance(request.token_in, balance, request.amount_in)

    async def _ensure_allowance(self, request: TradeRequest, owner: str) -> list[str]:
        try:
            approvals = await self.allowance.ensure(
                request.token_in, owner, self.target.spender, request.amount_in
            )
        except Exception as e:
            raise classify_execution_error(e, request.token_out) from e
        for approval_tx in approvals:
            await self.recorder.emit(
                "Token approved", token=request.token_in, tx_hash=approval_tx
            )
        return approvals

    async def _estimate_gas(self, request: TradeRequest, owner: str) -> int:
        try:
            estimate = await self.target.estimate_gas(request, owner)
        except Exception as e:
            raise classify_execution_error(e, request.token_out) from e
        gas_limit = apply_gas_multiplier(estimate, self.gas_multiplier_pct)
        logger.debug("Gas estimated", estimate=estimate, gas_limit=gas_limit)
        return gas_limit

    async def _check_gas_funds(self, owner: str, gas_limit: int, token: str) -> None:
        gas_price = await self.tracker.gas_price()
        native = await self.tracker.native_balance(owner)
        required = gas_limit * gas_price
        if native < required:
            raise InsufficientGasFunds(
                f"Native balance {native} below gas cost {required}", token=token
            )

    async def _submit(self, request: TradeRequest, gas_limit: int) -> str:
        try:
            tx_hash = await self.target.submit(request, gas_limit)
        except Exception as e:
            raise classify_execution_error(e, request.token_out) from e
        logger.info(
            "Swap submitted",
            tx_hash=tx_hash,
            amount_in=request.amount_in,
            min_amount_out=request.min_amount_out,
            fee=int(request.fee_tier),
        )
        return tx_hash

    async def _simulate(self, request: TradeRequest, owner: str) -> TxResult:
        token = request.token_out
        gas_limit = 0
        if await self.allowance.is_sufficient(
            request.token_in, owner, self.target.spender, request.amount_in
        ):
            gas_limit = await self._estimate_gas(request, owner)
            await self._check_gas_funds(owner, gas_limit, token)
        else:
            await self.recorder.emit(
                "Dry run: approval would be sent, gas estimation skipped",
                level="warning",
                token=token,
            )

        await self.recorder.emit(
            f"Dry run: would swap {request.amount_in} for at least "
            f"{request.min_amount_out}",
            token=token,
        )
        return TxResult(status="simulated", gas_limit=gas_limit, request=request)

    async def _confirm(
        self,
        request: TradeRequest,
        tx_hash: str,
        gas_limit: int,
        approvals: list[str],
    ) -> TxResult:
        token = request.token_out
        try:
            receipt = await self.tracker.wait_for_receipt(
                tx_hash, self.confirmation_timeout
            )
            if receipt.get("status") != 1:
                raise TransactionFailed(tx_hash, token=token)
        except Exception as e:
            error = classify_execution_error(e, token)
            if error.token is None:
                error.token = token
            await self.recorder.failure(error, token)
            if error is e:
                raise
            raise error from e

        self.session.record_trade(token)
        result = TxResult(
            status="success",
            tx_hash=tx_hash,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
            gas_limit=gas_limit,
            approval_tx_hashes=approvals,
            request=request,
        )
        await self.recorder.emit(
            "Trade executed successfully", level="success", token=token, tx_hash=tx_hash
        )
        return result
