"""Trade engine: one trade flow from validation to execution."""

import asyncio
from typing import Any

import structlog
from pydantic import ValidationError
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from ..alerts.events import EventRecorder
from ..core.errors import (
    ContractReadFailed,
    NoPoolFound,
    NoQuoteAvailable,
    RejectReason,
    TradeError,
    ValidationRejected,
)
from ..core.interfaces import (
    PredictionOracle,
    TokenClient,
    TradeContract,
    TransactionTracker,
)
from ..core.types import (
    LiquidityReport,
    Prediction,
    Quote,
    TokenRef,
    TradeSettings,
    TxResult,
)
from ..core.units import to_base_units
from ..exec.executor import TradeExecutor
from ..portfolio.service import PortfolioService
from ..quoting.cache import QuoteCache
from ..quoting.classify import classify_read_error
from ..quoting.locator import PoolLocator
from ..quoting.resolver import QuoteResolver
from ..risk.session import SessionState
from ..risk.validator import TradeValidator, build_trade_request, require

logger = structlog.get_logger(__name__)


class TradeEngine:
    """Runs trade flows in the order validate, locate, quote, re-validate, execute.

    Flows for the same token are serialized by a per-token lock. A quote is
    only ever executed against the exact tuple it was obtained for.
    """

    def __init__(
        self,
        session: SessionState,
        tokens: TokenClient,
        tracker: TransactionTracker,
        locator: PoolLocator,
        resolver: QuoteResolver,
        validator: TradeValidator,
        trade_contract: TradeContract,
        oracle: PredictionOracle,
        executor: TradeExecutor,
        recorder: EventRecorder,
        quote_token: str,
        slippage_bps: int = 500,
        cache: QuoteCache | None = None,
        portfolio: PortfolioService | None = None,
    ) -> None:
        self.session = session
        self.tokens = tokens
        self.tracker = tracker
        self.locator = locator
        self.resolver = resolver
        self.validator = validator
        self.trade_contract = trade_contract
        self.oracle = oracle
        self.executor = executor
        self.recorder = recorder
        self.quote_token = quote_token
        self.slippage_bps = slippage_bps
        self.cache = cache
        self.portfolio = portfolio

    async def _read_prediction(self, token: str) -> Prediction | None:
        try:
            return await self.oracle.get_prediction(token)
        except (ContractLogicError, BadFunctionCallOutput, ValidationError) as e:
            logger.warning("Prediction unavailable", token=token, error=str(e))
            return None

    async def _failure(self, exc: Exception, token: str) -> TradeError:
        """Classify a failed flow and record it; the caller raises the result."""
        error = classify_read_error(exc, token)
        await self.recorder.failure(error, token)
        return error

    async def fetch_prediction(self, token: str) -> Prediction | None:
        """Read the oracle and record what it says."""
        try:
            prediction = await self._read_prediction(token)
        except Exception as e:
            error = await self._failure(e, token)
            if error is e:
                raise
            raise error from e

        if prediction is None:
            await self.recorder.emit(
                "No prediction available",
                level="warning",
                token=token,
                code=RejectReason.PREDICTION_UNAVAILABLE.value,
            )
        else:
            await self.recorder.emit(
                f"Prediction: {prediction.confidence}% confidence, "
                f"{prediction.direction_label}, risk {prediction.risk_score}",
                token=token,
            )
        return prediction

    async def _locate_and_quote(
        self, token_in: str, token_out: str, amount_in: int
    ) -> Quote:
        candidates = await self.locator.locate(token_in, token_out)
        return await self.resolver.quote(candidates, token_in, token_out, amount_in)

    async def get_quote(self, token_in: str, token_out: str, amount_in: int) -> Quote:
        """Locate pools and quote an exact input amount."""
        try:
            quote = await self._locate_and_quote(token_in, token_out, amount_in)
        except Exception as e:
            error = await self._failure(e, token_out)
            if error is e:
                raise
            raise error from e
        await self.recorder.emit(
            f"Quote: {amount_in} -> {quote.amount_out} at fee {int(quote.fee_tier)} "
            f"({quote.obtained_via})",
            token=token_out,
        )
        return quote

    async def check_liquidity(
        self, token_in: str, token_out: str, amount_in: int
    ) -> LiquidityReport:
        """Report candidates, the best quote and the contract's own pool choice.

        Read-only: allowances and cooldowns are never touched, and quoting
        failures are reported rather than raised.
        """
        report = LiquidityReport(
            token_in=token_in, token_out=token_out, amount_in=amount_in
        )
        try:
            report.candidates = await self.locator.locate(token_in, token_out)
            report.quote = await self.resolver.quote(
                report.candidates, token_in, token_out, amount_in
            )
        except (NoPoolFound, NoQuoteAvailable) as e:
            report.failure = e.code
            report.hint = getattr(e, "hint", None)
            await self.recorder.emit(
                e.message, level="warning", token=token_out, code=e.code
            )
        except Exception as e:
            error = await self._failure(e, token_out)
            if error is e:
                raise
            raise error from e

        try:
            pool, fee = await self.trade_contract.find_best_pool(token_in, token_out)
        except Exception as e:
            error = classify_read_error(e, token_out)
            if not isinstance(error, ContractReadFailed):
                await self.recorder.failure(error, token_out)
                if error is e:
                    raise
                raise error from e
            logger.warning("Trade contract found no pool", error=str(e))
        else:
            report.contract_pool = pool
            report.contract_fee = fee

        logger.info(
            "Liquidity checked",
            token_in=token_in,
            token_out=token_out,
            candidates=len(report.candidates),
            amount_out=report.quote.amount_out if report.quote else None,
            failure=report.failure,
        )
        return report

    async def _whitelist(self, *tokens: str) -> dict[str, bool]:
        listed = await asyncio.gather(
            *(self.trade_contract.is_whitelisted(t) for t in tokens)
        )
        return {t.lower(): ok for t, ok in zip(tokens, listed, strict=True)}

    async def _quote_for_trade(
        self, token_in: str, token_out: str, amount_in: int
    ) -> Quote:
        if self.cache is not None:
            cached = self.cache.latest(token_in, token_out, amount_in)
            if cached is not None:
                logger.debug("Reusing cached quote", fee=int(cached.fee_tier))
                return cached
        return await self._locate_and_quote(token_in, token_out, amount_in)

    async def execute_trade(
        self, token_out: str, token_in: str | None = None
    ) -> TxResult:
        """Run one full trade flow buying token_out with the configured amount."""
        token_in = token_in or self.quote_token
        async with self.session.lock_for(token_out):
            try:
                settings = self.session.get_settings(token_out)
                if settings is None:
                    raise ValidationRejected(
                        RejectReason.TRADING_DISABLED,
                        "Token is not configured for trading",
                        token_out,
                    )

                meta_in = await self.tokens.metadata(token_in)
                whitelist = await self._whitelist(token_in, token_out)
                prediction = await self._read_prediction(token_out)

                decision = self.validator.validate(
                    token_in,
                    token_out,
                    settings,
                    prediction,
                    whitelist,
                    bypass=self.session.bypass_mode,
                    decimals=meta_in.decimals,
                )
                for warning in decision.warnings:
                    await self.recorder.emit(warning, level="warning", token=token_out)
                require(decision, token_out)

                amount_in = to_base_units(settings.trade_amount, meta_in.decimals)
                quote = await self._quote_for_trade(token_in, token_out, amount_in)
                min_trade = await self.trade_contract.min_trade_amount()
                require(
                    self.validator.validate_quote(
                        quote, token_in, token_out, amount_in, min_trade
                    ),
                    token_out,
                )
                request = build_trade_request(
                    quote, self.tracker.account, self.slippage_bps
                )
            except Exception as e:
                error = await self._failure(e, token_out)
                if error is e:
                    raise
                raise error from e

            await self.recorder.emit(
                f"Executing trade: {settings.trade_amount} {meta_in.symbol}, "
                f"min out {request.min_amount_out}",
                token=token_out,
            )
            try:
                return await self.executor.execute(request)
            finally:
                if self.cache is not None:
                    self.cache.invalidate(quote)

    def update_settings(self, token: str, **changes: Any) -> TradeSettings:
        return self.session.update_settings(token, **changes)

    async def add_token(self, address: str) -> TokenRef:
        """Onboard a token: approve it for custody and seed default settings."""
        if not Web3.is_address(address):
            raise ValueError(f"Invalid token address: {address!r}")
        if self.session.has_token(address):
            raise ValueError(f"Token already added: {address}")

        if self.portfolio is not None:
            await self.portfolio.ensure_token_approved(address)

        ref = await self.tokens.metadata(address)
        self.session.set_settings(address, TradeSettings(name=ref.symbol))
        await self.recorder.emit(f"Added token {ref.symbol}", token=ref.address)
        return ref

    def get_status(self) -> dict[str, Any]:
        return {
            "tokens": {
                token: settings.model_dump()
                for token in self.session.tokens()
                if (settings := self.session.get_settings(token)) is not None
            },
            "bypass_mode": self.session.bypass_mode,
            "dry_run": self.executor.dry_run,
            "pending_transactions": self.executor.pending,
            "recent_events": [e.message for e in list(self.session.events)[:5]],
        }
