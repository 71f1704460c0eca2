"""Portfolio (custody contract) operations."""

from collections.abc import Coroutine
from typing import Any

import structlog

from ..alerts.events import EventRecorder
from ..core.errors import InsufficientBalance, RejectReason, TradeError, ValidationRejected
from ..core.interfaces import PortfolioContract, TokenClient, TransactionTracker
from ..core.types import AutoTradingConfig, PortfolioInfo
from ..exec.allowance import DirectAllowance
from ..quoting.classify import classify_execution_error

logger = structlog.get_logger(__name__)


class PortfolioService:
    """User-facing operations on the portfolio manager contract."""

    def __init__(
        self,
        portfolio: PortfolioContract,
        tokens: TokenClient,
        tracker: TransactionTracker,
        recorder: EventRecorder,
        dry_run: bool = False,
    ) -> None:
        self.portfolio = portfolio
        self.tokens = tokens
        self.tracker = tracker
        self.recorder = recorder
        self.dry_run = dry_run
        # Deposits grant exactly the deposited amount
        self._allowance = DirectAllowance(tokens, infinite=False)

    async def _write(
        self, action: str, call: Coroutine[Any, Any, str], token: str | None = None
    ) -> str | None:
        if self.dry_run:
            call.close()
            await self.recorder.emit(f"Dry run: would {action}", token=token)
            return None
        try:
            tx_hash = await call
        except Exception as e:
            error = classify_execution_error(e, token)
            await self.recorder.failure(error, token)
            if error is e:
                raise
            raise error from e
        await self.recorder.emit(
            f"Portfolio {action} confirmed", level="success", token=token, tx_hash=tx_hash
        )
        return tx_hash

    async def create_portfolio(self, risk_level: int) -> str | None:
        if not 1 <= risk_level <= 10:
            raise ValueError("Risk level must be between 1 and 10")
        return await self._write(
            f"create portfolio with risk level {risk_level}",
            self.portfolio.create_portfolio(risk_level),
        )

    async def deposit(self, token: str, amount: int) -> str | None:
        """Deposit tokens into custody.

        The token must be approved in the portfolio manager. An allowance of
        exactly the deposited amount is granted first when needed.
        """
        if amount <= 0:
            raise ValidationRejected(
                RejectReason.INVALID_AMOUNT, "Deposit amount must be positive", token
            )
        if not await self.portfolio.is_token_approved(token):
            error = ValidationRejected(
                RejectReason.TOKEN_NOT_WHITELISTED,
                "Token is not approved in the portfolio manager",
                token,
            )
            await self.recorder.failure(error, token)
            raise error

        owner = self.tracker.account
        balance = await self.tokens.balance_of(token, owner)
        if balance < amount:
            error = InsufficientBalance(token, balance, amount)
            await self.recorder.failure(error, token)
            raise error

        if not self.dry_run:
            try:
                await self._allowance.ensure(token, owner, self.portfolio.address, amount)
            except TradeError as e:
                await self.recorder.failure(e, token)
                raise

        return await self._write(
            f"deposit {amount}", self.portfolio.deposit(token, amount), token
        )

    async def withdraw(self, token: str, amount: int) -> str | None:
        if amount <= 0:
            raise ValidationRejected(
                RejectReason.INVALID_AMOUNT, "Withdraw amount must be positive", token
            )
        held = await self.portfolio.token_balance(self.tracker.account, token)
        if held < amount:
            error = InsufficientBalance(token, held, amount)
            await self.recorder.failure(error, token)
            raise error
        return await self._write(
            f"withdraw {amount}", self.portfolio.withdraw(token, amount), token
        )

    async def get_portfolio(self, user: str | None = None) -> PortfolioInfo:
        return await self.portfolio.user_portfolio(user or self.tracker.account)

    async def get_token_balance(self, token: str, user: str | None = None) -> int:
        return await self.portfolio.token_balance(user or self.tracker.account, token)

    async def load_auto_trading_settings(
        self, user: str | None = None
    ) -> AutoTradingConfig:
        return await self.portfolio.auto_trading_settings(user or self.tracker.account)

    async def update_auto_trading(self, config: AutoTradingConfig) -> str | None:
        return await self._write(
            "update auto-trading settings", self.portfolio.update_auto_trading(config)
        )

    async def ensure_token_approved(self, token: str) -> str | None:
        """Approve a token in the portfolio manager; only its owner may."""
        if await self.portfolio.is_token_approved(token):
            return None

        owner = await self.portfolio.owner()
        if owner.lower() != self.tracker.account.lower():
            error = ValidationRejected(
                RejectReason.TOKEN_NOT_WHITELISTED,
                "Token is not approved and only the contract owner can add it",
                token,
            )
            await self.recorder.failure(error, token)
            raise error

        logger.info("Adding token to portfolio manager", token=token)
        return await self._write("approve token", self.portfolio.add_token(token), token)
