"""Tests for portfolio (custody contract) operations."""

from unittest.mock import AsyncMock

import pytest
from fakes import ACCOUNT, TKN, USDC, FakeClock, FakeTokens, FakeTracker

from trader.alerts.events import EventRecorder
from trader.core.errors import InsufficientBalance, RejectReason, ValidationRejected
from trader.core.types import AutoTradingConfig, PortfolioInfo
from trader.portfolio.service import PortfolioService
from trader.risk.session import SessionState

PORTFOLIO = "0x" + "dd" * 20


class FakePortfolio:
    def __init__(self, approved: set[str] | None = None, owner: str = ACCOUNT) -> None:
        self.approved = {t.lower() for t in (approved or {USDC})}
        self._owner = owner
        self.held: dict[str, int] = {}
        self.deposit = AsyncMock(return_value="0xdeposit")
        self.withdraw = AsyncMock(return_value="0xwithdraw")
        self.create_portfolio = AsyncMock(return_value="0xcreate")
        self.update_auto_trading = AsyncMock(return_value="0xauto")
        self.add_token = AsyncMock(return_value="0xadd")

    @property
    def address(self) -> str:
        return PORTFOLIO

    async def is_token_approved(self, token: str) -> bool:
        return token.lower() in self.approved

    async def owner(self) -> str:
        return self._owner

    async def token_balance(self, user: str, token: str) -> int:
        return self.held.get(token.lower(), 0)

    async def user_portfolio(self, user: str) -> PortfolioInfo:
        return PortfolioInfo(total_value=10, risk_level=3, is_active=True)

    async def auto_trading_settings(self, user: str) -> AutoTradingConfig:
        return AutoTradingConfig(
            enabled=True, min_confidence=70, max_risk_score=50, trade_amount=5
        )


def _service(portfolio: FakePortfolio, tokens: FakeTokens, dry_run: bool = False):
    session = SessionState(now_fn=FakeClock())
    service = PortfolioService(
        portfolio, tokens, FakeTracker(), EventRecorder(session), dry_run=dry_run
    )
    return service, session


class TestPortfolioService:
    @pytest.mark.asyncio
    async def test_deposit_grants_exact_allowance_first(self):
        tokens = FakeTokens()
        tokens.set_balance(USDC, ACCOUNT, 1_000)
        portfolio = FakePortfolio()
        service, session = _service(portfolio, tokens)

        assert await service.deposit(USDC, 400) == "0xdeposit"

        assert tokens.approvals == [(USDC, PORTFOLIO, 400)]
        portfolio.deposit.assert_awaited_once_with(USDC, 400)
        assert session.events[0].level == "success"

    @pytest.mark.asyncio
    async def test_deposit_requires_approved_token(self):
        tokens = FakeTokens()
        tokens.set_balance(TKN, ACCOUNT, 1_000)
        service, session = _service(FakePortfolio(), tokens)

        with pytest.raises(ValidationRejected) as exc_info:
            await service.deposit(TKN, 400)

        assert exc_info.value.reason is RejectReason.TOKEN_NOT_WHITELISTED
        assert session.events[0].code == "TokenNotWhitelisted"

    @pytest.mark.asyncio
    async def test_deposit_checks_balance(self):
        service, _ = _service(FakePortfolio(), FakeTokens())

        with pytest.raises(InsufficientBalance):
            await service.deposit(USDC, 1)

    @pytest.mark.asyncio
    async def test_dry_run_deposit_sends_nothing(self):
        tokens = FakeTokens()
        tokens.set_balance(USDC, ACCOUNT, 1_000)
        portfolio = FakePortfolio()
        service, _ = _service(portfolio, tokens, dry_run=True)

        assert await service.deposit(USDC, 400) is None

        assert tokens.approvals == []
        portfolio.deposit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_withdraw_checks_custody_balance(self):
        portfolio = FakePortfolio()
        portfolio.held[USDC.lower()] = 100
        service, _ = _service(portfolio, FakeTokens())

        with pytest.raises(InsufficientBalance):
            await service.withdraw(USDC, 101)
        assert await service.withdraw(USDC, 100) == "0xwithdraw"

    @pytest.mark.asyncio
    async def test_create_portfolio_risk_range(self):
        portfolio = FakePortfolio()
        service, _ = _service(portfolio, FakeTokens())

        with pytest.raises(ValueError):
            await service.create_portfolio(11)
        assert await service.create_portfolio(5) == "0xcreate"

    @pytest.mark.asyncio
    async def test_reads(self):
        service, _ = _service(FakePortfolio(), FakeTokens())

        info = await service.get_portfolio()
        settings = await service.load_auto_trading_settings()

        assert info.is_active and info.risk_level == 3
        assert settings.trade_amount == 5
        assert await service.get_token_balance(USDC) == 0

    @pytest.mark.asyncio
    async def test_update_auto_trading(self):
        portfolio = FakePortfolio()
        service, _ = _service(portfolio, FakeTokens())
        config = AutoTradingConfig(
            enabled=False, min_confidence=80, max_risk_score=30, trade_amount=1
        )

        assert await service.update_auto_trading(config) == "0xauto"
        portfolio.update_auto_trading.assert_awaited_once_with(config)


class TestEnsureTokenApproved:
    @pytest.mark.asyncio
    async def test_already_approved(self):
        portfolio = FakePortfolio()
        service, _ = _service(portfolio, FakeTokens())

        assert await service.ensure_token_approved(USDC) is None
        portfolio.add_token.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_owner_adds_token(self):
        portfolio = FakePortfolio(owner=ACCOUNT.upper().replace("0X", "0x"))
        service, _ = _service(portfolio, FakeTokens())

        assert await service.ensure_token_approved(TKN) == "0xadd"

    @pytest.mark.asyncio
    async def test_non_owner_is_rejected(self):
        portfolio = FakePortfolio(owner="0x" + "ee" * 20)
        service, _ = _service(portfolio, FakeTokens())

        with pytest.raises(ValidationRejected):
            await service.ensure_token_approved(TKN)
        portfolio.add_token.assert_not_awaited()
