"""Tests for pipeline assembly and the command line."""

from unittest.mock import MagicMock

import pytest
from eth_account import Account
from pydantic import ValidationError

from trader.config.constants import TOKENS
from trader.config.settings import AppSettings
from trader.exec.allowance import DirectAllowance, Permit2Allowance
from trader.exec.targets import (
    RouterSwapTarget,
    TraderContractSwapTarget,
    UniversalRouterSwapTarget,
)
from trader.monitor.feed import SwapMonitor
from trader.runner.pipeline import (
    TradingPipeline,
    build_parser,
    main,
    resolve_token,
)

TEST_KEY = "0x" + "4c" * 32


def make_settings(**overrides) -> AppSettings:
    values = {
        "env": "paper",
        "rpc_url": "http://127.0.0.1:8545",
        "dry_run": True,
        "tokens": {TOKENS["WETH"].address: {"trade_amount": "0.1"}},
    }
    values.update(overrides)
    return AppSettings(**values)


class TestAssembly:
    def test_default_wiring(self):
        pipeline = TradingPipeline(make_settings(), w3=MagicMock())

        executor = pipeline.engine.executor
        assert isinstance(executor.target, RouterSwapTarget)
        assert isinstance(executor.allowance, DirectAllowance)
        assert executor.dry_run is True
        assert pipeline.components["alerts"] == []
        assert pipeline.engine.session.has_token(TOKENS["WETH"].address)

    def test_trader_contract_route(self):
        settings = make_settings(swap_route="trader_contract")

        pipeline = TradingPipeline(settings, w3=MagicMock())

        executor = pipeline.engine.executor
        assert isinstance(executor.target, TraderContractSwapTarget)
        assert isinstance(executor.allowance, DirectAllowance)

    def test_universal_router_with_permit2(self):
        settings = make_settings(swap_route="universal_router", allowance_mode="permit2")

        pipeline = TradingPipeline(settings, w3=MagicMock())

        executor = pipeline.engine.executor
        assert isinstance(executor.target, UniversalRouterSwapTarget)
        assert isinstance(executor.allowance, Permit2Allowance)
        assert executor.allowance.permit2_address == settings.permit2_address

    @pytest.mark.parametrize(
        "route, mode",
        [
            ("router", "permit2"),
            ("trader_contract", "permit2"),
            ("universal_router", "direct"),
        ],
    )
    def test_permit2_only_pairs_with_universal_router(self, route, mode):
        with pytest.raises(ValidationError, match="universal_router"):
            make_settings(swap_route=route, allowance_mode=mode)

    def test_telegram_sink_when_configured(self):
        settings = make_settings(telegram_bot_token="123:abc", telegram_admin_ids=[7])

        pipeline = TradingPipeline(settings, w3=MagicMock())

        assert len(pipeline.components["alerts"]) == 1

    def test_signer_drives_account(self):
        signer = Account.from_key(TEST_KEY)

        pipeline = TradingPipeline(make_settings(), signer=signer, w3=MagicMock())

        assert pipeline.components["client"].account == signer.address

    def test_watch_address_in_dry_run(self):
        watched = "0x" + "ab" * 20

        pipeline = TradingPipeline(make_settings(watch_address=watched), w3=MagicMock())

        assert pipeline.components["client"].account.lower() == watched

    def test_monitor_follows_configured_pairs(self):
        pipeline = TradingPipeline(make_settings(monitor_max_trades=10), w3=MagicMock())

        monitor = pipeline.components["monitor"]
        assert isinstance(monitor, SwapMonitor)
        assert [p.name for p in monitor.pairs] == ["AERO/USDC"]
        assert monitor.reader is pipeline.components["client"]

    @pytest.mark.asyncio
    async def test_run_monitor_until_stopped(self):
        pipeline = TradingPipeline(make_settings(), w3=MagicMock())
        monitor = MagicMock(spec=SwapMonitor)
        pipeline.components["monitor"] = monitor

        pipeline.request_stop()
        await pipeline.run_monitor()

        monitor.start.assert_called_once()
        monitor.stop.assert_awaited_once()


class TestLiveSafety:
    def test_live_requires_signer(self):
        with pytest.raises(ValueError, match="requires a signer"):
            TradingPipeline(make_settings(dry_run=False), w3=MagicMock())

    def test_live_rejects_high_slippage(self):
        settings = make_settings(dry_run=False, private_key=TEST_KEY, slippage_bps=1500)

        with pytest.raises(ValueError, match="exceeds 10% limit"):
            TradingPipeline(settings, w3=MagicMock())

    def test_high_slippage_with_override(self):
        settings = make_settings(
            dry_run=False,
            private_key=TEST_KEY,
            slippage_bps=1500,
            unsafe_allow_high_slippage=True,
        )

        pipeline = TradingPipeline(settings, w3=MagicMock())

        assert pipeline.engine.slippage_bps == 1500


class TestCommandLine:
    def test_resolve_token(self):
        assert resolve_token("usdc") == TOKENS["USDC"].address
        assert resolve_token("0x" + "11" * 20) == "0x" + "11" * 20

    def test_quote_arguments(self):
        args = build_parser().parse_args(["quote", "WETH", "100", "--token-in", "USDC"])

        assert args.command == "quote"
        assert (args.token_out, args.amount, args.token_in) == ("WETH", "100", "USDC")
        assert args.config == "configs/paper.yaml"

    def test_portfolio_auto_arguments(self):
        args = build_parser().parse_args(
            ["--profile", "prod", "portfolio", "auto", "--no-enabled", "--max-risk", "30"]
        )

        assert args.profile == "prod"
        assert args.action == "auto"
        assert args.enabled is False
        assert args.max_risk == 30
        assert args.min_confidence == 70

    def test_monitor_once_arguments(self):
        args = build_parser().parse_args(["monitor", "--once"])

        assert args.command == "monitor"
        assert args.once is True

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    @pytest.mark.asyncio
    async def test_missing_config_exits_with_error(self, tmp_path):
        code = await main(["--config", str(tmp_path / "missing.yaml"), "trade", "WETH"])

        assert code == 1
