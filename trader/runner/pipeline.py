"""Component assembly and command line entry point."""

import argparse
import asyncio
import json
import signal
import sys
from typing import Any

import structlog
from eth_account.signers.local import LocalAccount
from pydantic import BaseModel
from web3 import AsyncWeb3

from ..alerts.events import EventRecorder
from ..alerts.telegram import TelegramAlertSink
from ..chain.client import ChainClient
from ..chain.contracts import (
    Web3PoolFactory,
    Web3PortfolioContract,
    Web3PredictionOracle,
    Web3QuoteService,
    Web3TokenClient,
    Web3TradeContract,
)
from ..chain.wallet import load_signer
from ..config.constants import TOKENS
from ..config.settings import AppSettings, load_settings
from ..core.errors import TradeError
from ..core.interfaces import AlertSink
from ..core.types import AutoTradingConfig
from ..core.units import to_base_units
from ..exec.allowance import DirectAllowance, Permit2Allowance
from ..exec.executor import TradeExecutor
from ..monitor.feed import SwapMonitor
from ..exec.targets import (
    RouterSwapTarget,
    TraderContractSwapTarget,
    UniversalRouterSwapTarget,
)
from ..portfolio.service import PortfolioService
from ..quoting.cache import QuoteCache
from ..quoting.locator import PoolLocator
from ..quoting.resolver import QuoteResolver
from ..risk.session import SessionState
from ..risk.validator import TradeValidator
from .engine import TradeEngine
from .scheduler import AutoTrader

logger = structlog.get_logger(__name__)

MAX_SAFE_SLIPPAGE_BPS = 1000


def resolve_token(value: str) -> str:
    """Accept a known symbol (USDC, WETH, ...) or a raw address."""
    known = TOKENS.get(value.upper())
    return known.address if known else value


class TradingPipeline:
    """Builds the engine and its collaborators from settings."""

    def __init__(
        self,
        settings: AppSettings,
        signer: LocalAccount | None = None,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings
            signer: Signing account; loaded from settings when omitted
            w3: Optional preconfigured AsyncWeb3 instance
        """
        self.settings = settings

        if not settings.dry_run:
            self._validate_live_trading_safety(settings)

        self.components = self._assemble(settings, signer or load_signer(settings), w3)
        self.engine: TradeEngine = self.components["engine"]
        self.auto_trader: AutoTrader = self.components["auto_trader"]
        self._stop_event = asyncio.Event()

        logger.info(
            "Trading pipeline initialized",
            dry_run=settings.dry_run,
            swap_route=settings.swap_route,
            allowance_mode=settings.allowance_mode,
            tokens=len(settings.tokens),
        )

    def _validate_live_trading_safety(self, settings: AppSettings) -> None:
        """Refuse unsafe live configurations.

        Raises:
            ValueError: If safety checks fail
        """
        if not settings.has_signer:
            raise ValueError(
                "Live trading requires a signer. "
                "Configure keystore_path or private_key."
            )

        if settings.slippage_bps > MAX_SAFE_SLIPPAGE_BPS:
            if not settings.unsafe_allow_high_slippage:
                raise ValueError(
                    f"Slippage {settings.slippage_bps} bps "
                    f"({settings.slippage_bps / 100}%) exceeds 10% limit. "
                    f"Set unsafe_allow_high_slippage=true to override (UNSAFE)."
                )
            logger.warning("High slippage enabled (UNSAFE)", bps=settings.slippage_bps)

        logger.critical(
            "🚨 LIVE TRADING MODE ENABLED 🚨",
            rpc_url=settings.rpc_url,
            chain_id=settings.chain_id,
            slippage_bps=settings.slippage_bps,
            swap_route=settings.swap_route,
        )

    def _assemble(
        self,
        settings: AppSettings,
        signer: LocalAccount | None,
        w3: AsyncWeb3 | None,
    ) -> dict[str, Any]:
        components: dict[str, Any] = {}

        client = ChainClient(
            rpc_url=settings.rpc_url,
            chain_id=settings.chain_id,
            signer=signer,
            timeout=settings.rpc_timeout_seconds,
            confirmation_timeout=settings.confirmation_timeout_seconds,
            w3=w3,
            watch_address=settings.watch_address,
        )
        components["client"] = client
        if signer is None and settings.watch_address is None:
            logger.warning(
                "No signer or watch_address configured, trade flows will fail "
                "at the balance check"
            )
        tokens = Web3TokenClient(client)

        sinks: list[AlertSink] = []
        if settings.telegram_bot_token and settings.telegram_admin_ids:
            sinks.append(
                TelegramAlertSink(
                    bot_token=settings.telegram_bot_token,
                    admin_user_ids=settings.telegram_admin_ids,
                )
            )
            logger.info("Using Telegram alert sink")
        else:
            logger.info("No Telegram config, alerts go to the log only")
        components["alerts"] = sinks

        session = SessionState(settings.tokens, bypass_mode=settings.bypass_mode)
        recorder = EventRecorder(session, sinks)
        components["session"] = session

        if settings.swap_route == "router":
            target = RouterSwapTarget(client, settings.swap_router_address)
        elif settings.swap_route == "universal_router":
            target = UniversalRouterSwapTarget(
                client,
                settings.universal_router_address,
                deadline_seconds=settings.swap_deadline_seconds,
            )
        else:
            target = TraderContractSwapTarget(client, settings.trader_address)

        if settings.allowance_mode == "permit2":
            allowance = Permit2Allowance(
                client,
                tokens,
                settings.permit2_address,
                infinite=settings.infinite_approval,
            )
        else:
            allowance = DirectAllowance(tokens, infinite=settings.infinite_approval)

        executor = TradeExecutor(
            tokens=tokens,
            tracker=client,
            target=target,
            allowance=allowance,
            session=session,
            recorder=recorder,
            gas_multiplier_pct=settings.gas_multiplier_pct,
            confirmation_timeout=settings.confirmation_timeout_seconds,
            dry_run=settings.dry_run,
        )

        cache = QuoteCache(ttl_seconds=settings.quote_cache_ttl_seconds)
        portfolio = PortfolioService(
            Web3PortfolioContract(client, settings.portfolio_manager_address),
            tokens,
            client,
            recorder,
            dry_run=settings.dry_run,
        )
        components["portfolio"] = portfolio

        components["engine"] = TradeEngine(
            session=session,
            tokens=tokens,
            tracker=client,
            locator=PoolLocator(
                Web3PoolFactory(client, settings.factory_address),
                tokens,
                fee_tiers=settings.fee_tiers,
            ),
            resolver=QuoteResolver(
                Web3QuoteService(client, settings.quoter_address), cache
            ),
            validator=TradeValidator(
                cooldown_seconds=settings.cooldown_seconds,
                max_prediction_age_seconds=settings.max_prediction_age_seconds,
            ),
            trade_contract=Web3TradeContract(client, settings.trader_address),
            oracle=Web3PredictionOracle(client, settings.oracle_address),
            executor=executor,
            recorder=recorder,
            quote_token=settings.quote_token,
            slippage_bps=settings.slippage_bps,
            cache=cache,
            portfolio=portfolio,
        )
        components["auto_trader"] = AutoTrader(
            components["engine"], interval_seconds=settings.auto_trade_interval_seconds
        )
        components["monitor"] = SwapMonitor(
            client,
            settings.monitor_pairs,
            backfill_blocks=settings.monitor_backfill_blocks,
            max_trades=settings.monitor_max_trades,
            interval_seconds=settings.monitor_interval_seconds,
        )
        return components

    async def start(self) -> None:
        """Check the node serves the configured chain."""
        await self.components["client"].ensure_chain()

    async def _push(self, message: str) -> None:
        for sink in self.components["alerts"]:
            await sink.push(message)

    async def run_forever(self) -> None:
        """Auto-trade until stop is requested."""
        mode = "dry run" if self.settings.dry_run else "live"
        await self._push(f"🤖 Auto-trading started in {mode} mode")
        for sink in self.components["alerts"]:
            if isinstance(sink, TelegramAlertSink):
                await sink.push(sink.render_status(self.engine))

        self.auto_trader.start()
        try:
            await self._stop_event.wait()
        finally:
            await self.auto_trader.stop()
            await self._push("🛑 Auto-trading stopped")

    async def run_monitor(self) -> None:
        """Follow pair swaps until stop is requested."""
        monitor: SwapMonitor = self.components["monitor"]
        monitor.start()
        try:
            await self._stop_event.wait()
        finally:
            await monitor.stop()

    def request_stop(self) -> None:
        logger.info("Stop requested")
        self._stop_event.set()

    async def close(self) -> None:
        for sink in self.components["alerts"]:
            if isinstance(sink, TelegramAlertSink):
                await sink.close()
        await self.components["client"].w3.provider.disconnect()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="DEX trade quoting and execution")
    parser.add_argument(
        "--config", default="configs/paper.yaml", help="Configuration file path"
    )
    parser.add_argument(
        "--profile",
        default="paper",
        choices=["dev", "paper", "prod"],
        help="Configuration profile",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("quote", "Quote an exact input amount"),
        ("check", "Read-only liquidity check"),
    ):
        cmd = commands.add_parser(name, help=help_text)
        cmd.add_argument("token_out", help="Token to buy (symbol or address)")
        cmd.add_argument("amount", help="Input amount in whole units, e.g. 100")
        cmd.add_argument("--token-in", help="Token to spend (default quote token)")

    trade = commands.add_parser("trade", help="Run one trade flow for a token")
    trade.add_argument("token_out", help="Token to buy (symbol or address)")

    prediction = commands.add_parser("prediction", help="Show the oracle prediction")
    prediction.add_argument("token", help="Token symbol or address")

    portfolio = commands.add_parser("portfolio", help="Portfolio operations")
    actions = portfolio.add_subparsers(dest="action", required=True)
    actions.add_parser("show", help="Show portfolio and auto-trading settings")
    create = actions.add_parser("create", help="Create a portfolio")
    create.add_argument("risk_level", type=int)
    for name in ("deposit", "withdraw"):
        move = actions.add_parser(name, help=f"{name.capitalize()} tokens")
        move.add_argument("token")
        move.add_argument("amount", help="Amount in whole units")
    add = actions.add_parser("add-token", help="Approve and track a new token")
    add.add_argument("token")
    auto = actions.add_parser("auto", help="Mirror auto-trading settings on chain")
    auto.add_argument("--enabled", action=argparse.BooleanOptionalAction, default=True)
    auto.add_argument("--min-confidence", type=int, default=70)
    auto.add_argument("--max-risk", type=int, default=50)
    auto.add_argument("--amount", default="0", help="Trade amount in whole units")

    commands.add_parser("auto", help="Run the auto-trading scheduler")
    monitor = commands.add_parser("monitor", help="Follow swaps on the monitored pairs")
    monitor.add_argument(
        "--once", action="store_true", help="Poll once and print pair analytics"
    )
    return parser


def _print(value: Any) -> None:
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    print(json.dumps(value, indent=2, default=str))


async def _amount(pipeline: TradingPipeline, token: str, amount: str) -> int:
    ref = await pipeline.engine.tokens.metadata(token)
    return to_base_units(amount, ref.decimals)


async def run_command(pipeline: TradingPipeline, args: argparse.Namespace) -> None:
    engine = pipeline.engine
    portfolio: PortfolioService = pipeline.components["portfolio"]

    if args.command in ("quote", "check"):
        token_in = resolve_token(args.token_in) if args.token_in else engine.quote_token
        token_out = resolve_token(args.token_out)
        amount_in = await _amount(pipeline, token_in, args.amount)
        if args.command == "quote":
            _print(await engine.get_quote(token_in, token_out, amount_in))
        else:
            _print(await engine.check_liquidity(token_in, token_out, amount_in))

    elif args.command == "trade":
        _print(await engine.execute_trade(resolve_token(args.token_out)))

    elif args.command == "prediction":
        _print(await engine.fetch_prediction(resolve_token(args.token)))

    elif args.command == "portfolio":
        await _run_portfolio(pipeline, portfolio, args)

    elif args.command == "auto":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, pipeline.request_stop)
        await pipeline.run_forever()

    elif args.command == "monitor":
        monitor: SwapMonitor = pipeline.components["monitor"]
        if args.once:
            await monitor.poll()
            _print(
                {
                    pair.name: {
                        "trades": len(monitor.trades(pair.address)),
                        "analytics": monitor.analytics(pair.address).model_dump(),
                    }
                    for pair in monitor.pairs
                }
            )
        else:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, pipeline.request_stop)
            await pipeline.run_monitor()


async def _run_portfolio(
    pipeline: TradingPipeline, portfolio: PortfolioService, args: argparse.Namespace
) -> None:
    if args.action == "show":
        _print(
            {
                "portfolio": (await portfolio.get_portfolio()).model_dump(),
                "auto_trading": (
                    await portfolio.load_auto_trading_settings()
                ).model_dump(),
            }
        )
    elif args.action == "create":
        _print({"tx_hash": await portfolio.create_portfolio(args.risk_level)})
    elif args.action in ("deposit", "withdraw"):
        token = resolve_token(args.token)
        amount = await _amount(pipeline, token, args.amount)
        operation = portfolio.deposit if args.action == "deposit" else portfolio.withdraw
        _print({"tx_hash": await operation(token, amount)})
    elif args.action == "add-token":
        _print(await pipeline.engine.add_token(resolve_token(args.token)))
    elif args.action == "auto":
        amount = 0
        if args.amount != "0":
            amount = await _amount(pipeline, pipeline.engine.quote_token, args.amount)
        config = AutoTradingConfig(
            enabled=args.enabled,
            min_confidence=args.min_confidence,
            max_risk_score=args.max_risk,
            trade_amount=amount,
        )
        _print({"tx_hash": await portfolio.update_auto_trading(config)})


async def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.profile, args.config)
        pipeline = TradingPipeline(settings)
    except (FileNotFoundError, ValueError) as e:
        logger.error("Fatal configuration error", error=str(e))
        return 1

    try:
        await pipeline.start()
        await run_command(pipeline, args)
    except TradeError as e:
        logger.error("Command failed", code=e.code, kind=e.kind.value, error=e.message)
        return 2
    finally:
        await pipeline.close()
    return 0


def cli() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    cli()
