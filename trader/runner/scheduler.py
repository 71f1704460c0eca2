"""Auto-trading scheduler."""

import asyncio
import time

import structlog

from ..core.errors import TradeError
from ..core.types import TxResult
from .engine import TradeEngine

logger = structlog.get_logger(__name__)


class AutoTrader:
    """Runs a trade flow for every enabled token on a fixed interval.

    Cycles never overlap: the next one starts only after every flow of the
    previous cycle, confirmation waits included, has finished.
    """

    def __init__(self, engine: TradeEngine, interval_seconds: float = 300.0) -> None:
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.cycles = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("Auto-trading already running")
            return
        self._task = asyncio.create_task(self._run(), name="auto-trader")
        logger.info("Auto-trading started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the loop; submitted transactions are still tracked to completion."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.engine.executor.drain()
        logger.info("Auto-trading stopped", cycles=self.cycles)

    async def run_cycle(self) -> dict[str, TxResult | Exception]:
        """One pass over the enabled tokens.

        A failing token never stops the cycle; its exception is the outcome.
        """
        outcomes: dict[str, TxResult | Exception] = {}
        session = self.engine.session
        for token in session.tokens():
            settings = session.get_settings(token)
            if settings is None or not settings.enabled:
                continue
            try:
                outcomes[token] = await self.engine.execute_trade(token)
            except TradeError as e:
                # Already recorded by the engine
                outcomes[token] = e
            except Exception as e:
                logger.error(
                    "Trade flow failed unexpectedly",
                    token=token,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                outcomes[token] = e
        self.cycles += 1
        logger.info(
            "Auto-trading cycle completed",
            cycle=self.cycles,
            attempted=len(outcomes),
            succeeded=sum(isinstance(o, TxResult) for o in outcomes.values()),
        )
        return outcomes

    async def _run(self) -> None:
        while True:
            started = time.monotonic()
            try:
                await self.run_cycle()
            except Exception as e:
                logger.error(
                    "Auto-trading cycle failed",
                    cycle=self.cycles + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))
