"""Tests for the auto-trading scheduler."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from fakes import OTHER, TKN, USDC
from web3.exceptions import Web3RPCError

from trader.core.errors import RejectReason, ValidationRejected
from trader.core.types import TradeSettings
from trader.risk.session import SessionState
from trader.runner.scheduler import AutoTrader


class StubExecutor:
    def __init__(self) -> None:
        self.drain = AsyncMock()


class StubEngine:
    """Records trade flows and how many ran at once."""

    def __init__(self, session: SessionState, delay: float = 0.0) -> None:
        self.session = session
        self.executor = StubExecutor()
        self.delay = delay
        self.traded: list[str] = []
        self.active = 0
        self.max_active = 0
        self.failing: set[str] = set()
        self.broken: set[str] = set()

    async def execute_trade(self, token: str):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            self.traded.append(token)
            if token in self.broken:
                raise Web3RPCError("header not found")
            if token in self.failing:
                raise ValidationRejected(
                    RejectReason.COOLDOWN_ACTIVE, "Cooldown active", token
                )
            return f"result:{token}"
        finally:
            self.active -= 1


def make_session() -> SessionState:
    return SessionState(
        {
            TKN: TradeSettings(trade_amount="1"),
            OTHER: TradeSettings(trade_amount="1"),
            USDC: TradeSettings(trade_amount="1", enabled=False),
        }
    )


class TestRunCycle:
    @pytest.mark.asyncio
    async def test_skips_disabled_tokens(self):
        engine = StubEngine(make_session())
        trader = AutoTrader(engine)

        outcomes = await trader.run_cycle()

        assert engine.traded == [TKN.lower(), OTHER.lower()]
        assert USDC.lower() not in outcomes
        assert trader.cycles == 1

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_the_cycle(self):
        engine = StubEngine(make_session())
        engine.failing = {TKN.lower()}
        trader = AutoTrader(engine)

        outcomes = await trader.run_cycle()

        assert isinstance(outcomes[TKN.lower()], ValidationRejected)
        assert outcomes[OTHER.lower()] == f"result:{OTHER.lower()}"

    @pytest.mark.asyncio
    async def test_unclassified_error_is_kept_as_outcome(self):
        engine = StubEngine(make_session())
        engine.broken = {TKN.lower()}
        trader = AutoTrader(engine)

        outcomes = await trader.run_cycle()

        assert isinstance(outcomes[TKN.lower()], Web3RPCError)
        assert outcomes[OTHER.lower()] == f"result:{OTHER.lower()}"
        assert trader.cycles == 1


class TestLoop:
    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        engine = StubEngine(make_session())
        trader = AutoTrader(engine, interval_seconds=3600)

        trader.start()
        assert trader.running
        while trader.cycles < 1:
            await asyncio.sleep(0)
        await trader.stop()

        assert not trader.running
        assert trader.cycles == 1
        engine.executor.drain.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_second_start_is_ignored(self):
        engine = StubEngine(make_session())
        trader = AutoTrader(engine, interval_seconds=3600)

        trader.start()
        task = trader._task
        trader.start()

        assert trader._task is task
        await trader.stop()

    @pytest.mark.asyncio
    async def test_cycles_never_overlap(self):
        engine = StubEngine(make_session(), delay=0.01)
        trader = AutoTrader(engine, interval_seconds=0)

        trader.start()
        while trader.cycles < 3:
            await asyncio.sleep(0.005)
        await trader.stop()

        assert engine.max_active == 1

    @pytest.mark.asyncio
    async def test_loop_survives_unclassified_errors(self):
        engine = StubEngine(make_session())
        engine.broken = {TKN.lower(), OTHER.lower()}
        trader = AutoTrader(engine, interval_seconds=0)

        trader.start()
        while trader.cycles < 2:
            await asyncio.sleep(0)
        assert trader.running

        await trader.stop()

        assert not trader.running
        engine.executor.drain.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_loop_survives_a_failing_cycle(self):
        engine = StubEngine(make_session())
        trader = AutoTrader(engine, interval_seconds=0)
        calls = 0
        real_cycle = trader.run_cycle

        async def flaky_cycle():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("session corrupted")
            return await real_cycle()

        trader.run_cycle = flaky_cycle
        trader.start()
        while trader.cycles < 1:
            await asyncio.sleep(0)
        await trader.stop()

        assert calls >= 2
