"""Swap monitor: polls pair contracts for Swap events and keeps recent trades."""

import asyncio
import time
from collections import deque
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import structlog
from eth_abi import decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from ..chain.abis import PAIR_SWAP_EVENT
from ..core.interfaces import LogReader
from ..core.types import MonitoredPair, PriceAnalytics, SwapTrade
from ..quoting.classify import classify_read_error
from .analytics import analyze, whale_size

logger = structlog.get_logger(__name__)

SWAP_TOPIC = Web3.to_hex(Web3.keccak(text=PAIR_SWAP_EVENT))


def _topic_address(topic: Any) -> str:
    raw = bytes.fromhex(topic[2:]) if isinstance(topic, str) else bytes(topic)
    return Web3.to_checksum_address("0x" + raw[-20:].hex())


def decode_swap(pair: MonitoredPair, log: dict[str, Any], timestamp: int) -> SwapTrade:
    """Decode a raw Swap log of a pair contract."""
    topics = log["topics"]
    amount0_in, amount1_in, amount0_out, amount1_out = decode(
        ["uint256", "uint256", "uint256", "uint256"], bytes(log["data"])
    )
    return SwapTrade(
        pair=pair,
        sender=_topic_address(topics[1]),
        recipient=_topic_address(topics[2]),
        amount0_in=amount0_in,
        amount1_in=amount1_in,
        amount0_out=amount0_out,
        amount1_out=amount1_out,
        tx_hash=Web3.to_hex(log["transactionHash"]),
        log_index=log["logIndex"],
        block_number=log["blockNumber"],
        timestamp=datetime.fromtimestamp(timestamp),
    )


class SwapMonitor:
    """Follows Swap events of a set of pairs, newest trades first.

    The first poll backfills a fixed number of blocks; later polls continue
    from the last block read. A swap is kept once even when a failed poll
    makes the next one read the same blocks again.
    """

    def __init__(
        self,
        reader: LogReader,
        pairs: Iterable[MonitoredPair],
        backfill_blocks: int = 100,
        max_trades: int = 50,
        interval_seconds: float = 10.0,
    ) -> None:
        self.reader = reader
        self.pairs = list(pairs)
        self.backfill_blocks = backfill_blocks
        self.interval_seconds = interval_seconds
        self.last_block: int | None = None
        self.polls = 0
        self._trades: dict[str, deque[SwapTrade]] = {
            pair.address.lower(): deque(maxlen=max_trades) for pair in self.pairs
        }
        self._task: asyncio.Task | None = None

    def trades(self, pair_address: str) -> list[SwapTrade]:
        return list(self._trades[pair_address.lower()])

    def analytics(self, pair_address: str) -> PriceAnalytics:
        return analyze(self.trades(pair_address))

    async def _timestamp(self, block: int, cache: dict[int, int]) -> int:
        if block not in cache:
            cache[block] = await self.reader.block_timestamp(block)
        return cache[block]

    async def _poll_pair(
        self,
        pair: MonitoredPair,
        from_block: int,
        to_block: int,
        timestamps: dict[int, int],
    ) -> list[SwapTrade]:
        logs = await self.reader.get_logs(pair.address, [SWAP_TOPIC], from_block, to_block)
        logs.sort(key=lambda log: (log["blockNumber"], log["logIndex"]))

        window = self._trades[pair.address.lower()]
        known = {(t.tx_hash, t.log_index) for t in window}
        added: list[SwapTrade] = []
        for log in logs:
            timestamp = await self._timestamp(log["blockNumber"], timestamps)
            try:
                trade = decode_swap(pair, log, timestamp)
            except (DecodingError, IndexError) as e:
                logger.warning("Undecodable swap log", pair=pair.name, error=str(e))
                continue
            if (trade.tx_hash, trade.log_index) in known:
                continue
            known.add((trade.tx_hash, trade.log_index))
            window.appendleft(trade)
            added.append(trade)

            size = whale_size(trade)
            if size is not None:
                logger.info(
                    "Whale swap",
                    pair=pair.name,
                    size=size,
                    value=str(trade.token1_amount),
                    tx_hash=trade.tx_hash,
                )
        return added

    async def poll(self) -> list[SwapTrade]:
        """Read new Swap events of every pair; returns the trades added."""
        current = await self.reader.block_number()
        if self.last_block is None:
            from_block = max(0, current - self.backfill_blocks)
        else:
            from_block = self.last_block + 1
        if from_block > current:
            return []

        timestamps: dict[int, int] = {}
        added: list[SwapTrade] = []
        for pair in self.pairs:
            added.extend(await self._poll_pair(pair, from_block, current, timestamps))

        self.last_block = current
        self.polls += 1
        logger.info(
            "Swap monitor polled",
            from_block=from_block,
            to_block=current,
            new_trades=len(added),
        )
        return added

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("Swap monitor already running")
            return
        self._task = asyncio.create_task(self._run(), name="swap-monitor")
        logger.info(
            "Swap monitor started",
            pairs=[p.name for p in self.pairs],
            interval_seconds=self.interval_seconds,
        )

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Swap monitor stopped", polls=self.polls)

    async def _run(self) -> None:
        while True:
            started = time.monotonic()
            try:
                await self.poll()
            except Exception as e:
                error = classify_read_error(e)
                logger.error(
                    "Swap monitor poll failed", code=error.code, error=error.message
                )
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))
