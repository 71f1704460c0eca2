"""Swap flow analytics over a pair's recent trades.

Every function takes trades newest first, the order the monitor keeps them
in. Prices are quote token per base token (token1 per token0).
"""

from collections import Counter
from collections.abc import Sequence
from datetime import timedelta
from decimal import Decimal

from ..core.types import (
    ArbitrageSignal,
    MarketMaking,
    PriceAnalytics,
    SwapTrade,
    WhaleActivity,
)

# Quote token value of a swap, largest first
WHALE_THRESHOLDS: tuple[tuple[str, Decimal], ...] = (
    ("massive", Decimal(1_000_000)),
    ("large", Decimal(250_000)),
    ("medium", Decimal(10_000)),
)
TREND_WINDOW = 3
MARKET_MAKER_MIN_TRADES = 3
ARBITRAGE_WINDOW = timedelta(seconds=5)


def trade_price(trade: SwapTrade) -> Decimal:
    """Execution price of a swap; zero when either side moved nothing."""
    base, quote = trade.token0_amount, trade.token1_amount
    if not base or not quote:
        return Decimal(0)
    return quote / base


def _mean(values: Sequence[Decimal]) -> Decimal:
    return sum(values, Decimal(0)) / len(values)


def price_impact_pct(trade: SwapTrade, previous: Sequence[SwapTrade]) -> float:
    """Percent move of a swap's price against the mean of the swaps before it."""
    current = trade_price(trade)
    prices = [p for p in map(trade_price, previous[:TREND_WINDOW]) if p]
    if not current or not prices:
        return 0.0
    reference = _mean(prices)
    return float((current - reference) / reference * 100)


def price_trend(
    trade: SwapTrade, previous: Sequence[SwapTrade]
) -> tuple[str, float]:
    """Direction of the newest price against the recent mean, and how steadily
    the recent prices moved that way (0-100).
    """
    if len(previous) < 2:
        return "neutral", 0.0

    recent = [trade_price(t) for t in previous[:TREND_WINDOW]]
    current = trade_price(trade)
    diff = current - _mean(recent)
    direction = "up" if diff > 0 else "down" if diff < 0 else "neutral"

    chronological = [*reversed(recent), current]
    changes = [b - a for a, b in zip(chronological, chronological[1:])]
    if direction == "up":
        steady = sum(1 for change in changes if change > 0)
    elif direction == "down":
        steady = sum(1 for change in changes if change < 0)
    else:
        steady = sum(1 for change in changes if change == 0)
    return direction, steady / len(changes) * 100


def whale_size(trade: SwapTrade) -> str | None:
    value = trade.token1_amount
    for size, threshold in WHALE_THRESHOLDS:
        if value >= threshold:
            return size
    return None


def detect_whale(trade: SwapTrade, previous: Sequence[SwapTrade]) -> WhaleActivity:
    """Size the newest swap and predict its impact from earlier whale swaps."""
    size = whale_size(trade)
    impacts = [
        abs(price_impact_pct(t, previous[i + 1 :]))
        for i, t in enumerate(previous)
        if whale_size(t) is not None
    ]
    predicted = sum(impacts) / len(impacts) if impacts else 0.0
    return WhaleActivity(
        detected=size is not None, size=size, predicted_impact_pct=predicted
    )


def detect_market_making(trades: Sequence[SwapTrade]) -> MarketMaking:
    """Addresses swapping repeatedly inside the window."""
    if not trades:
        return MarketMaking()
    counts = Counter(t.sender.lower() for t in trades)
    makers = sorted(a for a, n in counts.items() if n >= MARKET_MAKER_MIN_TRADES)
    if not makers:
        return MarketMaking()
    return MarketMaking(
        detected=True,
        addresses=makers,
        confidence=min(100.0, len(makers) / len(trades) * 100),
    )


def detect_arbitrage(
    trade: SwapTrade, previous: Sequence[SwapTrade]
) -> ArbitrageSignal:
    """A quick round trip: an earlier swap's sender receives this swap's output."""
    recipient = trade.recipient.lower()
    for earlier in previous:
        elapsed = trade.timestamp - earlier.timestamp
        if earlier.sender.lower() != recipient or not (
            timedelta(0) <= elapsed <= ARBITRAGE_WINDOW
        ):
            continue
        before, after = trade_price(earlier), trade_price(trade)
        profit = float(abs(after - before) / before * 100) if before else 0.0
        return ArbitrageSignal(
            detected=True,
            profit_estimate_pct=profit,
            route=[trade.pair.token0, trade.pair.token1],
        )
    return ArbitrageSignal()


def analyze(trades: Sequence[SwapTrade]) -> PriceAnalytics:
    """Analytics for the newest swap in a window."""
    if not trades:
        return PriceAnalytics()

    trade, previous = trades[0], trades[1:]
    trend, confidence = price_trend(trade, previous)
    return PriceAnalytics(
        price=float(trade_price(trade)),
        price_impact_pct=price_impact_pct(trade, previous),
        trend=trend,
        confidence=confidence,
        whale=detect_whale(trade, previous),
        market_making=detect_market_making(trades),
        arbitrage=detect_arbitrage(trade, previous),
    )
