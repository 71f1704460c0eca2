"""Core data types for the trade engine."""

from datetime import datetime
from decimal import Decimal
from enum import IntEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class FeeTier(IntEnum):
    """DEX pool fee tiers in hundredths of a basis point."""

    LOWEST = 100
    LOW = 500
    MEDIUM = 3000
    HIGH = 10000

    @property
    def percent(self) -> float:
        """Fee as a percentage of the swapped amount."""
        return self.value / 10_000


class TokenRef(BaseModel):
    """Resolved ERC-20 token reference."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(description="Checksummed token address")
    symbol: str = Field(description="Token symbol")
    decimals: int = Field(ge=0, le=77, description="Token decimals")
    name: str | None = Field(default=None, description="Token name")


class PoolCandidate(BaseModel):
    """Pool discovered for a token pair at one fee tier."""

    model_config = ConfigDict(frozen=True)

    pool_address: str = Field(description="Pool contract address")
    fee_tier: FeeTier = Field(description="Pool fee tier")
    observed_liquidity: int = Field(
        ge=0, description="Input token balance held by the pool"
    )


class Quote(BaseModel):
    """Simulated swap output for an exact input amount."""

    model_config = ConfigDict(frozen=True)

    token_in: str = Field(description="Input token address")
    token_out: str = Field(description="Output token address")
    amount_in: int = Field(gt=0, description="Input amount in base units")
    amount_out: int = Field(gt=0, description="Quoted output in base units")
    fee_tier: FeeTier = Field(description="Fee tier the quote was obtained for")
    pool_address: str | None = Field(default=None, description="Quoted pool")
    obtained_via: Literal["direct", "path"] = Field(description="Quoting method")

    @property
    def key(self) -> tuple[str, str, int, int]:
        """Cache/consistency key: (token_in, token_out, amount_in, fee)."""
        return (
            self.token_in.lower(),
            self.token_out.lower(),
            self.amount_in,
            int(self.fee_tier),
        )


class TradeRequest(BaseModel):
    """Fully validated swap request, built once per user action."""

    model_config = ConfigDict(frozen=True)

    token_in: str = Field(description="Input token address")
    token_out: str = Field(description="Output token address")
    amount_in: int = Field(gt=0, description="Input amount in base units")
    recipient: str = Field(description="Address receiving the output tokens")
    min_amount_out: int = Field(ge=0, description="Minimum acceptable output")
    quote: Quote = Field(description="Quote the request was priced against")

    @property
    def fee_tier(self) -> FeeTier:
        """Fee tier the swap must execute against."""
        return self.quote.fee_tier


class TradeSettings(BaseModel):
    """Per-token trading configuration for one session."""

    enabled: bool = Field(default=True, description="Trading enabled for token")
    min_confidence: int = Field(
        default=70, ge=0, le=100, description="Minimum oracle confidence"
    )
    max_risk_score: int = Field(
        default=50, ge=0, le=100, description="Maximum oracle risk score"
    )
    trade_amount: str = Field(
        default="", description="Trade size in input token units, as typed"
    )
    cooldown_last_fired_at: float | None = Field(
        default=None, description="Unix time of the last successful trade"
    )
    name: str | None = Field(default=None, description="Display symbol")


class Prediction(BaseModel):
    """Oracle prediction for a token."""

    model_config = ConfigDict(frozen=True)

    confidence: int = Field(ge=0, le=100, description="Confidence percentage")
    price_direction: int = Field(description="Signed expected price direction")
    is_honeypot: bool = Field(description="Honeypot flag")
    risk_score: int = Field(ge=0, le=100, description="Risk score")
    timestamp: int = Field(ge=0, description="Unix time the prediction was set")

    @property
    def direction_label(self) -> str:
        """Human label for the price direction."""
        if self.price_direction > 0:
            return "Buy"
        if self.price_direction < 0:
            return "Sell"
        return "Hold"


class ValidationDecision(BaseModel):
    """Outcome of the trade validator."""

    accepted: bool = Field(description="Whether the trade may proceed")
    reason: str | None = Field(default=None, description="Reject reason code")
    detail: str | None = Field(default=None, description="Human readable detail")
    warnings: list[str] = Field(
        default_factory=list, description="Bypassed checks"
    )
    cooldown_remaining: float | None = Field(
        default=None, description="Seconds until the cooldown elapses"
    )


class TxResult(BaseModel):
    """Outcome of a submitted (or simulated) swap."""

    status: Literal["success", "simulated"] = Field(description="Result status")
    tx_hash: str | None = Field(default=None, description="Transaction hash")
    block_number: int | None = Field(default=None, description="Inclusion block")
    gas_used: int | None = Field(default=None, description="Gas used")
    gas_limit: int = Field(description="Gas limit submitted")
    approval_tx_hashes: list[str] = Field(
        default_factory=list, description="Approval transactions sent before the swap"
    )
    request: TradeRequest = Field(description="Executed request")


class PortfolioInfo(BaseModel):
    """Custody contract portfolio summary."""

    total_value: int = Field(description="Total value as reported on chain")
    risk_level: int = Field(description="Portfolio risk level")
    is_active: bool = Field(description="Whether the portfolio exists")


class AutoTradingConfig(BaseModel):
    """Auto-trading settings mirrored in the portfolio contract."""

    enabled: bool
    min_confidence: int = Field(ge=0, le=100)
    max_risk_score: int = Field(ge=0, le=100)
    trade_amount: int = Field(ge=0, description="Trade size in base units")


class TradeEvent(BaseModel):
    """Observable event emitted by every stage of a trade flow."""

    timestamp: datetime = Field(description="Event time")
    level: Literal["info", "success", "warning", "error"] = Field(
        default="info", description="Severity"
    )
    message: str = Field(description="Event message")
    token: str | None = Field(default=None, description="Related token")
    code: str | None = Field(default=None, description="Error classification")
    tx_hash: str | None = Field(default=None, description="Related transaction")


class LiquidityReport(BaseModel):
    """Read-only liquidity check for a pair and input amount."""

    token_in: str
    token_out: str
    amount_in: int
    candidates: list[PoolCandidate] = Field(default_factory=list)
    quote: Quote | None = Field(default=None, description="Best available quote")
    failure: str | None = Field(default=None, description="Failure code, if any")
    hint: str | None = Field(default=None, description="Remediation hint")
    contract_pool: str | None = Field(
        default=None, description="Pool the trade contract would route through"
    )
    contract_fee: int | None = Field(default=None, description="Its fee tier")


class MonitoredPair(BaseModel):
    """Pair contract whose Swap events are watched; token1 is the quote token."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(description="Pair contract address")
    token0: str = Field(description="Base token symbol")
    token1: str = Field(description="Quote token symbol")
    token0_decimals: int = Field(default=18, ge=0, le=77)
    token1_decimals: int = Field(default=6, ge=0, le=77)

    @property
    def name(self) -> str:
        return f"{self.token0}/{self.token1}"


class SwapTrade(BaseModel):
    """One decoded Swap event, amounts in base units."""

    pair: MonitoredPair = Field(description="Pair the swap happened on")
    sender: str = Field(description="Address that called swap")
    recipient: str = Field(description="Address receiving the output")
    amount0_in: int = Field(ge=0)
    amount1_in: int = Field(ge=0)
    amount0_out: int = Field(ge=0)
    amount1_out: int = Field(ge=0)
    tx_hash: str = Field(description="Transaction hash")
    log_index: int = Field(ge=0, description="Position of the log in its block")
    block_number: int = Field(ge=0)
    timestamp: datetime = Field(description="Block time")

    @property
    def token0_amount(self) -> Decimal:
        """Base token amount that moved, whichever side it was on."""
        raw = self.amount0_in or self.amount0_out
        return Decimal(raw).scaleb(-self.pair.token0_decimals)

    @property
    def token1_amount(self) -> Decimal:
        raw = self.amount1_in or self.amount1_out
        return Decimal(raw).scaleb(-self.pair.token1_decimals)


class WhaleActivity(BaseModel):
    detected: bool = False
    size: Literal["medium", "large", "massive"] | None = None
    predicted_impact_pct: float = 0.0


class MarketMaking(BaseModel):
    detected: bool = False
    addresses: list[str] = Field(default_factory=list)
    confidence: float = 0.0


class ArbitrageSignal(BaseModel):
    detected: bool = False
    profit_estimate_pct: float = 0.0
    route: list[str] = Field(default_factory=list)


class PriceAnalytics(BaseModel):
    """Read of a pair's recent swaps, computed for its newest trade."""

    price: float = Field(default=0.0, description="Quote per base token")
    price_impact_pct: float = Field(
        default=0.0, description="Change against the mean of the previous trades"
    )
    trend: Literal["up", "down", "neutral"] = "neutral"
    confidence: float = Field(default=0.0, ge=0, le=100)
    whale: WhaleActivity = Field(default_factory=WhaleActivity)
    market_making: MarketMaking = Field(default_factory=MarketMaking)
    arbitrage: ArbitrageSignal = Field(default_factory=ArbitrageSignal)
