"""Application settings and configuration management."""

from pathlib import Path
from typing import Literal

import structlog
import yaml
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from ..core.types import FeeTier, MonitoredPair, TradeSettings
from .constants import (
    BASE_CHAIN_ID,
    CONTRACTS,
    DEFAULT_FEE_TIERS,
    MONITORED_PAIRS,
    TOKENS,
)

logger = structlog.get_logger(__name__)


class AppSettings(BaseSettings):
    """Application settings with environment variable support."""

    # Environment and mode
    env: Literal["dev", "paper", "prod"] = Field(
        description="Environment: dev, paper, prod"
    )

    # Network
    rpc_url: str = Field(description="EVM JSON-RPC URL")
    chain_id: int = Field(default=BASE_CHAIN_ID, description="Expected chain id")
    rpc_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Timeout for read calls"
    )
    confirmation_timeout_seconds: float = Field(
        default=180.0, gt=0, description="Timeout waiting for inclusion"
    )

    # Signer sources
    private_key: str | None = Field(default=None, description="Hex private key")
    keystore_path: str | None = Field(
        default=None, description="Encrypted JSON keystore path"
    )
    keystore_password: str | None = Field(
        default=None, description="Keystore password"
    )
    watch_address: str | None = Field(
        default=None, description="Account read in dry run when no signer is set"
    )

    # Contracts
    factory_address: str = Field(default=CONTRACTS["factory"])
    quoter_address: str = Field(default=CONTRACTS["quoter"])
    swap_router_address: str = Field(default=CONTRACTS["swap_router"])
    universal_router_address: str = Field(default=CONTRACTS["universal_router"])
    permit2_address: str = Field(default=CONTRACTS["permit2"])
    trader_address: str = Field(default=CONTRACTS["ai_trader"])
    portfolio_manager_address: str = Field(default=CONTRACTS["portfolio_manager"])
    oracle_address: str = Field(default=CONTRACTS["ai_oracle"])
    quote_token: str = Field(
        default=TOKENS["USDC"].address, description="Token spent by trades"
    )

    # Quoting and execution
    fee_tiers: list[FeeTier] = Field(
        default_factory=lambda: list(DEFAULT_FEE_TIERS),
        description="Fee tiers in preference order",
    )
    slippage_bps: int = Field(
        default=500, ge=0, le=10_000, description="Slippage tolerance in bps"
    )
    unsafe_allow_high_slippage: bool = Field(default=False)
    gas_multiplier_pct: int = Field(
        default=120, ge=100, description="Gas limit safety multiplier (percent)"
    )
    quote_cache_ttl_seconds: float = Field(default=30.0, ge=0)
    swap_route: Literal["router", "universal_router", "trader_contract"] = Field(
        default="router", description="Contract the swap is sent to"
    )
    allowance_mode: Literal["direct", "permit2"] = Field(
        default="direct", description="permit2 pairs with the universal_router route"
    )
    swap_deadline_seconds: int = Field(
        default=300, gt=0, description="Deadline for universal router swaps"
    )
    infinite_approval: bool = Field(
        default=True, description="Approve max uint256 instead of the exact amount"
    )

    # Validation
    cooldown_seconds: int = Field(
        default=300, ge=0, description="Cooldown between trades on one token"
    )
    max_prediction_age_seconds: int = Field(
        default=900, ge=0, description="Oldest prediction accepted for gating"
    )
    bypass_mode: bool = Field(
        default=False, description="Downgrade prediction checks to warnings"
    )

    # Auto trading
    auto_trade_interval_seconds: float = Field(default=300.0, gt=0)
    tokens: dict[str, TradeSettings] = Field(
        default_factory=dict, description="Per-token settings keyed by address"
    )

    # Swap monitor
    monitor_pairs: list[MonitoredPair] = Field(
        default_factory=lambda: list(MONITORED_PAIRS),
        description="Pair contracts whose swaps are followed",
    )
    monitor_interval_seconds: float = Field(default=10.0, gt=0)
    monitor_backfill_blocks: int = Field(
        default=100, ge=0, description="Blocks read on the first poll"
    )
    monitor_max_trades: int = Field(
        default=50, ge=1, description="Trades kept per pair, newest first"
    )

    # Notifications
    telegram_bot_token: str | None = Field(
        default=None, description="Telegram bot token"
    )
    telegram_admin_ids: list[int] = Field(
        default_factory=list, description="Telegram admin user IDs"
    )

    # Execution mode
    dry_run: bool = Field(default=True, description="Dry run mode (no real trades)")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @field_validator("fee_tiers")
    @classmethod
    def _unique_tiers(cls, value: list[FeeTier]) -> list[FeeTier]:
        if not value:
            raise ValueError("At least one fee tier is required")
        if len(set(value)) != len(value):
            raise ValueError("Fee tiers must be unique")
        return value

    @model_validator(mode="after")
    def _route_matches_allowance(self) -> "AppSettings":
        # Only the universal router pulls tokens through Permit2
        uses_permit2 = self.allowance_mode == "permit2"
        if uses_permit2 != (self.swap_route == "universal_router"):
            raise ValueError(
                "allowance_mode permit2 requires swap_route universal_router "
                f"and vice versa (got {self.allowance_mode}/{self.swap_route})"
            )
        return self

    @property
    def has_signer(self) -> bool:
        return bool(self.private_key or self.keystore_path)


# Profiles that pin the execution mode; dev takes dry_run from the YAML
PROFILE_DRY_RUN: dict[str, bool | None] = {"dev": None, "paper": True, "prod": False}


def _display_url(url: str) -> str:
    # RPC URLs often embed an API key in the path
    return url if len(url) <= 50 else url[:50] + "..."


def load_settings(profile: str, yaml_path: str) -> AppSettings:
    """Build settings from a YAML file overlaid with the environment.

    The paper profile always runs dry and prod always runs live.

    Raises:
        ValueError: If the profile is unknown or the YAML cannot be parsed
        FileNotFoundError: If the YAML file is missing
        ValidationError: If a setting fails validation
    """
    if profile not in PROFILE_DRY_RUN:
        raise ValueError(
            f"Invalid profile: {profile}. Expected one of: {', '.join(PROFILE_DRY_RUN)}"
        )

    config_path = Path(yaml_path)
    if not config_path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        logger.error("Unparseable configuration", path=yaml_path, error=str(e))
        raise ValueError(f"Invalid YAML configuration: {e}") from e

    raw["env"] = profile
    forced = PROFILE_DRY_RUN[profile]
    if forced is not None:
        raw["dry_run"] = forced

    try:
        settings = AppSettings(**raw)
    except ValidationError as e:
        logger.error("Invalid configuration", path=yaml_path, error=str(e))
        raise

    logger.info(
        "Settings loaded",
        profile=profile,
        dry_run=settings.dry_run,
        chain_id=settings.chain_id,
        rpc_url=_display_url(settings.rpc_url),
        tokens=len(settings.tokens),
    )
    return settings
