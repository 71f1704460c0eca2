"""Tests for configuration management."""

import pytest
from pydantic import ValidationError

from trader.config.constants import BASE_CHAIN_ID, CONTRACTS, TOKENS, known_token
from trader.config.settings import AppSettings, load_settings
from trader.core.types import FeeTier


def test_app_settings_defaults() -> None:
    """Test that AppSettings has correct defaults."""
    settings = AppSettings(env="dev", rpc_url="https://mainnet.base.org")

    assert settings.chain_id == BASE_CHAIN_ID
    assert settings.fee_tiers == [
        FeeTier.LOW,
        FeeTier.MEDIUM,
        FeeTier.HIGH,
        FeeTier.LOWEST,
    ]
    assert settings.slippage_bps == 500
    assert settings.gas_multiplier_pct == 120
    assert settings.cooldown_seconds == 300
    assert settings.max_prediction_age_seconds == 900
    assert settings.auto_trade_interval_seconds == 300
    assert settings.quote_cache_ttl_seconds == 30
    assert settings.swap_route == "router"
    assert settings.allowance_mode == "direct"
    assert settings.quote_token == TOKENS["USDC"].address
    assert settings.quoter_address == CONTRACTS["quoter"]
    assert settings.bypass_mode is False
    assert settings.dry_run is True
    assert settings.has_signer is False


def test_app_settings_validation() -> None:
    """Test that AppSettings validates fields."""
    with pytest.raises(ValidationError):
        AppSettings(env="dev")

    with pytest.raises(ValidationError):
        AppSettings(env="invalid", rpc_url="https://mainnet.base.org")

    with pytest.raises(ValidationError):
        AppSettings(env="dev", rpc_url="https://x", slippage_bps=10_001)

    with pytest.raises(ValidationError):
        AppSettings(env="dev", rpc_url="https://x", fee_tiers=[500, 500])

    with pytest.raises(ValidationError):
        AppSettings(env="dev", rpc_url="https://x", fee_tiers=[250])


def test_load_settings_paper_profile(tmp_path) -> None:
    """Paper profile always runs dry."""
    config = tmp_path / "paper.yaml"
    config.write_text(
        """
rpc_url: "https://mainnet.base.org"
dry_run: false
fee_tiers: [3000, 500]
tokens:
  "0x4200000000000000000000000000000000000006":
    trade_amount: "25"
    min_confidence: 80
"""
    )

    settings = load_settings("paper", str(config))

    assert settings.env == "paper"
    assert settings.dry_run is True
    assert settings.fee_tiers == [FeeTier.MEDIUM, FeeTier.LOW]
    weth = settings.tokens["0x4200000000000000000000000000000000000006"]
    assert weth.trade_amount == "25"
    assert weth.min_confidence == 80
    assert weth.max_risk_score == 50


def test_load_settings_prod_profile(tmp_path) -> None:
    """Prod profile always trades live."""
    config = tmp_path / "prod.yaml"
    config.write_text('rpc_url: "https://mainnet.base.org"\ndry_run: true\n')

    settings = load_settings("prod", str(config))

    assert settings.env == "prod"
    assert settings.dry_run is False


def test_load_settings_dev_profile_keeps_yaml_mode(tmp_path) -> None:
    config = tmp_path / "dev.yaml"
    config.write_text('rpc_url: "http://localhost:8545"\ndry_run: false\n')

    assert load_settings("dev", str(config)).dry_run is False


def test_load_settings_invalid_profile(tmp_path) -> None:
    config = tmp_path / "x.yaml"
    config.write_text('rpc_url: "https://mainnet.base.org"\n')

    with pytest.raises(ValueError, match="Invalid profile: invalid"):
        load_settings("invalid", str(config))


def test_load_settings_file_not_found() -> None:
    with pytest.raises(FileNotFoundError, match="Configuration file not found"):
        load_settings("dev", "nonexistent.yaml")


def test_load_settings_invalid_yaml(tmp_path) -> None:
    config = tmp_path / "broken.yaml"
    config.write_text("invalid: yaml: content: [\n")

    with pytest.raises(ValueError, match="Invalid YAML configuration"):
        load_settings("dev", str(config))


def test_known_token_lookup_is_case_insensitive() -> None:
    usdc = known_token(TOKENS["USDC"].address.lower())

    assert usdc is not None
    assert usdc.decimals == 6
    assert known_token("0x" + "ab" * 20) is None
