"""Tests for core data types and the error taxonomy."""

import pytest
from pydantic import ValidationError

from trader.core.errors import (
    ErrorKind,
    InsufficientBalance,
    NoQuoteAvailable,
    QuoteFailed,
    QuoteFailureKind,
    RejectReason,
    ValidationRejected,
)
from trader.core.types import FeeTier, Prediction, Quote, TradeSettings

USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
TKN = "0x" + "11" * 20


class TestQuote:
    def test_key_normalizes_addresses(self):
        quote = Quote(
            token_in=USDC,
            token_out=TKN,
            amount_in=100,
            amount_out=5,
            fee_tier=FeeTier.LOW,
            obtained_via="direct",
        )

        assert quote.key == (USDC.lower(), TKN, 100, 500)

    def test_zero_output_is_not_a_quote(self):
        with pytest.raises(ValidationError):
            Quote(
                token_in=USDC,
                token_out=TKN,
                amount_in=100,
                amount_out=0,
                fee_tier=FeeTier.LOW,
                obtained_via="direct",
            )

    def test_fee_percent(self):
        assert FeeTier.LOW.percent == 0.05
        assert FeeTier.HIGH.percent == 1.0


class TestPrediction:
    @pytest.mark.parametrize(
        "direction, label", [(5, "Buy"), (-1, "Sell"), (0, "Hold")]
    )
    def test_direction_label(self, direction, label):
        prediction = Prediction(
            confidence=50,
            price_direction=direction,
            is_honeypot=False,
            risk_score=10,
            timestamp=1,
        )
        assert prediction.direction_label == label

    def test_confidence_range(self):
        with pytest.raises(ValidationError):
            Prediction(
                confidence=101,
                price_direction=0,
                is_honeypot=False,
                risk_score=0,
                timestamp=0,
            )


def test_trade_settings_defaults():
    settings = TradeSettings()

    assert settings.enabled is True
    assert settings.min_confidence == 70
    assert settings.max_risk_score == 50
    assert settings.cooldown_last_fired_at is None


class TestErrors:
    def test_validation_rejected_uses_reason_code(self):
        error = ValidationRejected(
            RejectReason.COOLDOWN_ACTIVE, "wait", token=TKN, cooldown_remaining=12.0
        )

        assert error.kind is ErrorKind.VALIDATION
        assert error.code == "CooldownActive"
        assert error.cooldown_remaining == 12.0

    def test_balance_failure_kind(self):
        error = InsufficientBalance(USDC, 5, 10)
        assert error.kind is ErrorKind.BALANCE
        assert error.code == "InsufficientBalance"

    def test_no_quote_available_hint_comes_from_first_failure(self):
        failure = QuoteFailed(QuoteFailureKind.POOL_UNINITIALIZED, "no price")
        error = NoQuoteAvailable([(500, failure)])

        assert error.kind is ErrorKind.LIQUIDITY
        assert error.hint == QuoteFailureKind.POOL_UNINITIALIZED.hint
        assert "fee 500: PoolUninitialized" in error.message
