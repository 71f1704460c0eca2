"""Tests for base-unit math."""

import pytest

from trader.core.units import (
    apply_gas_multiplier,
    apply_slippage,
    format_units,
    to_base_units,
)


class TestToBaseUnits:
    """Decimal strings to integer base units."""

    def test_whole_amount(self):
        assert to_base_units("100", 6) == 100_000_000

    def test_fractional_amount(self):
        assert to_base_units("0.5", 18) == 5 * 10**17
        assert to_base_units(" 1.25 ", 6) == 1_250_000

    @pytest.mark.parametrize("amount", ["", "   ", "abc", "0", "-1", "NaN", "Infinity"])
    def test_rejects_invalid(self, amount):
        with pytest.raises(ValueError):
            to_base_units(amount, 6)

    def test_rejects_excess_precision(self):
        with pytest.raises(ValueError, match="more than 6 decimals"):
            to_base_units("1.0000001", 6)


class TestFormatUnits:
    def test_trims_trailing_zeros(self):
        assert format_units(1_500_000, 6) == "1.5"
        assert format_units(40_000_000_000, 18) == "0.00000004"

    def test_whole_values(self):
        assert format_units(100_000_000, 6) == "100"
        assert format_units(7, 0) == "7"


class TestSlippage:
    def test_five_percent(self):
        assert apply_slippage(1_000_000, 500) == 950_000

    def test_truncates_toward_zero(self):
        # 999 * 9950 / 10000 = 994.005
        assert apply_slippage(999, 50) == 994

    def test_bounds(self):
        assert apply_slippage(1_000, 0) == 1_000
        assert apply_slippage(1_000, 10_000) == 0
        with pytest.raises(ValueError):
            apply_slippage(1_000, 10_001)


class TestGasMultiplier:
    def test_rounds_up(self):
        assert apply_gas_multiplier(100_000, 120) == 120_000
        assert apply_gas_multiplier(100_001, 120) == 120_002
        assert apply_gas_multiplier(21_000, 100) == 21_000
