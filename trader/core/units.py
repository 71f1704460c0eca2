"""Integer base-unit math for token amounts."""

from decimal import Decimal, InvalidOperation

BPS_DENOMINATOR = 10_000


def to_base_units(amount: str, decimals: int) -> int:
    """Convert a decimal string to the token's smallest unit.

    Raises:
        ValueError: If the amount is malformed, not positive, or carries more
            fractional digits than the token supports.
    """
    text = (amount or "").strip()
    if not text:
        raise ValueError("Amount is empty")

    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if not value.is_finite() or value <= 0:
        raise ValueError(f"Amount must be positive: {amount!r}")

    scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {amount!r} has more than {decimals} decimals")

    return int(scaled)


def format_units(value: int, decimals: int) -> str:
    """Format base units as a decimal string without trailing zeros."""
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10**decimals)
    if decimals == 0 or frac == 0:
        return f"{sign}{whole}"
    frac_text = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_text}"


def apply_slippage(amount_out: int, slippage_bps: int) -> int:
    """Minimum output for a quote, truncated toward zero."""
    if not 0 <= slippage_bps <= BPS_DENOMINATOR:
        raise ValueError(f"Slippage out of range: {slippage_bps} bps")
    return amount_out * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR


def apply_gas_multiplier(gas_estimate: int, multiplier_pct: int) -> int:
    """Gas limit with a safety margin, rounded up."""
    return -(-gas_estimate * multiplier_pct // 100)
