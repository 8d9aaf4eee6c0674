"""USD and native-unit conversions on scaled integers."""

from decimal import ROUND_DOWN, Decimal

# Fixed-point exponent applied to USD amounts and USD-per-native rates
RATE_PRECISION = 8


def _scaled(value: Decimal | int | str) -> int:
    amount = Decimal(str(value)) if not isinstance(value, Decimal) else value
    return int((amount * (10**RATE_PRECISION)).to_integral_value(rounding=ROUND_DOWN))


def usd_to_wei(
    amount_usd: Decimal | int | str,
    usd_per_native: Decimal | int | str,
    decimals: int = 18,
) -> int:
    """Convert a USD amount to the chain's base unit, rounding down.

    Args:
        amount_usd: Amount in USD
        usd_per_native: Price of one whole native coin in USD
        decimals: Native currency decimals

    Returns:
        Amount in base units (wei)

    Raises:
        ValueError: If the rate is not positive or the amount is negative
    """
    rate = _scaled(usd_per_native)
    if rate <= 0:
        raise ValueError(f"Invalid USD rate: {usd_per_native}")
    usd = _scaled(amount_usd)
    if usd < 0:
        raise ValueError(f"Negative amount: {amount_usd}")
    return usd * 10**decimals // rate


def wei_to_usd(
    amount_wei: int,
    usd_per_native: Decimal | int | str,
    decimals: int = 18,
) -> Decimal:
    """Convert base units to USD, quantized to cents."""
    rate = Decimal(str(usd_per_native))
    whole = Decimal(int(amount_wei)) / Decimal(10**decimals)
    return (whole * rate).quantize(Decimal("0.01"), rounding=ROUND_DOWN)


def wei_to_native(amount_wei: int, decimals: int = 18) -> Decimal:
    """Convert base units to whole native coins."""
    return Decimal(int(amount_wei)) / Decimal(10**decimals)
