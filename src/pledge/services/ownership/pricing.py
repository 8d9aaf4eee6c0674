"""Display price resolution for campaigns with incomplete data."""

from decimal import ROUND_DOWN, Decimal

CENT = Decimal("0.01")
ASSUMED_EDITIONS = 100


def _positive(value: Decimal | int | float | str | None) -> Decimal | None:
    if value is None:
        return None
    amount = Decimal(str(value))
    return amount if amount > 0 else None


def resolve_price_per_edition(
    nft_price: Decimal | None = None,
    price_per_copy: Decimal | None = None,
    goal: Decimal | None = None,
    num_copies: int | None = None,
    on_chain_price_usd: Decimal | None = None,
) -> Decimal:
    """Resolve a USD price per edition using a fixed fallback order.

    Order: explicit price (nft_price, then price_per_copy), goal divided by
    num_copies when num_copies > 0, the on-chain price, goal over an assumed
    100 editions, and finally zero.

    Args:
        nft_price: Admin-set NFT price
        price_per_copy: Admin-set price per copy
        goal: Campaign goal in USD
        num_copies: Edition count from the cache
        on_chain_price_usd: Contract price converted to USD

    Returns:
        Price per edition in USD, quantized to cents
    """
    explicit = _positive(nft_price) or _positive(price_per_copy)
    if explicit is not None:
        return explicit.quantize(CENT, rounding=ROUND_DOWN)

    goal_usd = _positive(goal)
    if goal_usd is not None and num_copies and num_copies > 0:
        return (goal_usd / num_copies).quantize(CENT, rounding=ROUND_DOWN)

    on_chain = _positive(on_chain_price_usd)
    if on_chain is not None:
        return on_chain.quantize(CENT, rounding=ROUND_DOWN)

    if goal_usd is not None:
        return (goal_usd / ASSUMED_EDITIONS).quantize(CENT, rounding=ROUND_DOWN)

    return Decimal("0.00")
