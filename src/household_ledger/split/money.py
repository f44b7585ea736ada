"""Money arithmetic for expense splits.

All amounts are Decimal values quantized to cents. Storage uses integer
cents so comparisons in conditional writes are exact.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def round_money(amount: Decimal | int | float | str) -> Decimal:
    """
    Round an amount to 2 decimals using ROUND_HALF_UP.

    Floats are converted through ``str`` so 0.1 stays 0.1.
    """
    if isinstance(amount, float):
        amount = str(amount)
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    """Convert a Decimal amount to integer cents."""
    return int((round_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a 2-decimal Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)


def share_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """Compute ``round(amount * percentage / 100, 2)``."""
    return round_money(Decimal(amount) * Decimal(percentage) / HUNDRED)


def assign_remainder(
    shares: dict[str, Decimal], expected_total: Decimal
) -> dict[str, Decimal]:
    """
    Make rounded shares sum exactly to ``expected_total``.

    The residual left by per-share rounding goes to the largest share
    (ties broken by key). Each rounded share is off by at most half a cent,
    so a residual larger than that many half cents means the inputs are
    inconsistent.

    Args:
        shares: Rounded share per key
        expected_total: The total the shares must add up to

    Returns:
        A new mapping with the residual applied

    Raises:
        ValueError: If the residual exceeds what rounding can explain
    """
    if not shares:
        return {}

    residual = round_money(expected_total) - sum(shares.values(), Decimal("0"))
    if residual == 0:
        return dict(shares)

    max_residual = CENT * len(shares)
    if abs(residual) > max_residual:
        raise ValueError(
            f"Split residual {residual} exceeds rounding bound {max_residual}"
        )

    largest_key = sorted(shares, key=lambda k: (-shares[k], k))[0]
    adjusted = dict(shares)
    adjusted[largest_key] = shares[largest_key] + residual

    logger.info(f"Applied rounding adjustment of {residual} to split for {largest_key}")
    return adjusted
