"""Split calculation for three-way distributions.

Each beneficiary's share is computed independently as
``round(amount * weight * 10**decimals)`` with ties rounded away from zero
(``ROUND_HALF_UP``). There is no remainder redistribution: the shares may not
add up to the rounded total; the drift is bounded by two units.
"""

from decimal import ROUND_HALF_UP, Decimal

from .errors import InvalidAmount
from .types import DistributionPolicy
from .utils import parse_money_to_decimal

_ONE = Decimal(1)


def _validate_amount(amount: Decimal | int | float | str) -> Decimal:
    try:
        value = parse_money_to_decimal(amount)
    except ValueError as e:
        raise InvalidAmount(str(e)) from None
    if not value.is_finite():
        raise InvalidAmount(f"Amount must be finite, got {amount}")
    if value <= 0:
        raise InvalidAmount(f"Amount must be positive, got {amount}")
    return value


def round_token_units(amount: Decimal, decimals: int) -> int:
    """Round a decimal amount to the nearest smallest unit, ties away from zero."""
    return int(amount.scaleb(decimals).quantize(_ONE, rounding=ROUND_HALF_UP))


def compute_split(
    amount: Decimal | int | float | str,
    policy: DistributionPolicy,
    decimals: int,
) -> dict[str, int]:
    """Calculate each beneficiary's share in the token's smallest unit.

    Args:
        amount: Paid amount in the token's reference unit (e.g. 0.01 USDC).
        policy: Distribution policy.
        decimals: Token decimals (6 for USDC).

    Returns:
        Mapping of beneficiary label to token amount, in host, curator,
        platform order.

    Raises:
        InvalidAmount: If amount is not positive or not finite.
    """
    value = _validate_amount(amount)
    return {
        b.label: round_token_units(value * b.weight, decimals)
        for b in policy.beneficiaries
    }


def split_drift(
    shares: dict[str, int],
    amount: Decimal | int | float | str,
    decimals: int,
) -> int:
    """Difference between the summed shares and the rounded total."""
    total = round_token_units(_validate_amount(amount), decimals)
    return sum(shares.values()) - total
