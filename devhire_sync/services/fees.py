from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from devhire_sync.models.schemas import FeeBreakdown, WITHDRAWAL_FEE_RATE
from devhire_sync.core.errors import InvalidAmount

CENTS = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """Coerce int/float/str/Decimal input into a cent-quantized Decimal."""
    if isinstance(value, bool) or value is None:
        raise InvalidAmount(value, "amount must be a number")
    if isinstance(value, float):
        # str() keeps the shortest repr, so 0.1 stays 0.1 rather than its binary expansion
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(value, "amount must be a number") from None
    if not amount.is_finite():
        raise InvalidAmount(value, "amount must be finite")
    try:
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount(value, "amount is too large") from None


def compute_fee(amount: Any, fee_rate: Any = WITHDRAWAL_FEE_RATE) -> FeeBreakdown:
    """
    Split a withdrawal amount into the admin fee and the developer's net payout.

    The fee is rounded half-up to cents and the net amount is whatever is
    left, so fee_amount + net_amount always equals the amount exactly.

    Raises:
        InvalidAmount: amount is not a positive finite number.
    """
    money = to_money(amount)
    if money <= 0:
        raise InvalidAmount(amount)
    rate = Decimal(str(fee_rate))
    fee_amount = (money * rate).quantize(CENTS, rounding=ROUND_HALF_UP)
    return FeeBreakdown(
        amount=money,
        fee_rate=rate,
        fee_amount=fee_amount,
        net_amount=money - fee_amount,
    )
