"""Fixed-point money helpers. Amounts are ``Decimal`` with two places."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest single amount a NUMERIC(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")


def to_money(value: Decimal | int | str, field: str = "amount") -> Decimal:
    """Convert *value* to a cent-quantized ``Decimal``.

    Floats are rejected outright and so are values carrying more than two
    decimal places, so nothing is ever rounded silently.
    """
    if isinstance(value, float) or isinstance(value, bool):
        raise ValidationError(f"{field} must be a decimal amount")
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            raise ValidationError(f"{field} must be a finite amount")
        quantized = amount.quantize(CENT)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a decimal amount") from None
    if amount != quantized:
        raise ValidationError(f"{field} must have at most two decimal places")
    if abs(quantized) > MAX_AMOUNT:
        raise ValidationError(f"{field} must not exceed {MAX_AMOUNT}")
    return quantized


def positive_money(value: Decimal | int | str, field: str = "amount") -> Decimal:
    amount = to_money(value, field)
    if amount <= ZERO:
        raise ValidationError(f"{field} must be greater than zero")
    return amount
