from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.services.errors import LedgerValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Numeric(12,2): at most 10 integer digits
MONEY_LIMIT = Decimal(10) ** 10


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _bounded(d: Decimal) -> Decimal:
    if d.copy_abs() >= MONEY_LIMIT:
        raise LedgerValidationError("Amount is too large")
    q = quantize(d)
    if q.copy_abs() >= MONEY_LIMIT:
        raise LedgerValidationError("Amount is too large")
    return q


def to_money(value) -> Decimal:
    """Parse a boundary value (str, int, float or Decimal) into a cent-rounded Decimal."""
    if isinstance(value, bool) or value is None:
        raise LedgerValidationError("Valid positive amount is required")
    if isinstance(value, float):
        value = repr(value)
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise LedgerValidationError("Valid positive amount is required")
    if not d.is_finite():
        raise LedgerValidationError("Valid positive amount is required")
    return _bounded(d)


def require_amount(amount: Decimal) -> Decimal:
    """Check an already parsed amount: finite, positive at cent precision, fits the column."""
    if isinstance(amount, int) and not isinstance(amount, bool):
        amount = Decimal(amount)
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise LedgerValidationError("Valid positive amount is required")
    amount = _bounded(amount)
    if amount <= ZERO:
        raise LedgerValidationError("Valid positive amount is required")
    return amount
