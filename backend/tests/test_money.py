from decimal import Decimal

import pytest

from app.services.errors import LedgerValidationError
from app.services.money import require_amount, to_money


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("10", "10.00"),
        (" 7.5 ", "7.50"),
        (3, "3.00"),
        (0.1, "0.10"),
        ("2.675", "2.68"),
        (Decimal("-1.005"), "-1.01"),
    ],
)
def test_to_money_rounds_half_up(raw, expected):
    assert to_money(raw) == Decimal(expected)


@pytest.mark.parametrize("raw", ["abc", "", None, True, "inf", "NaN", float("nan")])
def test_to_money_rejects_non_numbers(raw):
    with pytest.raises(LedgerValidationError):
        to_money(raw)


def test_require_amount():
    assert require_amount(Decimal("0.005")) == Decimal("0.01")
    assert require_amount(4) == Decimal("4.00")
    for bad in (Decimal("0"), Decimal("-3"), Decimal("0.004"), Decimal("Infinity"), "5", 2.5):
        with pytest.raises(LedgerValidationError):
            require_amount(bad)


@pytest.mark.parametrize("raw", ["1e30", Decimal("1e30"), 1e30, "10000000000", "-10000000000", "9999999999.995"])
def test_to_money_rejects_amounts_past_the_column(raw):
    with pytest.raises(LedgerValidationError):
        to_money(raw)


def test_require_amount_bounds():
    assert require_amount(Decimal("9999999999.99")) == Decimal("9999999999.99")
    for bad in (Decimal("1e30"), Decimal("10000000000"), 10**12):
        with pytest.raises(LedgerValidationError):
            require_amount(bad)
