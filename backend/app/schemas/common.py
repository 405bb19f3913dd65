from decimal import Decimal
from typing import Annotated

from pydantic import BeforeValidator, PlainSerializer

from app.services.errors import LedgerValidationError
from app.services.money import to_money


def _parse_money(v):
    try:
        return to_money(v)
    except LedgerValidationError as e:
        raise ValueError(str(e))


# Decimal in Python, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

# request side: cent-rounded and within the column range
MoneyIn = Annotated[Money, BeforeValidator(_parse_money)]
