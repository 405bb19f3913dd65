from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.ledger import TransactionType
from app.schemas.common import Money
from app.services.errors import LedgerValidationError
from app.services.money import ZERO, to_money


class TransactionRequest(BaseModel):
    amount: Money
    type: TransactionType
    description: Optional[str] = Field(default=None, max_length=1000)
    # date ("2024-05-01") or ISO date-time; missing means today
    transaction_date: Optional[datetime] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, v):
        try:
            amount = to_money(v)
        except LedgerValidationError as e:
            raise ValueError(str(e))
        if amount <= ZERO:
            raise ValueError("Valid positive amount is required")
        return amount

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("transaction_date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        if v is None or isinstance(v, datetime):
            return v
        if isinstance(v, date):
            return datetime.combine(v, datetime.min.time())
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return None
            try:
                return datetime.fromisoformat(s)
            except ValueError:
                raise ValueError("transaction_date must be YYYY-MM-DD or an ISO date-time")
        return v


class TransactionOut(BaseModel):
    id: int
    type: TransactionType
    amount: Money
    balance_before: Money
    balance_after: Money
    description: Optional[str]
    transaction_date: datetime


class TransactionSummary(BaseModel):
    id: int
    type: TransactionType
    amount: Money
    description: Optional[str]
    transaction_date: datetime
    previous_balance: Money = Field(serialization_alias="previousBalance")
    new_balance: Money = Field(serialization_alias="newBalance")


class AccountHeader(BaseModel):
    id: int
    name: str
    current_balance: Money


class TransactionHistory(BaseModel):
    account: AccountHeader
    items: List[TransactionOut]
    total: int


class DailyLedgerOut(BaseModel):
    date: date
    deposit: Money
    spend: Money
    balance: Money
    status: str


class DailyLedger(BaseModel):
    account: AccountHeader
    items: List[DailyLedgerOut]


class DriftOut(BaseModel):
    transaction_id: Optional[int]
    field: str
    stored: Money
    expected: Money


class VerifyReport(BaseModel):
    account: AccountHeader
    ok: bool
    drift: List[DriftOut]


class DeletedTransaction(BaseModel):
    ok: bool = True
    transaction_id: int
    new_balance: Money = Field(serialization_alias="newBalance")
