from pydantic import BaseModel, Field
from typing import ClassVar, Optional, List
from datetime import datetime

from app.schemas.common import Money, MoneyIn
from app.schemas.ledger import TransactionSummary


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = None
    previous_due: Optional[MoneyIn] = None


class CustomerUpdate(BaseModel):
    REQUIRED: ClassVar[tuple[str, ...]] = ("name",)

    name: Optional[str] = Field(default=None, min_length=1, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = None


class CustomerOut(BaseModel):
    id: int
    name: str
    phone: Optional[str]
    email: Optional[str]
    address: Optional[str]
    balance: Money
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CustomerList(BaseModel):
    items: List[CustomerOut]
    total: int


class CustomerPostingOut(CustomerOut):
    transaction: TransactionSummary


class SupplierCreate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=128)
    contact_person: str = Field(min_length=1, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = None
    previous_due: Optional[MoneyIn] = None


class SupplierUpdate(BaseModel):
    REQUIRED: ClassVar[tuple[str, ...]] = ("contact_person",)

    name: Optional[str] = Field(default=None, max_length=128)
    contact_person: Optional[str] = Field(default=None, min_length=1, max_length=128)
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=255)
    address: Optional[str] = None


class SupplierOut(BaseModel):
    id: int
    name: Optional[str]
    contact_person: str
    phone: Optional[str]
    email: Optional[str]
    address: Optional[str]
    balance: Money
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SupplierList(BaseModel):
    items: List[SupplierOut]
    total: int


class SupplierPostingOut(SupplierOut):
    transaction: TransactionSummary
