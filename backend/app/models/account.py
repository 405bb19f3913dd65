from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base
from app.models.common import TimestampMixin


class AccountFields(TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # cached balance_after of the last transaction in ledger order
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)


class Customer(Base, AccountFields):
    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(128), nullable=False)

    @property
    def display_name(self) -> str:
        return self.name


class Supplier(Base, AccountFields):
    __tablename__ = "suppliers"

    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    contact_person: Mapped[str] = mapped_column(String(128), nullable=False)

    @property
    def display_name(self) -> str:
        return self.name or self.contact_person
