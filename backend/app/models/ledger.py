from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


class TransactionType(str, enum.Enum):
    charge = "charge"    # raises what the account owes (or is owed)
    payment = "payment"  # lowers it


class LedgerEntryFields:
    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, native_enum=False, length=16), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # NOTE: the column keeps the historical name "created_at" but holds the
    # caller supplied (possibly backdated) occurrence time.
    occurred_at: Mapped[datetime] = mapped_column("created_at", DateTime, nullable=False)


class CustomerTransaction(Base, LedgerEntryFields):
    __tablename__ = "customer_transactions"
    __table_args__ = (Index("ix_customer_transactions_order", "customer_id", "created_at", "id"),)

    account_id: Mapped[int] = mapped_column(
        "customer_id", Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )


class SupplierTransaction(Base, LedgerEntryFields):
    __tablename__ = "supplier_transactions"
    __table_args__ = (Index("ix_supplier_transactions_order", "supplier_id", "created_at", "id"),)

    account_id: Mapped[int] = mapped_column(
        "supplier_id", Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False
    )
