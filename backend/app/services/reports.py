from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.ledger import TransactionType
from app.services.ledger import LedgerKind
from app.services.money import ZERO, quantize


@dataclass
class DailyLedgerRow:
    account_id: int
    date: date
    deposit: Decimal
    spend: Decimal
    balance: Decimal
    status: str


def day_status(balance: Decimal) -> str:
    if balance > ZERO:
        return "Advanced"
    if balance < ZERO:
        return "Due"
    return "No Due"


def _as_date(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


async def daily_ledger(db: AsyncSession, kind: LedgerKind, account_id: int) -> list[DailyLedgerRow]:
    """Per calendar day: payments received (deposit) against charges (spend), newest day first."""
    E = kind.entry_model
    day = func.date(E.occurred_at).label("day")
    deposit = func.sum(case((E.type == TransactionType.payment, E.amount), else_=0)).label("deposit")
    spend = func.sum(case((E.type == TransactionType.charge, E.amount), else_=0)).label("spend")

    q = await db.execute(
        select(day, deposit, spend)
        .where(E.account_id == account_id)
        .group_by(day)
        .order_by(day.desc())
    )
    rows: list[DailyLedgerRow] = []
    for d, dep, sp in q.all():
        dep = quantize(Decimal(str(dep or 0)))
        sp = quantize(Decimal(str(sp or 0)))
        balance = quantize(dep - sp)
        rows.append(DailyLedgerRow(account_id, _as_date(d), dep, sp, balance, day_status(balance)))
    return rows
