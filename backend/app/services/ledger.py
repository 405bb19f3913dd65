"""Running-balance ledger shared by customers and suppliers.

Every account owns a sequence of signed transactions. Sorted by
``(occurred_at, id)`` (the ledger order) each row carries the balance before
and after it, and the account caches the closing balance. Every write keeps
that chain consistent inside one database transaction while holding the
account's lock.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Iterable, Iterator, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.account import Customer, Supplier
from app.models.ledger import CustomerTransaction, SupplierTransaction, TransactionType
from app.services.errors import LedgerError, LedgerValidationError, NotFound, PersistenceFailure
from app.services.money import ZERO, quantize, require_amount, to_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerKind:
    name: str
    label: str
    account_model: type
    entry_model: type


CUSTOMER_LEDGER = LedgerKind("customer", "Customer", Customer, CustomerTransaction)
SUPPLIER_LEDGER = LedgerKind("supplier", "Supplier", Supplier, SupplierTransaction)
LEDGER_KINDS = {k.name: k for k in (CUSTOMER_LEDGER, SUPPLIER_LEDGER)}


@dataclass
class Posting:
    account: Any
    entry: Any
    balance_before: Decimal
    balance_after: Decimal


@dataclass
class LedgerDrift:
    entry_id: int | None  # None: the account's cached balance
    field: str
    stored: Decimal
    expected: Decimal


def apply_entry(balance: Decimal, kind: TransactionType, amount: Decimal) -> Decimal:
    if kind == TransactionType.charge:
        return quantize(balance + amount)
    return quantize(balance - amount)


def ledger_key(entry) -> tuple[datetime, int]:
    return entry.occurred_at, entry.id


def running_balances(entries: Iterable, opening: Decimal = ZERO) -> Iterator[tuple[Any, Decimal, Decimal]]:
    running = opening
    for e in entries:
        before = running
        running = apply_entry(running, e.type, e.amount)
        yield e, before, running


def replay(entries: Iterable, opening: Decimal = ZERO) -> Decimal:
    """Rewrite the balances of ``entries`` (already in ledger order) and return the closing balance."""
    closing = opening
    for e, before, after in running_balances(entries, opening):
        e.balance_before = before
        e.balance_after = after
        closing = after
    return closing


def find_drift(entries: Sequence, cached_balance: Decimal) -> list[LedgerDrift]:
    out: list[LedgerDrift] = []
    closing = ZERO
    for e, before, after in running_balances(sorted(entries, key=ledger_key)):
        if quantize(e.balance_before) != before:
            out.append(LedgerDrift(e.id, "balance_before", e.balance_before, before))
        if quantize(e.balance_after) != after:
            out.append(LedgerDrift(e.id, "balance_after", e.balance_after, after))
        closing = after
    if quantize(cached_balance) != closing:
        out.append(LedgerDrift(None, "balance", cached_balance, closing))
    return out


def require_kind(kind) -> TransactionType:
    try:
        return TransactionType(kind)
    except ValueError:
        raise LedgerValidationError('Type must be either "payment" or "charge"')


def normalize_occurred_at(value: datetime | date | None) -> datetime:
    """Stored occurrences are naive UTC. A bare date (or no value) means midnight of that day."""
    if value is None:
        return datetime.combine(datetime.now(timezone.utc).date(), time.min)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise LedgerValidationError("transaction_date must be a date or a date-time")


class LedgerRepository:
    """Row access for one account kind, always in ledger order."""

    def __init__(self, db: AsyncSession, kind: LedgerKind):
        self.db = db
        self.kind = kind

    @property
    def Account(self):
        return self.kind.account_model

    @property
    def Entry(self):
        return self.kind.entry_model

    async def get_account(self, account_id: int, for_update: bool = False):
        stmt = select(self.Account).where(self.Account.id == account_id)
        if for_update:
            stmt = stmt.with_for_update()
        q = await self.db.execute(stmt)
        account = q.scalar_one_or_none()
        if not account:
            raise NotFound(f"{self.kind.label} not found")
        return account

    def _ordered(self, *where):
        E = self.Entry
        return select(E).where(*where).order_by(E.occurred_at.asc(), E.id.asc())

    async def _all(self, stmt) -> list:
        q = await self.db.execute(stmt)
        return list(q.scalars().all())

    async def entries(self, account_id: int, exclude_id: int | None = None) -> list:
        E = self.Entry
        where = [E.account_id == account_id]
        if exclude_id is not None:
            where.append(E.id != exclude_id)
        return await self._all(self._ordered(*where))

    async def entries_through(self, account_id: int, occurred_at: datetime) -> list:
        E = self.Entry
        return await self._all(self._ordered(E.account_id == account_id, E.occurred_at <= occurred_at))

    async def entries_after(self, account_id: int, occurred_at: datetime) -> list:
        E = self.Entry
        return await self._all(self._ordered(E.account_id == account_id, E.occurred_at > occurred_at))

    async def entries_between(self, account_id: int, start: datetime | None, end: datetime | None) -> list:
        E = self.Entry
        where = [E.account_id == account_id]
        if start is not None:
            where.append(E.occurred_at >= start)
        if end is not None:
            where.append(E.occurred_at < end)
        q = await self.db.execute(select(E).where(*where).order_by(E.occurred_at.desc(), E.id.desc()))
        return list(q.scalars().all())

    async def get_entry(self, account_id: int, entry_id: int):
        E = self.Entry
        q = await self.db.execute(select(E).where(E.id == entry_id, E.account_id == account_id))
        entry = q.scalar_one_or_none()
        if not entry:
            raise NotFound("Transaction not found")
        return entry

    async def add_entry(self, **fields):
        entry = self.Entry(**fields)
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def delete_entry(self, entry) -> None:
        await self.db.delete(entry)
        await self.db.flush()

    async def delete_account(self, account) -> None:
        await self.db.execute(delete(self.Entry).where(self.Entry.account_id == account.id))
        await self.db.delete(account)


class LedgerEngine:
    """Writes to one kind of ledger. One instance per kind is built at startup."""

    def __init__(self, kind: LedgerKind, session_factory: async_sessionmaker[AsyncSession], locks):
        self.kind = kind
        self.session_factory = session_factory
        self.locks = locks

    def lock_key(self, account_id: int) -> str:
        return f"{self.kind.name}:{account_id}"

    @asynccontextmanager
    async def _unit_of_work(self, op: str, account_id: int | None = None):
        """Repository inside one database transaction, under the account lock when one is given."""
        if account_id is None:
            async with self._session(op, account_id) as repo:
                yield repo
            return
        async with self.locks.hold(self.lock_key(account_id)):
            async with self._session(op, account_id) as repo:
                yield repo

    @asynccontextmanager
    async def _session(self, op: str, account_id: int | None):
        async with self.session_factory() as db:
            try:
                async with db.begin():
                    yield LedgerRepository(db, self.kind)
            except LedgerError:
                raise
            except SQLAlchemyError as e:
                logger.exception("ledger %s rolled back kind=%s account_id=%s", op, self.kind.name, account_id)
                raise PersistenceFailure("Could not save the ledger, nothing was changed") from e

    async def record_transaction(
        self,
        account_id: int,
        kind: TransactionType | str,
        amount: Decimal,
        occurred_at: datetime | date | None = None,
        description: str | None = None,
    ) -> Posting:
        kind = require_kind(kind)
        amount = require_amount(amount)
        occurred_at = normalize_occurred_at(occurred_at)

        async with self._unit_of_work("record", account_id) as repo:
            account = await repo.get_account(account_id, for_update=True)

            # rows on or before the new occurrence already precede it (lower ids win ties)
            balance_before = ZERO
            for prior in await repo.entries_through(account_id, occurred_at):
                balance_before = apply_entry(balance_before, prior.type, prior.amount)

            entry = await repo.add_entry(
                account_id=account_id,
                type=kind,
                amount=amount,
                description=description,
                occurred_at=occurred_at,
                balance_before=balance_before,
                balance_after=apply_entry(balance_before, kind, amount),
            )

            later = await repo.entries_after(account_id, occurred_at)
            account.balance = replay(later, opening=entry.balance_after)

        logger.info(
            "ledger record kind=%s account_id=%s txn_id=%s type=%s amount=%s balance=%s shifted=%s",
            self.kind.name, account_id, entry.id, kind.value, amount, account.balance, len(later),
        )
        return Posting(account, entry, entry.balance_before, entry.balance_after)

    async def edit_transaction(
        self,
        account_id: int,
        transaction_id: int,
        kind: TransactionType | str,
        amount: Decimal,
        description: str | None = None,
        occurred_at: datetime | date | None = None,
    ) -> Posting:
        kind = require_kind(kind)
        amount = require_amount(amount)
        if occurred_at is not None:
            occurred_at = normalize_occurred_at(occurred_at)

        async with self._unit_of_work("edit", account_id) as repo:
            account = await repo.get_account(account_id, for_update=True)
            entry = await repo.get_entry(account_id, transaction_id)
            others = await repo.entries(account_id, exclude_id=transaction_id)

            entry.type = kind
            entry.amount = amount
            entry.description = description
            if occurred_at is not None:
                entry.occurred_at = occurred_at

            # the edit may move the row, so the whole chain is rebuilt from zero
            account.balance = replay(sorted([*others, entry], key=ledger_key))

        logger.info(
            "ledger edit kind=%s account_id=%s txn_id=%s type=%s amount=%s balance=%s",
            self.kind.name, account_id, transaction_id, kind.value, amount, account.balance,
        )
        return Posting(account, entry, entry.balance_before, entry.balance_after)

    async def delete_transaction(self, account_id: int, transaction_id: int) -> Posting:
        async with self._unit_of_work("delete", account_id) as repo:
            account = await repo.get_account(account_id, for_update=True)
            entry = await repo.get_entry(account_id, transaction_id)
            await repo.delete_entry(entry)
            account.balance = replay(await repo.entries(account_id))

        logger.info(
            "ledger delete kind=%s account_id=%s txn_id=%s balance=%s",
            self.kind.name, account_id, transaction_id, account.balance,
        )
        return Posting(account, entry, entry.balance_before, entry.balance_after)

    async def rebuild(self, account_id: int):
        """Recompute the whole chain from zero. Running it twice changes nothing."""
        async with self._unit_of_work("rebuild", account_id) as repo:
            account = await repo.get_account(account_id, for_update=True)
            account.balance = replay(await repo.entries(account_id))
        return account

    async def verify(self, account_id: int) -> list[LedgerDrift]:
        async with self._unit_of_work("verify") as repo:
            account = await repo.get_account(account_id)
            entries = await repo.entries(account_id)
        return find_drift(entries, account.balance)

    async def account_ids(self) -> list[int]:
        async with self._unit_of_work("scan") as repo:
            q = await repo.db.execute(select(self.kind.account_model.id).order_by(self.kind.account_model.id.asc()))
            return list(q.scalars().all())

    async def open_account(self, fields: dict, previous_due: Decimal | None = None):
        """Create an account. A non-zero previous due becomes its first transaction."""
        due = to_money(previous_due) if previous_due is not None else ZERO
        async with self._unit_of_work("open") as repo:
            account = self.kind.account_model(**fields, balance=ZERO)
            repo.db.add(account)
            await repo.db.flush()
            if due != ZERO:
                entry = await repo.add_entry(
                    account_id=account.id,
                    type=TransactionType.charge if due > ZERO else TransactionType.payment,
                    amount=abs(due),
                    description="Initial Due" if due > ZERO else "Initial Credit",
                    occurred_at=normalize_occurred_at(None),
                    balance_before=ZERO,
                    balance_after=ZERO,
                )
                account.balance = replay([entry])

        logger.info("ledger open kind=%s account_id=%s balance=%s", self.kind.name, account.id, account.balance)
        return account

    async def remove_account(self, account_id: int) -> None:
        async with self._unit_of_work("remove", account_id) as repo:
            account = await repo.get_account(account_id, for_update=True)
            await repo.delete_account(account)
        logger.info("ledger remove kind=%s account_id=%s", self.kind.name, account_id)


def build_ledgers(session_factory: async_sessionmaker[AsyncSession], locks) -> dict[str, LedgerEngine]:
    return {name: LedgerEngine(kind, session_factory, locks) for name, kind in LEDGER_KINDS.items()}
