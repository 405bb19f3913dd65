from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, ledger_dependency, require_admin, require_user
from app.schemas.ledger import (
    AccountHeader,
    DailyLedger,
    DailyLedgerOut,
    DeletedTransaction,
    DriftOut,
    TransactionHistory,
    TransactionOut,
    TransactionRequest,
    TransactionSummary,
    VerifyReport,
)
from app.services.ledger import LedgerEngine, LedgerKind, LedgerRepository, Posting
from app.services.money import ZERO
from app.services.reports import daily_ledger

BALANCE_FILTERS = {
    "debt": lambda col: col > ZERO,
    "owe": lambda col: col < ZERO,
    "clear": lambda col: col == ZERO,
}


@dataclass(frozen=True)
class AccountSchemas:
    create: type[BaseModel]
    update: type[BaseModel]
    out: type[BaseModel]
    page: type[BaseModel]
    posting: type[BaseModel]


def txn_out(e) -> TransactionOut:
    return TransactionOut(
        id=e.id,
        type=e.type,
        amount=e.amount,
        balance_before=e.balance_before,
        balance_after=e.balance_after,
        description=e.description,
        transaction_date=e.occurred_at,
    )


def header(a) -> AccountHeader:
    return AccountHeader(id=a.id, name=a.display_name, current_balance=a.balance)


def build_account_router(kind: LedgerKind, schemas: AccountSchemas) -> APIRouter:
    """CRUD plus ledger endpoints for one account kind (customers or suppliers)."""
    router = APIRouter()
    Account = kind.account_model
    get_ledger = ledger_dependency(kind.name)

    def _to_out(a):
        return schemas.out.model_validate(a, from_attributes=True)

    def _posting_out(p: Posting):
        summary = TransactionSummary(
            id=p.entry.id,
            type=p.entry.type,
            amount=p.entry.amount,
            description=p.entry.description,
            transaction_date=p.entry.occurred_at,
            previous_balance=p.balance_before,
            new_balance=p.balance_after,
        )
        return schemas.posting(**_to_out(p.account).model_dump(), transaction=summary)

    @router.get("", response_model=schemas.page)
    async def list_accounts(
        db: AsyncSession = Depends(get_db),
        user=Depends(require_user),
        filter: str = Query("all", pattern="^(all|debt|owe|clear)$"),
        offset: int = Query(0, ge=0),
        limit: int = Query(200, ge=1, le=1000),
    ):
        base = select(Account)
        if filter in BALANCE_FILTERS:
            base = base.where(BALANCE_FILTERS[filter](Account.balance))
        total_q = await db.execute(select(func.count()).select_from(base.subquery()))
        total = int(total_q.scalar_one())
        q = await db.execute(base.order_by(Account.created_at.desc(), Account.id.desc()).limit(limit).offset(offset))
        return schemas.page(items=[_to_out(a) for a in q.scalars().all()], total=total)

    @router.get("/{account_id}", response_model=schemas.out)
    async def get_account(account_id: int, db: AsyncSession = Depends(get_db), user=Depends(require_user)):
        return _to_out(await LedgerRepository(db, kind).get_account(account_id))

    @router.post("", response_model=schemas.out, status_code=201)
    async def create_account(
        payload: schemas.create,
        ledger: LedgerEngine = Depends(get_ledger),
        user=Depends(require_user),
    ):
        fields = payload.model_dump(exclude={"previous_due"})
        account = await ledger.open_account(fields, previous_due=payload.previous_due)
        return _to_out(account)

    @router.put("/{account_id}", response_model=schemas.out)
    @router.patch("/{account_id}", response_model=schemas.out)
    async def update_account(
        account_id: int,
        payload: schemas.update,
        db: AsyncSession = Depends(get_db),
        user=Depends(require_user),
    ):
        account = await LedgerRepository(db, kind).get_account(account_id)
        fields = payload.model_fields_set
        for name in schemas.update.REQUIRED:
            if name in fields and getattr(payload, name) is None:
                raise HTTPException(status_code=400, detail=f"{name} is required")
        for name in fields:
            setattr(account, name, getattr(payload, name))
        await db.commit()
        await db.refresh(account)
        return _to_out(account)

    @router.delete("/{account_id}")
    async def delete_account(account_id: int, ledger: LedgerEngine = Depends(get_ledger), user=Depends(require_user)):
        await ledger.remove_account(account_id)
        return {"ok": True, "message": f"{kind.label} deleted successfully"}

    @router.post("/{account_id}/balance", response_model=schemas.posting)
    async def record_transaction(
        account_id: int,
        payload: TransactionRequest,
        ledger: LedgerEngine = Depends(get_ledger),
        user=Depends(require_user),
    ):
        posting = await ledger.record_transaction(
            account_id,
            payload.type,
            payload.amount,
            occurred_at=payload.transaction_date,
            description=payload.description,
        )
        return _posting_out(posting)

    @router.put("/{account_id}/transactions/{transaction_id}", response_model=schemas.posting)
    async def edit_transaction(
        account_id: int,
        transaction_id: int,
        payload: TransactionRequest,
        ledger: LedgerEngine = Depends(get_ledger),
        user=Depends(require_user),
    ):
        posting = await ledger.edit_transaction(
            account_id,
            transaction_id,
            payload.type,
            payload.amount,
            description=payload.description,
            occurred_at=payload.transaction_date,
        )
        return _posting_out(posting)

    @router.delete("/{account_id}/transactions/{transaction_id}", response_model=DeletedTransaction)
    async def delete_transaction(
        account_id: int,
        transaction_id: int,
        ledger: LedgerEngine = Depends(get_ledger),
        user=Depends(require_user),
    ):
        posting = await ledger.delete_transaction(account_id, transaction_id)
        return DeletedTransaction(transaction_id=transaction_id, new_balance=posting.account.balance)

    @router.get("/{account_id}/transactions", response_model=TransactionHistory)
    async def list_transactions(
        account_id: int,
        db: AsyncSession = Depends(get_db),
        user=Depends(require_user),
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ):
        repo = LedgerRepository(db, kind)
        account = await repo.get_account(account_id)
        start = datetime.combine(start_date, time.min) if start_date else None
        end = datetime.combine(end_date + timedelta(days=1), time.min) if end_date else None
        rows = await repo.entries_between(account_id, start, end)
        return TransactionHistory(account=header(account), items=[txn_out(e) for e in rows], total=len(rows))

    @router.get("/{account_id}/ledger", response_model=TransactionHistory)
    async def ledger_rows(account_id: int, db: AsyncSession = Depends(get_db), user=Depends(require_user)):
        repo = LedgerRepository(db, kind)
        account = await repo.get_account(account_id)
        rows = await repo.entries(account_id)
        return TransactionHistory(account=header(account), items=[txn_out(e) for e in rows], total=len(rows))

    @router.get("/{account_id}/daily-ledger", response_model=DailyLedger)
    async def daily(account_id: int, db: AsyncSession = Depends(get_db), user=Depends(require_user)):
        account = await LedgerRepository(db, kind).get_account(account_id)
        rows = await daily_ledger(db, kind, account_id)
        items = [
            DailyLedgerOut(date=r.date, deposit=r.deposit, spend=r.spend, balance=r.balance, status=r.status)
            for r in rows
        ]
        return DailyLedger(account=header(account), items=items)

    @router.get("/{account_id}/verify", response_model=VerifyReport)
    async def verify(
        account_id: int,
        db: AsyncSession = Depends(get_db),
        ledger: LedgerEngine = Depends(get_ledger),
        user=Depends(require_user),
    ):
        drift = await ledger.verify(account_id)
        account = await LedgerRepository(db, kind).get_account(account_id)
        return VerifyReport(
            account=header(account),
            ok=not drift,
            drift=[DriftOut(transaction_id=d.entry_id, field=d.field, stored=d.stored, expected=d.expected) for d in drift],
        )

    @router.post("/{account_id}/rebuild", response_model=schemas.out)
    async def rebuild(account_id: int, ledger: LedgerEngine = Depends(get_ledger), admin=Depends(require_admin)):
        return _to_out(await ledger.rebuild(account_id))

    return router
