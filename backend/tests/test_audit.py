from decimal import Decimal

import pytest
from sqlalchemy import update

from app.models.ledger import SupplierTransaction
from app.services.reports import day_status
from app.tasks.audit import audit_all
from conftest import D, day

pytestmark = pytest.mark.anyio


async def test_audit_counts_and_repairs_drift(ledgers, session_factory):
    customers, suppliers = ledgers["customer"], ledgers["supplier"]
    c = await customers.open_account({"name": "Clean"})
    await customers.record_transaction(c.id, "charge", D(10), day(1))
    s = await suppliers.open_account({"contact_person": "Broken"})
    posting = await suppliers.record_transaction(s.id, "charge", D(10), day(1))
    await suppliers.record_transaction(s.id, "payment", D(4), day(2))

    async with session_factory() as db:
        await db.execute(
            update(SupplierTransaction)
            .where(SupplierTransaction.id == posting.entry.id)
            .values(balance_before=Decimal("3.00"))
        )
        await db.commit()

    stats = await audit_all(ledgers, repair=False)
    assert stats.scanned_accounts == 2
    assert stats.drifted_accounts == 1
    assert stats.drifted_rows == 1
    assert stats.repaired_accounts == 0

    stats = await audit_all(ledgers, repair=True)
    assert stats.repaired_accounts == 1
    assert await suppliers.verify(s.id) == []

    stats = await audit_all(ledgers)
    assert stats.drifted_accounts == 0


@pytest.mark.parametrize(
    "balance,status",
    [(Decimal("0.01"), "Advanced"), (Decimal("-3"), "Due"), (Decimal("0.00"), "No Due")],
)
def test_day_status(balance, status):
    assert day_status(balance) == status
