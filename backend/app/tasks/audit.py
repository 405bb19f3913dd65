from __future__ import annotations
import asyncio
import logging

from app.core.celery_app import celery_app
from app.core.config import settings
from app.core.db import AsyncSessionLocal, engine
from app.services.errors import LedgerError
from app.services.ledger import build_ledgers
from app.services.locks import build_account_locks, redis_lock
from app.services.task_metrics import AuditRunStats

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.audit.audit_ledgers")
def audit_ledgers():
    lock_ttl = max(300, int(getattr(settings, "LEDGER_AUDIT_SECONDS", 3600) or 3600))
    with redis_lock("tradebook:lock:audit_ledgers", ttl_seconds=lock_ttl) as ok:
        if not ok:
            logger.info("audit_ledgers skipped: lock not acquired")
            return
        asyncio.run(_audit_ledgers_once())


async def _audit_ledgers_once():
    ledgers = build_ledgers(AsyncSessionLocal, build_account_locks(settings))
    try:
        stats = await audit_all(ledgers, repair=settings.LEDGER_AUDIT_REPAIR)
    finally:
        await engine.dispose()
    logger.info("audit_ledgers stats=%s", stats)


# internal

async def audit_all(ledgers: dict, repair: bool = False) -> AuditRunStats:
    stats = AuditRunStats()
    for name, ledger in ledgers.items():
        for account_id in await ledger.account_ids():
            stats.scanned_accounts += 1
            try:
                drift = await ledger.verify(account_id)
                if not drift:
                    continue
                stats.drifted_accounts += 1
                stats.drifted_rows += len(drift)
                logger.warning(
                    "ledger drift kind=%s account_id=%s rows=%s first=%s",
                    name, account_id, len(drift), drift[0],
                )
                if repair:
                    await ledger.rebuild(account_id)
                    stats.repaired_accounts += 1
            except LedgerError as e:
                # account removed mid-scan or store failure; the next run picks it up
                stats.errors += 1
                logger.warning("ledger audit failed kind=%s account_id=%s err=%s", name, account_id, str(e)[:220])
    return stats
