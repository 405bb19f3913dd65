import argparse
import asyncio
from sqlalchemy import select
from app.core.db import AsyncSessionLocal, engine, init_models
from app.core.security import hash_password
from app.models.user import User
from app.services.errors import LedgerError
from app.services.ledger import LEDGER_KINDS, build_ledgers
from app.services.locks import build_account_locks
from app.tasks.audit import audit_all

async def create_admin(username: str, password: str):
    await init_models(engine)
    async with AsyncSessionLocal() as db:
        q = await db.execute(select(User).where(User.username == username))
        if q.scalar_one_or_none():
            raise SystemExit("User already exists")
        admin = User(
            username=username,
            password_hash=hash_password(password),
            role="admin",
        )
        db.add(admin)
        await db.commit()
        print("Created admin:", username)
    await engine.dispose()


async def rebuild_ledgers(kind: str, account_id: int | None = None):
    """Recompute stored balances from the transactions themselves."""
    ledger = build_ledgers(AsyncSessionLocal, build_account_locks())[kind]
    ids = [account_id] if account_id is not None else await ledger.account_ids()
    rebuilt = 0
    failed = 0
    for aid in ids:
        try:
            account = await ledger.rebuild(aid)
            rebuilt += 1
            print(f"[OK] {kind} id={aid} balance={account.balance}")
        except LedgerError as e:
            failed += 1
            print(f"[ERR] {kind} id={aid}: {e}")
    await engine.dispose()
    print(f"[REBUILD:{kind}] rebuilt={rebuilt} failed={failed}")


async def verify_ledgers(kind: str | None = None, repair: bool = False):
    ledgers = build_ledgers(AsyncSessionLocal, build_account_locks())
    if kind:
        ledgers = {kind: ledgers[kind]}
    stats = await audit_all(ledgers, repair=repair)
    await engine.dispose()
    mode = "REPAIRED" if repair else "CHECKED"
    print(
        f"[VERIFY:{mode}] scanned={stats.scanned_accounts} drifted={stats.drifted_accounts} "
        f"rows={stats.drifted_rows} repaired={stats.repaired_accounts} errors={stats.errors}"
    )
    return stats


def main():
    parser = argparse.ArgumentParser(prog="tradebook")
    sub = parser.add_subparsers(dest="cmd")

    c = sub.add_parser("create-admin")
    c.add_argument("--username", required=True)
    c.add_argument("--password", required=True)

    r = sub.add_parser("rebuild-ledger")
    r.add_argument("--kind", choices=sorted(LEDGER_KINDS), required=True)
    target = r.add_mutually_exclusive_group(required=True)
    target.add_argument("--account-id", type=int)
    target.add_argument("--all", action="store_true")

    v = sub.add_parser("verify-ledgers")
    v.add_argument("--kind", choices=sorted(LEDGER_KINDS))
    v.add_argument("--repair", action="store_true")

    args = parser.parse_args()
    if args.cmd == "create-admin":
        asyncio.run(create_admin(args.username, args.password))
    elif args.cmd == "rebuild-ledger":
        asyncio.run(rebuild_ledgers(args.kind, None if args.all else args.account_id))
    elif args.cmd == "verify-ledgers":
        stats = asyncio.run(verify_ledgers(args.kind, repair=args.repair))
        if stats.drifted_accounts and not args.repair:
            raise SystemExit(1)
    else:
        parser.print_help()

if __name__ == "__main__":
    main()
