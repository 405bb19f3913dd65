import asyncio

import pytest

from app.core.config import Settings
from app.services import locks as locks_module
from app.services.errors import LedgerBusy
from app.services.locks import LocalAccountLocks, RedisAccountLocks, build_account_locks


@pytest.mark.anyio
async def test_local_lock_serializes_same_key():
    locks = LocalAccountLocks()
    order = []

    async def worker(name, key, pause):
        async with locks.hold(key):
            order.append(f"{name}:in")
            await asyncio.sleep(pause)
            order.append(f"{name}:out")

    await asyncio.gather(worker("a", "customer:1", 0.05), worker("b", "customer:1", 0))
    assert order == ["a:in", "a:out", "b:in", "b:out"]


@pytest.mark.anyio
async def test_local_lock_lets_other_accounts_through():
    locks = LocalAccountLocks()
    entered = asyncio.Event()

    async def holder():
        async with locks.hold("customer:1"):
            await asyncio.wait_for(entered.wait(), timeout=1)

    async def other():
        async with locks.hold("customer:2"):
            entered.set()

    await asyncio.gather(holder(), other())
    assert entered.is_set()


def test_backend_selection():
    assert isinstance(build_account_locks(Settings(LEDGER_LOCK_BACKEND="local")), LocalAccountLocks)

    redis_locks = build_account_locks(Settings(LEDGER_LOCK_BACKEND="redis", LEDGER_LOCK_WAIT_SECONDS=2))
    assert isinstance(redis_locks, RedisAccountLocks)
    assert redis_locks.wait_seconds == 2

    with pytest.raises(ValueError):
        build_account_locks(Settings(LEDGER_LOCK_BACKEND="zookeeper"))


@pytest.mark.anyio
async def test_local_locks_forget_idle_keys():
    locks = LocalAccountLocks()

    async def worker(key):
        async with locks.hold(key):
            await asyncio.sleep(0.01)

    await asyncio.gather(worker("customer:1"), worker("customer:1"), worker("supplier:7"))
    assert locks._locks == {}
    assert locks._users == {}


class InMemoryRedis:
    """Just enough of redis.asyncio.Redis for the account lock."""

    def __init__(self, store):
        self.store = store
        self.renewals = 0

    async def set(self, name, value, nx=False, ex=None):
        if nx and name in self.store:
            return None
        self.store[name] = value
        return True

    async def get(self, name):
        return self.store.get(name)

    async def delete(self, name):
        self.store.pop(name, None)

    async def eval(self, script, numkeys, name, token, ttl):
        if self.store.get(name) == token:
            self.renewals += 1
            return 1
        return 0

    async def aclose(self):
        pass


@pytest.fixture
def redis_store(monkeypatch):
    store = {}
    clients = []

    def from_url(url, **kwargs):
        c = InMemoryRedis(store)
        clients.append(c)
        return c

    monkeypatch.setattr(locks_module.aioredis.Redis, "from_url", staticmethod(from_url))
    return store, clients


@pytest.mark.anyio
async def test_redis_lock_is_renewed_while_held(redis_store):
    store, clients = redis_store
    locks = RedisAccountLocks("redis://unused", ttl_seconds=1, renew_seconds=0.01)

    async with locks.hold("customer:1"):
        assert "tradebook:lock:customer:1" in store
        await asyncio.sleep(0.06)

    assert clients[0].renewals >= 2
    assert store == {}


@pytest.mark.anyio
async def test_redis_lock_gives_up_after_wait(redis_store):
    store, _ = redis_store
    store["tradebook:lock:customer:1"] = "someone-else"
    locks = RedisAccountLocks("redis://unused", wait_seconds=0.05, poll_seconds=0.01)

    with pytest.raises(LedgerBusy):
        async with locks.hold("customer:1"):
            pass
    assert store["tradebook:lock:customer:1"] == "someone-else"
