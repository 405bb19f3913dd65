from __future__ import annotations
import asyncio
import logging
import uuid
import redis
import redis.asyncio as aioredis
from contextlib import asynccontextmanager, contextmanager
from app.core.config import Settings, settings
from app.services.errors import LedgerBusy

logger = logging.getLogger(__name__)

def _client() -> redis.Redis:
    return redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)

@contextmanager
def redis_lock(key: str, ttl_seconds: int = 120):
    """Simple distributed lock using SET NX EX."""
    token = str(uuid.uuid4())
    c = _client()
    acquired = c.set(key, token, nx=True, ex=ttl_seconds)
    try:
        yield bool(acquired)
    finally:
        # Best-effort safe release: only delete if token matches
        try:
            val = c.get(key)
            if val == token:
                c.delete(key)
        except redis.RedisError:
            pass


class LocalAccountLocks:
    """One asyncio.Lock per account key, valid inside a single process."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # forget the key once nobody holds or waits on it
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


# extend the key only while it still carries our token
_RENEW = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('expire', KEYS[1], ARGV[2])
end
return 0
"""


class RedisAccountLocks:
    """Blocking variant of redis_lock shared by every API worker.

    The key is renewed every ``renew_seconds`` (a third of the TTL by default)
    while it is held, so a slow operation keeps its lock.
    """

    def __init__(
        self,
        url: str,
        ttl_seconds: int = 60,
        wait_seconds: float = 30.0,
        poll_seconds: float = 0.05,
        renew_seconds: float | None = None,
    ) -> None:
        self.url = url
        self.ttl_seconds = ttl_seconds
        self.wait_seconds = wait_seconds
        self.poll_seconds = poll_seconds
        self.renew_seconds = renew_seconds or max(ttl_seconds / 3, 0.1)

    async def _keep_alive(self, c, name: str, token: str) -> None:
        while True:
            await asyncio.sleep(self.renew_seconds)
            try:
                renewed = await c.eval(_RENEW, 1, name, token, self.ttl_seconds)
            except redis.RedisError as e:
                logger.warning("lock renew failed key=%s err=%s", name, str(e)[:200])
                continue
            if not renewed:
                logger.warning("lock lost before release key=%s", name)
                return

    @asynccontextmanager
    async def hold(self, key: str):
        token = str(uuid.uuid4())
        name = f"tradebook:lock:{key}"
        c = aioredis.Redis.from_url(self.url, decode_responses=True)
        try:
            loop = asyncio.get_running_loop()
            deadline = loop.time() + self.wait_seconds
            while not await c.set(name, token, nx=True, ex=self.ttl_seconds):
                if loop.time() >= deadline:
                    raise LedgerBusy(f"Account {key} is busy, try again")
                await asyncio.sleep(self.poll_seconds)
            renewer = asyncio.create_task(self._keep_alive(c, name, token))
            try:
                yield
            finally:
                renewer.cancel()
                try:
                    await renewer
                except asyncio.CancelledError:
                    pass
                try:
                    if await c.get(name) == token:
                        await c.delete(name)
                except redis.RedisError:
                    pass
        finally:
            await c.aclose()


def build_account_locks(cfg: Settings = settings) -> LocalAccountLocks | RedisAccountLocks:
    backend = (cfg.LEDGER_LOCK_BACKEND or "local").strip().lower()
    if backend == "redis":
        return RedisAccountLocks(
            cfg.REDIS_URL,
            ttl_seconds=cfg.LEDGER_LOCK_TTL_SECONDS,
            wait_seconds=cfg.LEDGER_LOCK_WAIT_SECONDS,
        )
    if backend != "local":
        raise ValueError(f"Unknown LEDGER_LOCK_BACKEND: {cfg.LEDGER_LOCK_BACKEND}")
    return LocalAccountLocks()
