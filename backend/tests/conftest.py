from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.db import build_sessionmaker, init_models
from app.core.security import create_access_token, hash_password
from app.main import create_app
from app.models.user import User
from app.services.ledger import build_ledgers
from app.services.locks import LocalAccountLocks


def D(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))


def day(n: int) -> datetime:
    return datetime(2024, 1, n)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
async def db_engine(db_url, anyio_backend):
    engine = create_async_engine(db_url)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_sessionmaker(db_engine)


@pytest.fixture
def ledgers(session_factory):
    return build_ledgers(session_factory, LocalAccountLocks())


@pytest.fixture
def customers(ledgers):
    return ledgers["customer"]


@pytest.fixture
def suppliers(ledgers):
    return ledgers["supplier"]


async def _seed_user(session_factory, username: str, password: str, role: str):
    async with session_factory() as db:
        db.add(User(username=username, password_hash=hash_password(password), role=role))
        await db.commit()


@pytest.fixture
def app(db_url):
    return create_app(create_async_engine(db_url))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        c.portal.call(_seed_user, app.state.session_factory, "owner", "owner-pass-123", "admin")
        c.portal.call(_seed_user, app.state.session_factory, "clerk", "clerk-pass-123", "staff")
        yield c


@pytest.fixture
def auth(client):
    return {"Authorization": f"Bearer {create_access_token('owner', 'admin')}"}


@pytest.fixture
def staff_auth(client):
    return {"Authorization": f"Bearer {create_access_token('clerk', 'staff')}"}
