from typing import AsyncIterator

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.rbac import Role
from app.core.security import read_access_token
from app.models.user import User
from app.services.ledger import LedgerEngine

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.session_factory() as s:
        yield s


async def get_current_principal(
    db: AsyncSession = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> tuple[User, Role]:
    claims = read_access_token(token)
    if not claims:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    sub, token_role = claims

    q = await db.execute(select(User).where(User.username == sub))
    user = q.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")

    # role is authoritative in the database; the JWT claim is a cache only
    try:
        db_role = Role((user.role or "staff").strip().lower())
    except ValueError:
        db_role = Role.staff

    # If role was changed in the DB, old tokens should stop working.
    if token_role != db_role.value:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    return user, db_role


async def require_user(principal=Depends(get_current_principal)) -> User:
    user, _role = principal
    return user


async def require_admin(principal=Depends(get_current_principal)) -> User:
    user, role = principal
    if role != Role.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return user


def ledger_dependency(kind_name: str):
    def _get(request: Request) -> LedgerEngine:
        return request.app.state.ledgers[kind_name]
    return _get
