from __future__ import annotations

from typing import AsyncGenerator, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from bitbybit.database import async_session_factory
from bitbybit.models.user import User
from bitbybit.services.auth_service import AuthContext, resolve_token

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session


async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await resolve_token(db, credentials.credentials)


async def get_current_user(ctx: AuthContext = Depends(get_auth_context)) -> User:
    return ctx.user
