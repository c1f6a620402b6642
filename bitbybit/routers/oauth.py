from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bitbybit.config import settings
from bitbybit.dependencies import get_db
from bitbybit.services.auth_service import IdentityConflict, create_access_token, get_or_create_oauth_user
from bitbybit.services.oauth_service import (
    OAuthError,
    OAuthProvider,
    authorization_url,
    check_state,
    exchange_code,
    get_provider,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _provider_or_404(provider: str) -> OAuthProvider:
    found = get_provider(provider)
    if found is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown login provider")
    return found


def _frontend(path: str, **params: str) -> RedirectResponse:
    url = f"{settings.frontend_url.rstrip('/')}{path}?{urlencode(params)}"
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get("/login/{provider}")
async def oauth_redirect(provider: str):
    found = _provider_or_404(provider)
    if not found.configured:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{provider} login is not configured",
        )
    return RedirectResponse(await authorization_url(found), status_code=status.HTTP_302_FOUND)


@router.get("/auth/{provider}/callback")
async def oauth_callback(
    provider: str,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    found = _provider_or_404(provider)
    try:
        if error:
            raise OAuthError(f"Authentication failed: {error}")
        if not code:
            raise OAuthError("Missing authorization code")
        check_state(found.name, state)
        identity = await exchange_code(found, code)
        user = await get_or_create_oauth_user(
            db,
            provider=found.name,
            oauth_id=identity.id,
            email=identity.email,
            name=identity.name,
            avatar_url=identity.avatar_url,
            email_verified=identity.email_verified,
        )
    except (OAuthError, IdentityConflict) as e:
        return _frontend("/login", error=str(e))
    except IntegrityError:
        await db.rollback()
        logger.exception("Could not store %s identity", found.name)
        return _frontend("/login", error="Authentication failed")

    return _frontend(
        "/callback",
        access_token=create_access_token(user),
        name=user.name,
        email=user.email,
    )
