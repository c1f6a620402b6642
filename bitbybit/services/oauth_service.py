from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import httpx
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.httpx_client import AsyncOAuth2Client
from jose import JWTError, jwt

from bitbybit.config import settings

logger = logging.getLogger(__name__)


class OAuthError(Exception):
    """The provider round trip failed; the message is safe to show the user."""


@dataclass(frozen=True)
class ExternalIdentity:
    provider: str
    id: str
    email: str
    name: str
    avatar_url: Optional[str]
    email_verified: bool


def _google_identity(data: dict) -> ExternalIdentity:
    email = (data.get("email") or "").lower()
    return ExternalIdentity(
        provider="google",
        id=str(data["sub"]),
        email=email,
        name=data.get("name") or email.split("@")[0],
        avatar_url=data.get("picture"),
        email_verified=bool(data.get("email_verified")),
    )


def _facebook_identity(data: dict) -> ExternalIdentity:
    email = (data.get("email") or "").lower()
    picture = ((data.get("picture") or {}).get("data") or {}).get("url")
    return ExternalIdentity(
        provider="facebook",
        id=str(data["id"]),
        email=email,
        name=data.get("name") or email.split("@")[0],
        avatar_url=picture,
        # Facebook only returns confirmed addresses but does not say so explicitly.
        email_verified=False,
    )


@dataclass(frozen=True)
class OAuthProvider:
    name: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scope: str
    parse: Callable[[dict], ExternalIdentity]

    @property
    def client_id(self) -> str:
        return getattr(settings, f"{self.name}_client_id")

    @property
    def client_secret(self) -> str:
        return getattr(settings, f"{self.name}_client_secret")

    @property
    def redirect_uri(self) -> str:
        return getattr(settings, f"{self.name}_redirect_uri")

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def client(self) -> AsyncOAuth2Client:
        return AsyncOAuth2Client(
            client_id=self.client_id,
            client_secret=self.client_secret,
            scope=self.scope,
            redirect_uri=self.redirect_uri,
            token_endpoint_auth_method="client_secret_post",
            timeout=settings.http_timeout_seconds,
        )


PROVIDERS: dict[str, OAuthProvider] = {
    "google": OAuthProvider(
        name="google",
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
        scope="openid email profile",
        parse=_google_identity,
    ),
    "facebook": OAuthProvider(
        name="facebook",
        authorize_url="https://www.facebook.com/v19.0/dialog/oauth",
        token_url="https://graph.facebook.com/v19.0/oauth/access_token",
        userinfo_url="https://graph.facebook.com/me?fields=id,name,email,picture.type(large)",
        scope="email public_profile",
        parse=_facebook_identity,
    ),
}


def get_provider(name: str) -> OAuthProvider | None:
    return PROVIDERS.get(name)


def create_state(provider: str) -> str:
    """A signed, short-lived state value so the callback needs no server-side session."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.oauth_state_expire_minutes)
    payload = {"type": "oauth_state", "provider": provider, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def check_state(provider: str, state: str | None) -> None:
    if not state:
        raise OAuthError("Missing state parameter")
    try:
        payload = jwt.decode(state, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise OAuthError("Invalid state parameter")
    if payload.get("type") != "oauth_state" or payload.get("provider") != provider:
        raise OAuthError("Invalid state parameter")


async def authorization_url(provider: OAuthProvider) -> str:
    async with provider.client() as client:
        url, _state = client.create_authorization_url(
            provider.authorize_url,
            state=create_state(provider.name),
        )
    return url


async def exchange_code(provider: OAuthProvider, code: str) -> ExternalIdentity:
    """Trade the authorization code for a token and fetch the external profile. Single shot."""
    try:
        async with provider.client() as client:
            await client.fetch_token(provider.token_url, code=code)
            resp = await client.get(provider.userinfo_url)
    except (AuthlibBaseError, httpx.HTTPError) as e:
        logger.warning("%s token exchange failed: %s", provider.name, e)
        raise OAuthError("Authentication failed") from e

    if resp.status_code != 200:
        logger.warning("%s userinfo returned %s", provider.name, resp.status_code)
        raise OAuthError("Authentication failed")

    try:
        identity = provider.parse(resp.json())
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning("%s userinfo could not be read: %s", provider.name, resp.text[:500])
        raise OAuthError("Authentication failed") from e
    if not identity.email:
        raise OAuthError("The provider did not share an email address")
    return identity
