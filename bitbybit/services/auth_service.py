from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode
from uuid import UUID, uuid4

import bcrypt
from fastapi import HTTPException, status
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bitbybit.config import settings
from bitbybit.events import PasswordReset, Registered, Verified, event_bus
from bitbybit.mail.base import Mailer, MailError, OutgoingMail
from bitbybit.models.base import as_aware, utcnow
from bitbybit.models.profile import Profile
from bitbybit.models.token import PasswordResetToken, RevokedToken
from bitbybit.models.user import User
from bitbybit.schemas.auth import TokenResponse, UserRegister

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes and newer releases refuse longer input.
_BCRYPT_MAX_BYTES = 72

INVALID_RESET_TOKEN = "This password reset token is invalid."
RESET_LINK_SENT = "We have emailed your password reset link."


def hash_password(password: str) -> str:
    raw = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    raw = plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    return bcrypt.checkpw(raw, hashed.encode("utf-8"))


def unusable_password() -> str:
    """Hash of a random secret nobody knows, for accounts created through OAuth."""
    return hash_password(secrets.token_urlsafe(32))


# ---------------------------------------------------------------------------
# Bearer tokens
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuthContext:
    """The authenticated caller of the current request."""

    user: User
    jti: str
    expires_at: datetime

    @property
    def user_id(self) -> UUID:
        return self.user.id


def create_access_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    payload = {
        "sub": str(user.id),
        "type": "access",
        "jti": uuid4().hex,
        "ver": user.token_version,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def issue_token(user: User) -> TokenResponse:
    return TokenResponse(
        access_token=create_access_token(user),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
    )


def decode_token(token: str, expected_type: str = "access") -> dict:
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    if payload.get("type") != expected_type:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )
    return payload


async def resolve_token(db: AsyncSession, token: str) -> AuthContext:
    payload = decode_token(token)
    user_id = payload.get("sub")
    jti = payload.get("jti")
    if user_id is None or jti is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    revoked = await db.get(RevokedToken, jti)
    if revoked is not None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
        )

    try:
        uid = UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )
    user = await db.get(User, uid)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    if payload.get("ver") != user.token_version:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been revoked",
        )

    expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    return AuthContext(user=user, jti=jti, expires_at=expires_at)


async def revoke_token(db: AsyncSession, ctx: AuthContext) -> None:
    now = utcnow()
    await db.execute(delete(RevokedToken).where(RevokedToken.expires_at < now))
    db.add(RevokedToken(jti=ctx.jti, expires_at=ctx.expires_at))
    await db.commit()
    logger.info("User %s logged out", ctx.user_id)


# ---------------------------------------------------------------------------
# Registration and email verification
# ---------------------------------------------------------------------------


def verification_hash(email: str) -> str:
    return hashlib.sha1(email.encode("utf-8")).hexdigest()


def _link_signature(user_id: UUID, email_hash: str, expires: int) -> str:
    payload = {"type": "email_verify", "sub": str(user_id), "hash": email_hash, "exp": expires}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def _verification_path(user: User) -> str:
    return f"{settings.api_prefix}/email/verify/{user.id}/{verification_hash(user.email)}"


def verification_url(user: User) -> str:
    expires = int(
        (datetime.now(timezone.utc) + timedelta(minutes=settings.verification_link_expire_minutes)).timestamp()
    )
    path = _verification_path(user)
    signature = _link_signature(user.id, verification_hash(user.email), expires)
    query = urlencode({"expires": expires, "signature": signature})
    return f"{settings.app_url.rstrip('/')}{path}?{query}"


def _verification_mail(user: User) -> OutgoingMail:
    url = verification_url(user)
    return OutgoingMail(
        to=user.email,
        subject="Verify Email Address",
        body=(
            f"Hello {user.name},\n\n"
            "Please click the link below to verify your email address.\n\n"
            f"{url}\n\n"
            "If you did not create an account, no further action is required.\n"
        ),
    )


async def _send(mailer: Mailer, mail: OutgoingMail) -> None:
    try:
        await mailer.send(mail)
    except MailError:
        logger.exception("Failed to deliver %r to %s", mail.subject, mail.to)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not send email, please try again later",
        )


async def _ensure_available(db: AsyncSession, email: str, name: str) -> None:
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )
    result = await db.execute(select(User).where(User.name == name))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already exists",
        )


async def register_user(db: AsyncSession, mailer: Mailer, data: UserRegister) -> User:
    """Create an unverified user with an empty profile and mail the verification link.

    The user row is only committed once the mail has been handed to the mailer,
    so a delivery failure leaves nothing behind and the client can simply retry.
    """
    await _ensure_available(db, data.email, data.name)

    user = User(
        name=data.name,
        email=data.email,
        hashed_password=hash_password(data.password),
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email or username already registered",
        )
    db.add(Profile(user_id=user.id, first_name=data.name))

    try:
        await _send(mailer, _verification_mail(user))
    except HTTPException:
        await db.rollback()
        raise

    await db.commit()
    await db.refresh(user)
    event_bus.emit(Registered(user_id=user.id))
    return user


def _check_link_signature(user_id: UUID, email_hash: str, expires: int | None, signature: str | None) -> None:
    invalid = HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid verification link")
    if expires is None or signature is None:
        raise invalid
    try:
        payload = jwt.decode(signature, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Verification link has expired")
    except JWTError:
        raise invalid
    if (
        payload.get("type") != "email_verify"
        or payload.get("sub") != str(user_id)
        or payload.get("exp") != expires
        or not hmac.compare_digest(str(payload.get("hash", "")), email_hash)
    ):
        raise invalid


async def verify_email(
    db: AsyncSession,
    user_id: UUID,
    email_hash: str,
    expires: int | None,
    signature: str | None,
) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    _check_link_signature(user_id, email_hash, expires, signature)

    if not hmac.compare_digest(email_hash, verification_hash(user.email)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid verification link")

    if not user.is_verified:
        user.email_verified_at = utcnow()
        await db.commit()
        await db.refresh(user)
        event_bus.emit(Verified(user_id=user.id))
    return user


async def resend_verification(mailer: Mailer, user: User) -> None:
    if user.is_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already verified")
    await _send(mailer, _verification_mail(user))


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None or not user.is_verified:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email not verified",
        )
    if not verify_password(password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    return user


async def name_taken(db: AsyncSession, name: str) -> bool:
    result = await db.execute(select(User.id).where(User.name == name))
    return result.first() is not None


async def email_taken(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(User.email == email))
    return result.first() is not None


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


def _reset_url(email: str, token: str) -> str:
    query = urlencode({"token": token, "email": email})
    return f"{settings.frontend_url.rstrip('/')}/reset-password?{query}"


async def send_password_reset_link(db: AsyncSession, mailer: Mailer, email: str) -> None:
    """Mail a reset link when the address belongs to a user.

    Callers answer identically whether or not anything was sent.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        logger.info("Password reset requested for unknown address")
        return

    existing = await db.get(PasswordResetToken, email)
    if existing is not None:
        age = utcnow() - as_aware(existing.created_at)
        if age < timedelta(seconds=settings.password_reset_throttle_seconds):
            logger.info("Password reset for user %s throttled", user.id)
            return
        await db.delete(existing)
        await db.flush()

    token = secrets.token_hex(32)
    db.add(PasswordResetToken(email=email, token_hash=hash_password(token), created_at=utcnow()))
    await db.flush()

    mail = OutgoingMail(
        to=email,
        subject="Reset Password Notification",
        body=(
            f"Hello {user.name},\n\n"
            "You are receiving this email because we received a password reset request "
            "for your account.\n\n"
            f"{_reset_url(email, token)}\n\n"
            f"This password reset link will expire in {settings.password_reset_expire_minutes} minutes.\n"
            "If you did not request a password reset, no further action is required.\n"
        ),
    )
    try:
        await _send(mailer, mail)
    except HTTPException:
        await db.rollback()
        raise
    await db.commit()


async def reset_password(db: AsyncSession, email: str, token: str, password: str) -> User:
    record = await db.get(PasswordResetToken, email)
    invalid = HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=INVALID_RESET_TOKEN)
    if record is None:
        raise invalid

    expired = utcnow() - as_aware(record.created_at) > timedelta(minutes=settings.password_reset_expire_minutes)
    if expired:
        await db.delete(record)
        await db.commit()
        raise invalid
    if not verify_password(token, record.token_hash):
        raise invalid

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        raise invalid

    user.hashed_password = hash_password(password)
    user.token_version += 1
    await db.delete(record)
    await db.commit()
    await db.refresh(user)
    event_bus.emit(PasswordReset(user_id=user.id))
    return user


# ---------------------------------------------------------------------------
# OAuth identities
# ---------------------------------------------------------------------------


class IdentityConflict(Exception):
    """An account with the external email exists and linking by email is disabled."""


async def _unique_name(db: AsyncSession, wanted: str) -> str:
    base = (wanted or "user").strip()[:240] or "user"
    candidate = base
    while await name_taken(db, candidate):
        candidate = f"{base}_{secrets.token_hex(3)}"
    return candidate


async def get_or_create_oauth_user(
    db: AsyncSession,
    provider: str,
    oauth_id: str,
    email: str,
    name: str,
    avatar_url: str | None,
    email_verified: bool,
) -> User:
    email = email.lower()
    id_column = User.google_id if provider == "google" else User.facebook_id
    id_attr = "google_id" if provider == "google" else "facebook_id"

    result = await db.execute(
        select(User).where(or_(id_column == oauth_id, User.email == email)),
    )
    matches = result.scalars().all()
    user = next((u for u in matches if getattr(u, id_attr) == oauth_id), None)
    if user is None and matches:
        if not settings.oauth_link_by_email:
            raise IdentityConflict("An account with this email already exists")
        user = matches[0]
        logger.info("Linking %s identity to existing user %s by email", provider, user.id)
        if not user.is_verified:
            # Nobody proved ownership of this address; drop whatever password was set.
            user.hashed_password = unusable_password()
            user.token_version += 1

    if user is not None:
        setattr(user, id_attr, oauth_id)
        if email_verified and not user.is_verified:
            user.email_verified_at = utcnow()
        profile = user.profile
        if profile is None:
            db.add(Profile(user_id=user.id, first_name=name, avatar=avatar_url))
        else:
            profile.first_name = name or profile.first_name
            profile.avatar = avatar_url or profile.avatar
        await db.commit()
        await db.refresh(user)
        return user

    user = User(
        name=await _unique_name(db, name),
        email=email,
        hashed_password=unusable_password(),
        email_verified_at=utcnow() if email_verified else None,
    )
    setattr(user, id_attr, oauth_id)
    db.add(user)
    await db.flush()
    db.add(Profile(user_id=user.id, first_name=name, avatar=avatar_url))
    await db.commit()
    await db.refresh(user)
    logger.info("Created user %s from %s login", user.id, provider)
    return user
