from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from bitbybit.dependencies import get_auth_context, get_current_user, get_db
from bitbybit.mail.base import Mailer, get_mailer
from bitbybit.models.user import User
from bitbybit.schemas.auth import (
    EmailCheck,
    PasswordResetLinkRequest,
    PasswordResetRequest,
    TokenResponse,
    UserLogin,
    UsernameCheck,
    UserRegister,
    UserResponse,
)
from bitbybit.schemas.common import MessageResponse
from bitbybit.services.auth_service import (
    RESET_LINK_SENT,
    AuthContext,
    authenticate_user,
    email_taken,
    issue_token,
    name_taken,
    register_user,
    resend_verification,
    reset_password,
    revoke_token,
    send_password_reset_link,
    verify_email,
)

router = APIRouter()


@router.post("/register", response_model=MessageResponse)
async def register(
    body: UserRegister,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    await register_user(db, mailer, body)
    return MessageResponse(message="User registered successfully. Please verify your email.")


@router.post("/login", response_model=TokenResponse)
async def login(body: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await authenticate_user(db, body.email, body.password)
    return issue_token(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    await revoke_token(db, ctx)
    return MessageResponse(message="Successfully logged out")


@router.get("/profile", response_model=UserResponse)
async def profile(user: User = Depends(get_current_user)):
    return user


@router.post("/check-username")
async def check_username(body: UsernameCheck, db: AsyncSession = Depends(get_db)):
    if await name_taken(db, body.username):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
    return {"success": "Username is available"}


@router.post("/check-email")
async def check_email(body: EmailCheck, db: AsyncSession = Depends(get_db)):
    if await email_taken(db, body.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
    return {"success": "Email is available"}


@router.post("/password/email", response_model=MessageResponse)
async def password_email(
    body: PasswordResetLinkRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    await send_password_reset_link(db, mailer, body.email)
    return MessageResponse(message=RESET_LINK_SENT)


@router.post("/password/reset", response_model=MessageResponse)
async def password_reset(body: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    await reset_password(db, body.email, body.token, body.password)
    return MessageResponse(message="Your password has been reset.")


@router.get("/email/verify/{user_id}/{email_hash}", response_model=MessageResponse)
async def email_verify(
    user_id: UUID,
    email_hash: str,
    expires: Optional[int] = Query(None),
    signature: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    await verify_email(db, user_id, email_hash, expires, signature)
    return MessageResponse(message="Email verified successfully")


@router.post("/email/verification-notification", response_model=MessageResponse)
async def email_verification_notification(
    user: User = Depends(get_current_user),
    mailer: Mailer = Depends(get_mailer),
):
    await resend_verification(mailer, user)
    return MessageResponse(message="Verification link sent")
