from __future__ import annotations

from datetime import datetime
from typing import Annotated, Optional
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, model_validator

# Addresses are stored and compared lowercased.
Email = Annotated[EmailStr, AfterValidator(str.lower)]


class _PasswordConfirmation(BaseModel):
    password: str = Field(min_length=8, max_length=255)
    password_confirmation: str

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


class UserRegister(_PasswordConfirmation):
    name: str = Field(min_length=1, max_length=255)
    email: Email = Field(max_length=255)


class UserLogin(BaseModel):
    email: Email
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class UsernameCheck(BaseModel):
    username: str = Field(min_length=1, max_length=255)


class EmailCheck(BaseModel):
    email: Email


class PasswordResetLinkRequest(BaseModel):
    email: Email


class PasswordResetRequest(_PasswordConfirmation):
    token: str = Field(min_length=1)
    email: Email


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    google_id: Optional[str] = None
    facebook_id: Optional[str] = None
    email_verified_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
