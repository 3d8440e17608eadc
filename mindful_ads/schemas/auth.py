from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from mindful_ads.db.models import User
from mindful_ads.schemas.fields import Email, Password, PersonName, Phone, UserRole


class RegisterRequest(BaseModel):
    name: PersonName
    email: Email
    password: Password
    phone: Phone | None = None
    company: str | None = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    email: Email
    password: str = Field(min_length=1, max_length=128)


class RefreshTokenRequest(BaseModel):
    refreshToken: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    currentPassword: str = Field(min_length=1, max_length=128)
    newPassword: Password

    @model_validator(mode="after")
    def validate_new_password(self) -> "ChangePasswordRequest":
        if self.currentPassword == self.newPassword:
            raise ValueError("New password must differ from the current password")
        return self


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    role: UserRole
    phone: str | None = None
    company: str | None = None
    bio: str | None = None
    isActive: bool
    isVerified: bool
    lastLogin: datetime | None = None
    createdAt: datetime | None = None


class AuthTokens(BaseModel):
    user: UserOut
    accessToken: str
    refreshToken: str
    sessionToken: str
    expiresAt: datetime


def serialize_user(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        phone=user.phone,
        company=user.company,
        bio=user.bio,
        isActive=user.is_active,
        isVerified=user.is_verified,
        lastLogin=user.last_login,
        createdAt=user.created_at,
    )
