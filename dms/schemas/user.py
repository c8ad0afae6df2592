"""User and authentication Pydantic schemas."""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from dms.models.institution import AccessLevel, UserRole


def _check_password_strength(v: str) -> str:
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", v):
        raise ValueError("Password must contain at least one digit")
    return v


class UserCreate(BaseModel):
    """Schema for user registration; every self-registered user joins an institution."""

    email: EmailStr
    name: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=8, max_length=128)
    institution_id: UUID
    access_level: AccessLevel = AccessLevel.MOYEN

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class UserLogin(BaseModel):
    """Schema for user login."""

    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """Schema for user response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    role: UserRole
    access_level: AccessLevel
    institution_id: UUID | None
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None


class TokenResponse(BaseModel):
    """Schema for authentication token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshTokenRequest(BaseModel):
    """Schema for token refresh request."""

    refresh_token: str


# ============ ADMINISTRATION ============


class AdminUserCreate(BaseModel):
    """Account created by an administrator; only admins may have no institution."""

    email: EmailStr
    name: str = Field(..., min_length=1, max_length=150)
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole = UserRole.USER
    access_level: AccessLevel = AccessLevel.MOYEN
    institution_id: UUID | None = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)

    @model_validator(mode="after")
    def check_institution(self) -> "AdminUserCreate":
        if self.role == UserRole.USER and self.institution_id is None:
            raise ValueError("Institution users must belong to an institution")
        return self


class UserUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=150)
    access_level: AccessLevel | None = None
    institution_id: UUID | None = None


class UserRoleUpdate(BaseModel):
    role: UserRole
