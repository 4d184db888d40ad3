"""
User Pydantic Schemas

Schemas:
- UserCreate: Registration data (email, password, display name, role)
- UserUpdate: Profile update fields
- PasswordChange: Current password plus the new one
- UserResponse: User data returned by the API (never the password)
- TokenResponse / RefreshTokenRequest: JWT exchange
"""

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from bookshelf.models import UserRole


def _normalize_display_name(v: str) -> str:
    if not v.strip():
        raise ValueError("Display name cannot be empty or whitespace")
    return " ".join(v.split())


def _check_password_strength(v: str) -> str:
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", v):
        raise ValueError("Password must contain at least one number")
    return v


class UserCreate(BaseModel):
    """
    Schema for user registration.

    Example request body:
    {
        "email": "ursula@example.com",
        "password": "SecurePass123",
        "display_name": "Ursula K. Le Guin",
        "role": "author"
    }
    """

    email: EmailStr = Field(..., examples=["ursula@example.com"])

    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="Password (min 8 chars, must include uppercase and number)",
        examples=["SecurePass123"],
    )

    display_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Public name, shown as the author name on published books",
        examples=["Ursula K. Le Guin"],
    )

    role: UserRole = Field(
        default=UserRole.READER,
        description="author or reader",
    )

    @field_validator("password")
    @classmethod
    def password_must_be_strong(cls, v: str) -> str:
        """At least one uppercase letter, one lowercase letter and one number."""
        return _check_password_strength(v)

    @field_validator("display_name")
    @classmethod
    def display_name_must_not_be_blank(cls, v: str) -> str:
        return _normalize_display_name(v)


class UserUpdate(BaseModel):
    """Partial profile update. Omitted fields are left unchanged."""

    display_name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None

    @field_validator("display_name")
    @classmethod
    def display_name_must_not_be_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _normalize_display_name(v)


class PasswordChange(BaseModel):
    """Password change: the current password must be confirmed."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="New password (min 8 chars, must include uppercase and number)",
    )

    @field_validator("new_password")
    @classmethod
    def password_must_be_strong(cls, v: str) -> str:
        return _check_password_strength(v)


class UserResponse(BaseModel):
    """User data returned by the API."""

    id: str
    email: EmailStr
    display_name: str
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    """JWT token pair returned by login, register and refresh."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class RefreshTokenRequest(BaseModel):
    refresh_token: str
