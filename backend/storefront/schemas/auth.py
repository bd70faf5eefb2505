"""
Authentication schemas for request/response validation.

This module defines Pydantic schemas for registration, login, token refresh,
profile management and password changes.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from storefront.database.models.user import UserRole

_SPECIAL_CHARACTERS = r"[!@#$%^&*(),.?\":{}|<>_\-+=]"


def _check_password_strength(value: str) -> str:
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain at least one digit")
    if not re.search(_SPECIAL_CHARACTERS, value):
        raise ValueError("Password must contain at least one special character")
    return value


def _check_phone(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    cleaned = re.sub(r"[\s\-\(\)]", "", value)
    if not re.match(r"^\+?\d{7,15}$", cleaned):
        raise ValueError("Phone number must contain 7-15 digits and may start with +")
    return value


class UserCreate(BaseModel):
    """
    Schema for user registration requests.

    Validates email format and password strength requirements.
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "examples": [
                {
                    "email": "jane.doe@example.com",
                    "password": "SecurePass123!",
                    "first_name": "Jane",
                    "last_name": "Doe",
                }
            ]
        },
    )

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(
        ...,
        min_length=8,
        max_length=128,
        description="User password (8-128 characters)",
    )
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)

    @field_validator("password")
    @classmethod
    def validate_password_strength(cls, value: str) -> str:
        """
        Validate password meets security requirements.

        Requirements: one uppercase letter, one lowercase letter, one digit
        and one special character.
        """
        return _check_password_strength(value)

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, value: Optional[str]) -> Optional[str]:
        return _check_phone(value)


class UserLogin(BaseModel):
    """Schema for user login requests."""

    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., min_length=1, max_length=128)


class RefreshTokenRequest(BaseModel):
    """Schema for refresh token requests."""

    refresh_token: str = Field(..., min_length=1, description="JWT refresh token")


class TokenResponse(BaseModel):
    """
    Schema for authentication token responses.

    Contains access token, refresh token, and metadata.
    """

    access_token: str = Field(..., description="JWT access token")
    refresh_token: Optional[str] = Field(
        None,
        description="JWT refresh token for obtaining new access tokens",
    )
    token_type: str = Field(default="bearer")
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class UserUpdate(BaseModel):
    """Schema for profile updates by the account owner."""

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: Optional[str] = Field(None, max_length=100)

    @field_validator("phone")
    @classmethod
    def validate_phone_format(cls, value: Optional[str]) -> Optional[str]:
        return _check_phone(value)


class PasswordChange(BaseModel):
    """Schema for password change requests."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


class UserResponse(BaseModel):
    """User profile response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime] = None
