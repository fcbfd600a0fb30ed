"""
Vistagram Backend — Auth Request/Response Schemas
===================================================

What:  Contracts for /api/auth/register, /login, /refresh.
Why:   Input validation happens before the service layer runs; output models
       list exactly which user fields are public (never the password hash or
       the stored refresh token).
"""

import re
import uuid
from datetime import datetime

from pydantic import Field, field_validator

from vistagram.schemas.common import CamelModel

# Deliberately loose: one "@", no whitespace, a dot in the domain.
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.]+$")


def _normalize_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("must be a valid email address")
    return value


class RegisterRequest(CamelModel):
    """Body of POST /api/auth/register."""
    username: str = Field(min_length=3, max_length=30)
    email: str = Field(max_length=255)
    password: str = Field(min_length=6, max_length=128)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if not USERNAME_PATTERN.match(v):
            raise ValueError("may only contain letters, digits, '_' and '.'")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _normalize_email(v)


class LoginRequest(CamelModel):
    """Body of POST /api/auth/login. Email is the natural key."""
    email: str = Field(max_length=255)
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return v.strip().lower()


class UserPublic(CamelModel):
    """The public projection of a User (no secrets)."""
    id: uuid.UUID
    username: str
    email: str
    created_at: datetime


class RegisterResponse(CamelModel):
    message: str = "User registered successfully"
    user: UserPublic


class LoginResponse(CamelModel):
    """Access token in the body; the refresh token travels only in the cookie."""
    message: str = "Login successful"
    access_token: str
    user: UserPublic


class RefreshResponse(CamelModel):
    message: str = "Access token refreshed"
    access_token: str
