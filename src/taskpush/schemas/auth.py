"""Schemas describing authentication payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models import UserRole
from .user import UserPublic


class RegisterRequest(BaseModel):
    """Incoming payload for registering a new user."""

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6)
    role: UserRole | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be blank")
        return stripped


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    """Issued bearer token and the authenticated user."""

    token: str
    token_type: str = Field(default="bearer", frozen=True)
    expires_at: datetime
    user: UserPublic


class TokenPayload(BaseModel):
    """Validated JWT payload."""

    model_config = ConfigDict(extra="ignore")

    sub: str
    exp: datetime
    iat: datetime
    jti: str
    role: str


__all__ = ["AuthResponse", "LoginRequest", "RegisterRequest", "TokenPayload"]
