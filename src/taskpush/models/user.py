"""User domain models built with SQLModel."""

from __future__ import annotations

from enum import Enum

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .common import TimestampMixin


class UserRole(str, Enum):
    """Roles supported by the authentication system."""

    MEMBER = "member"
    ADMIN = "admin"


class UserBase(SQLModel, table=False):
    """Shared attributes for user models."""

    name: str = Field(
        max_length=255,
        sa_column=sa.Column(sa.String(length=255), nullable=False),
    )
    email: str = Field(
        max_length=320,
        sa_column=sa.Column(sa.String(length=320), nullable=False, unique=True),
    )
    is_active: bool = Field(
        default=True,
        sa_column=sa.Column(sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    role: UserRole = Field(
        default=UserRole.MEMBER,
        sa_column=sa.Column(
            sa.Enum(
                UserRole,
                name="user_role",
                native_enum=False,
                validate_strings=True,
                values_callable=lambda members: [member.value for member in members],
            ),
            nullable=False,
            server_default=UserRole.MEMBER.value,
        ),
    )


class User(UserBase, TimestampMixin, table=True):
    """Persistent user model.

    ``fcm_token`` is the legacy single-device column kept for clients that
    registered before per-device tokens existed. It is read during token
    lookup and cleared when its value is pruned, but never written by new
    registrations.
    """

    __tablename__ = "users"
    __table_args__ = (sa.Index("ix_users_email", "email"),)

    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str = Field(
        max_length=255,
        sa_column=sa.Column(sa.String(length=255), nullable=False),
    )
    fcm_token: str | None = Field(
        default=None,
        sa_column=sa.Column(sa.String(length=512), nullable=True),
    )


__all__ = ["User", "UserBase", "UserRole"]
