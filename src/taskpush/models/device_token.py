"""Per-user device push token records."""

from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .common import timestamp_field


class DeviceToken(SQLModel, table=True):
    """A push registration token held by one user.

    Uniqueness is per user only; the same token value may appear under
    several users when an app is reinstalled under a different account.
    """

    __tablename__ = "device_tokens"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "token", name="uq_device_tokens_user_id_token"),
        sa.Index("ix_device_tokens_token", "token"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=sa.Column(
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    token: str = Field(
        max_length=512,
        sa_column=sa.Column(sa.String(length=512), nullable=False),
    )
    platform: str | None = Field(
        default=None,
        sa_column=sa.Column(sa.String(length=32), nullable=True),
    )
    created_at: datetime = timestamp_field()


__all__ = ["DeviceToken"]
