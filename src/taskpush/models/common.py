"""Timestamp helpers shared by the task push tables."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_field(*, track_updates: bool = False) -> Any:
    """A non-null ``timestamptz`` column filled by both Python and the database."""
    column_kwargs: dict[str, Any] = {"server_default": sa.func.now()}
    if track_updates:
        column_kwargs["server_onupdate"] = sa.func.now()
    return Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
        sa_column_kwargs=column_kwargs,
    )


class TimestampMixin(SQLModel, table=False):
    """``created_at``/``updated_at`` pair for mutable rows."""

    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field(track_updates=True)


__all__ = ["TimestampMixin", "timestamp_field", "utcnow"]
