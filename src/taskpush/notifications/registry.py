"""Token registry backed by the relational store."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.logging import token_preview
from ..errors import TokenLookupError, TokenRemovalError
from ..models import DeviceToken, User

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass(frozen=True, slots=True)
class RegisteredToken:
    """A device token as seen by the dispatch pipeline."""

    value: str
    platform: str | None = None
    created_at: datetime | None = None
    legacy: bool = False


class TokenStore(Protocol):
    """Operations the dispatch pipeline needs from token storage."""

    async def tokens_for_users(self, user_ids: Iterable[int]) -> Mapping[int, Sequence[RegisteredToken]]:
        ...

    async def add_token(self, user_id: int, token: str, platform: str | None = None) -> bool:
        ...

    async def remove_token(self, token: str) -> int:
        ...


class TokenRegistry:
    """Per-user device token collections stored in ``device_tokens``.

    The legacy ``users.fcm_token`` column is folded into lookups and cleared
    on removal so older clients keep receiving pushes until they re-register.
    Mutations are single conditional statements, so concurrent requests
    adding or removing tokens for the same user never overwrite each other.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def tokens_for_users(self, user_ids: Iterable[int]) -> dict[int, list[RegisteredToken]]:
        """Return every requested user's tokens using a single query.

        Users without tokens, and ids that do not exist, map to an empty list.
        """
        ordered_ids = list(dict.fromkeys(user_ids))
        if not ordered_ids:
            return {}

        statement = (
            sa.select(
                User.id,
                User.fcm_token,
                DeviceToken.token,
                DeviceToken.platform,
                DeviceToken.created_at,
            )
            .select_from(User)
            .outerjoin(DeviceToken, DeviceToken.user_id == User.id)
            .where(User.id.in_(ordered_ids))
            .order_by(User.id, DeviceToken.created_at, DeviceToken.id)
        )
        try:
            result = await self._session.execute(statement)
            rows = result.all()
        except SQLAlchemyError as exc:
            logger.error("Device token lookup failed", extra={"user_count": len(ordered_ids)}, exc_info=exc)
            await self._session.rollback()
            raise TokenLookupError(details={"user_ids": ordered_ids}) from exc

        tokens: dict[int, list[RegisteredToken]] = {user_id: [] for user_id in ordered_ids}
        legacy: dict[int, str] = {}
        for user_id, legacy_token, value, platform, created_at in rows:
            if legacy_token:
                legacy[user_id] = legacy_token
            if value is not None:
                tokens[user_id].append(RegisteredToken(value=value, platform=platform, created_at=created_at))

        for user_id, legacy_token in legacy.items():
            if all(entry.value != legacy_token for entry in tokens[user_id]):
                tokens[user_id].append(RegisteredToken(value=legacy_token, legacy=True))
        return tokens

    async def add_token(self, user_id: int, token: str, platform: str | None = None) -> bool:
        """Register ``token`` for ``user_id``; return ``False`` if it was already present."""
        values = {"user_id": user_id, "token": token, "platform": platform}
        dialect = self._session.get_bind().dialect.name
        insert_factory = _UPSERT_DIALECTS.get(dialect)

        if insert_factory is not None:
            statement = (
                insert_factory(DeviceToken.__table__)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["user_id", "token"])
            )
            result = await self._session.execute(statement)
            await self._session.commit()
            inserted = bool(result.rowcount)
        else:
            try:
                await self._session.execute(sa.insert(DeviceToken.__table__).values(**values))
                await self._session.commit()
                inserted = True
            except IntegrityError:
                await self._session.rollback()
                inserted = False

        logger.info(
            "Device token registered" if inserted else "Device token already registered",
            extra={"user_id": user_id, "token": token_preview(token), "platform": platform},
        )
        return inserted

    async def remove_token(self, token: str) -> int:
        """Remove ``token`` from every user holding it, including legacy columns.

        Returns the number of records touched. Absent tokens are a no-op.
        """
        return await self._remove(token, user_id=None)

    async def remove_token_for_user(self, user_id: int, token: str) -> int:
        """Remove ``token`` from a single user's registrations."""
        return await self._remove(token, user_id=user_id)

    async def _remove(self, token: str, *, user_id: int | None) -> int:
        delete_statement = sa.delete(DeviceToken.__table__).where(DeviceToken.token == token)
        legacy_statement = sa.update(User.__table__).where(User.fcm_token == token).values(fcm_token=None)
        if user_id is not None:
            delete_statement = delete_statement.where(DeviceToken.user_id == user_id)
            legacy_statement = legacy_statement.where(User.id == user_id)

        try:
            deleted = await self._session.execute(delete_statement)
            cleared = await self._session.execute(legacy_statement)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise TokenRemovalError(details={"token": token_preview(token)}) from exc

        touched = (deleted.rowcount or 0) + (cleared.rowcount or 0)
        logger.info(
            "Device token removed",
            extra={"token": token_preview(token), "user_id": user_id, "records": touched},
        )
        return touched


__all__ = ["RegisteredToken", "TokenRegistry", "TokenStore"]
