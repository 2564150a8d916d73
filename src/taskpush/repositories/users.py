"""Repository for interacting with user persistence models."""

from __future__ import annotations

from collections.abc import Iterable

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import User
from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Concrete repository for ``User`` entities."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, User)

    async def get_by_email(self, email: str) -> User | None:
        """Return a user matching the supplied email if it exists."""
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def list_ordered(self) -> list[User]:
        result = await self.session.execute(select(User).order_by(User.name, User.id))
        return list(result.scalars().all())

    async def existing_ids(self, ids: Iterable[int]) -> set[int]:
        """Return the subset of ``ids`` that belong to stored users."""
        wanted = set(ids)
        if not wanted:
            return set()
        result = await self.session.execute(select(User.id).where(User.id.in_(wanted)))
        return set(result.scalars().all())
