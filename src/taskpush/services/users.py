"""Service layer orchestrating user-related repository operations."""

from __future__ import annotations

from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.security import get_password_hash
from ..models import User, UserRole
from ..notifications.registry import TokenRegistry
from ..repositories import UserRepository


class UserService:
    """High-level business operations for ``User`` entities."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repository = UserRepository(session)
        self._tokens = TokenRegistry(session)

    @property
    def repository(self) -> UserRepository:
        return self._repository

    async def create_user(
        self,
        *,
        name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.MEMBER,
    ) -> User:
        """Create and persist a new user record."""
        user = User(
            name=name,
            email=email.lower(),
            role=role,
            hashed_password=get_password_hash(password),
        )
        await self._repository.add(user)
        await self._session.commit()
        await self._repository.refresh(user)
        return user

    async def get_user(self, user_id: int) -> User | None:
        return await self._repository.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        return await self._repository.get_by_email(email.lower())

    async def list_users(self) -> list[User]:
        return await self._repository.list_ordered()

    async def register_device_token(self, user_id: int, token: str, platform: str | None = None) -> bool:
        """Attach ``token`` to the user; ``False`` means it was already registered."""
        return await self._tokens.add_token(user_id, token, platform)

    async def remove_device_token(self, user_id: int, token: str) -> int:
        """Detach ``token`` from this user only."""
        return await self._tokens.remove_token_for_user(user_id, token)
