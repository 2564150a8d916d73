"""Authentication service encapsulating registration and login."""

from __future__ import annotations

from fastapi import status
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.config import Settings
from ..core.security import GeneratedToken, create_access_token, verify_password
from ..errors import ApplicationError
from ..models import User, UserRole
from .users import UserService


class AuthService:
    """Register users, check credentials and issue bearer tokens."""

    def __init__(self, session: AsyncSession, settings: Settings) -> None:
        self._settings = settings
        self._user_service = UserService(session)

    async def register_user(
        self,
        *,
        name: str,
        email: str,
        password: str,
        role: UserRole | None = None,
    ) -> User:
        """Create a member account; admins are only created by the seed script."""
        if role is not None and role != UserRole.MEMBER:
            raise ApplicationError(
                "Only member accounts can be self-registered.",
                code="role_not_allowed",
                status_code=status.HTTP_403_FORBIDDEN,
            )
        existing = await self._user_service.get_user_by_email(email)
        if existing is not None:
            raise ApplicationError(
                "Email is already registered.",
                code="email_taken",
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        return await self._user_service.create_user(
            name=name,
            email=email,
            password=password,
            role=UserRole.MEMBER,
        )

    async def authenticate_user(self, email: str, password: str) -> User:
        user = await self._user_service.get_user_by_email(email)
        if user is None or not verify_password(password, user.hashed_password):
            raise ApplicationError(
                "Invalid credentials.",
                code="invalid_credentials",
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        if not user.is_active:
            raise ApplicationError(
                "User account is inactive.",
                code="inactive_user",
                status_code=status.HTTP_403_FORBIDDEN,
            )
        return user

    def issue_token(self, user: User) -> GeneratedToken:
        if user.id is None:
            raise ApplicationError("User must be persisted before issuing tokens.")
        return create_access_token(subject=user.id, role=user.role.value, settings=self._settings)


__all__ = ["AuthService"]
