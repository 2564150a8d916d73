"""Seed script for populating development data."""

from __future__ import annotations

import asyncio
import logging

from ..core.config import get_settings
from ..core.logging import configure_logging
from ..models import UserRole
from ..services import TaskService, UserService
from .session import async_session_maker, init_db

logger = logging.getLogger(__name__)

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password"
MEMBER_EMAIL = "member@example.com"
MEMBER_PASSWORD = "member-password"


async def seed() -> None:
    """Create an admin, a member and one task assigned to the member."""
    await init_db()
    async with async_session_maker() as session:
        user_service = UserService(session)
        task_service = TaskService(session)

        admin = await user_service.get_user_by_email(ADMIN_EMAIL)
        if admin is None:
            admin = await user_service.create_user(
                name="Admin",
                email=ADMIN_EMAIL,
                password=ADMIN_PASSWORD,
                role=UserRole.ADMIN,
            )
        member = await user_service.get_user_by_email(MEMBER_EMAIL)
        if member is None:
            member = await user_service.create_user(
                name="Member",
                email=MEMBER_EMAIL,
                password=MEMBER_PASSWORD,
            )

        if admin.id is None or member.id is None:  # pragma: no cover - defensive guard
            raise ValueError("Seed users were not persisted correctly")

        if await task_service.list_tasks_for_user(member.id):
            return

        await task_service.create_task(
            creator_id=admin.id,
            title="Install the mobile app",
            description="Sign in on your phone so task alerts reach you.",
            assignee_ids=[member.id],
        )
        logger.info("Seeded development data", extra={"admin_id": admin.id, "member_id": member.id})


def main() -> None:
    """Entry-point hook for ``python -m`` execution."""
    configure_logging(get_settings())
    asyncio.run(seed())


if __name__ == "__main__":  # pragma: no cover - manual execution entry-point
    main()
