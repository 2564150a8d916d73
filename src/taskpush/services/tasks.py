"""Task creation and listing."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlmodel.ext.asyncio.session import AsyncSession

from ..errors import ValidationError
from ..models import Task, User, UserRole
from ..repositories import TaskRepository, UserRepository
from ..schemas import TaskRead

logger = logging.getLogger(__name__)


class TaskService:
    """Business operations for tasks and their assignee sets."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repository = TaskRepository(session)
        self._users = UserRepository(session)

    async def create_task(
        self,
        *,
        creator_id: int,
        title: str,
        description: str = "",
        assignee_ids: Sequence[int] = (),
    ) -> tuple[Task, list[int]]:
        """Persist a task; returns it with the de-duplicated assignee ids."""
        title = title.strip()
        if not title:
            raise ValidationError("Task title must not be empty.", code="invalid_title")

        ordered_ids = list(dict.fromkeys(assignee_ids))
        known = await self._users.existing_ids(ordered_ids)
        missing = [user_id for user_id in ordered_ids if user_id not in known]
        if missing:
            raise ValidationError(
                "Unknown assignees.",
                code="unknown_assignees",
                details={"user_ids": missing},
            )

        task = Task(title=title, description=description or "", created_by=creator_id)
        await self._repository.add_with_assignees(task, ordered_ids)
        await self._session.commit()
        await self._repository.refresh(task)
        logger.info(
            "Task created",
            extra={"task_id": task.id, "created_by": creator_id, "assignees": len(ordered_ids)},
        )
        return task, ordered_ids

    async def list_tasks_for(self, user: User) -> list[TaskRead]:
        """Admins see every task; others see tasks they created or were assigned."""
        if user.role == UserRole.ADMIN:
            tasks = await self._repository.list_newest_first()
        else:
            tasks = await self._repository.list_visible_to(user.id)
        return await self.to_read(tasks)

    async def list_tasks_for_user(self, user_id: int) -> list[TaskRead]:
        """Tasks assigned to ``user_id``, newest first."""
        return await self.to_read(await self._repository.list_assigned_to(user_id))

    async def to_read(self, tasks: Sequence[Task]) -> list[TaskRead]:
        assignees = await self._repository.assignee_map(task.id for task in tasks)
        return [self.read(task, assignees.get(task.id, [])) for task in tasks]

    @staticmethod
    def read(task: Task, assignee_ids: Sequence[int]) -> TaskRead:
        return TaskRead(
            id=task.id,
            title=task.title,
            description=task.description,
            created_by=task.created_by,
            assigned_to=list(assignee_ids),
            created_at=task.created_at,
        )


__all__ = ["TaskService"]
