"""Repository for tasks and their ordered assignee sets."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import sqlalchemy as sa
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from ..models import Task, TaskAssignee
from .base import BaseRepository


class TaskRepository(BaseRepository[Task]):
    """Persistence operations for ``Task`` entities."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Task)

    async def add_with_assignees(self, task: Task, assignee_ids: Sequence[int]) -> Task:
        """Insert ``task`` and its assignees, preserving assignee order."""
        await self.add(task)
        for position, user_id in enumerate(assignee_ids):
            self.session.add(TaskAssignee(task_id=task.id, user_id=user_id, position=position))
        await self.session.flush()
        return task

    async def assignee_map(self, task_ids: Iterable[int]) -> dict[int, list[int]]:
        """Return ordered assignee ids keyed by task id."""
        wanted = list(task_ids)
        if not wanted:
            return {}
        result = await self.session.execute(
            select(TaskAssignee.task_id, TaskAssignee.user_id)
            .where(TaskAssignee.task_id.in_(wanted))
            .order_by(TaskAssignee.task_id, TaskAssignee.position)
        )
        assignees: dict[int, list[int]] = {task_id: [] for task_id in wanted}
        for task_id, user_id in result.all():
            assignees[task_id].append(user_id)
        return assignees

    async def list_newest_first(self) -> list[Task]:
        result = await self.session.execute(select(Task).order_by(Task.created_at.desc(), Task.id.desc()))
        return list(result.scalars().all())

    async def list_visible_to(self, user_id: int) -> list[Task]:
        """Tasks the user created or is assigned to, newest first."""
        assigned = select(TaskAssignee.task_id).where(TaskAssignee.user_id == user_id)
        result = await self.session.execute(
            select(Task)
            .where(sa.or_(Task.created_by == user_id, Task.id.in_(assigned)))
            .order_by(Task.created_at.desc(), Task.id.desc())
        )
        return list(result.scalars().all())

    async def list_assigned_to(self, user_id: int) -> list[Task]:
        result = await self.session.execute(
            select(Task)
            .join(TaskAssignee, TaskAssignee.task_id == Task.id)
            .where(TaskAssignee.user_id == user_id)
            .order_by(Task.created_at.desc(), Task.id.desc())
        )
        return list(result.scalars().all())
