"""Schemas describing task payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .notification import NotificationSummary


class TaskCreate(BaseModel):
    """Payload accepted when an admin creates a task.

    ``assignedTo`` accepts either a single user id or a list of ids.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(max_length=255)
    description: str = Field(default="")
    assigned_to: list[int] = Field(default_factory=list, alias="assignedTo")

    @field_validator("title")
    @classmethod
    def _require_title(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("title must not be empty")
        return stripped

    @field_validator("description", mode="before")
    @classmethod
    def _normalise_description(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("assigned_to", mode="before")
    @classmethod
    def _coerce_assignees(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, (int, str)):
            return [value]
        return value


class TaskRead(BaseModel):
    """Task representation returned to clients."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    title: str
    description: str
    created_by: int | None = Field(default=None, serialization_alias="createdBy")
    assigned_to: list[int] = Field(default_factory=list, serialization_alias="assignedTo")
    created_at: datetime = Field(serialization_alias="createdAt")


class TaskListResponse(BaseModel):
    tasks: list[TaskRead]


class TaskCreateResponse(BaseModel):
    message: str
    task: TaskRead
    notifications: NotificationSummary | None = None


__all__ = ["TaskCreate", "TaskCreateResponse", "TaskListResponse", "TaskRead"]
