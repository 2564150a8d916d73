"""Domain models exposed for the task push service."""

from __future__ import annotations

from .common import TimestampMixin, utcnow
from .device_token import DeviceToken
from .task import Task, TaskAssignee, TaskBase
from .user import User, UserBase, UserRole

__all__ = [
    "DeviceToken",
    "Task",
    "TaskAssignee",
    "TaskBase",
    "TimestampMixin",
    "User",
    "UserBase",
    "UserRole",
    "utcnow",
]
