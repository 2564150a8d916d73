"""Pydantic schemas for the task push service."""

from __future__ import annotations

from .auth import AuthResponse, LoginRequest, RegisterRequest, TokenPayload
from .notification import NotificationSummary, TokenOutcomeRead, UserNotificationRead
from .system import ErrorResponse, HealthCheckResponse, MessageResponse, RootResponse
from .task import TaskCreate, TaskCreateResponse, TaskListResponse, TaskRead
from .user import DeviceTokenRequest, RemoveTokenRequest, UserListResponse, UserPublic

__all__ = [
    "AuthResponse",
    "DeviceTokenRequest",
    "ErrorResponse",
    "HealthCheckResponse",
    "LoginRequest",
    "MessageResponse",
    "NotificationSummary",
    "RegisterRequest",
    "RemoveTokenRequest",
    "RootResponse",
    "TaskCreate",
    "TaskCreateResponse",
    "TaskListResponse",
    "TaskRead",
    "TokenOutcomeRead",
    "TokenPayload",
    "UserListResponse",
    "UserNotificationRead",
    "UserPublic",
]
