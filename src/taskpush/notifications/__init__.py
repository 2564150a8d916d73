"""Task notification fan-out: token registry, push gateway, dispatch and cleanup."""

from __future__ import annotations

from .cleanup import CleanupExecutor
from .credentials import CredentialError, ServiceAccountTokenProvider
from .dispatch import DispatchCoordinator, TaskSnapshot, build_task_message
from .dispatcher import NotificationDispatcher, SessionScopedTokenStore, build_dispatcher
from .gateway import FcmGatewayClient, PushGateway, PushMessage, build_gateway, classify_failure
from .registry import RegisteredToken, TokenRegistry, TokenStore
from .results import (
    AuthError,
    CleanupFailure,
    CleanupReport,
    CycleReport,
    CycleState,
    Delivered,
    DispatchOutcome,
    DispatchReport,
    InvalidToken,
    InvalidTokenRecord,
    OutcomeKind,
    SendResult,
    TransientError,
    UserDispatchSummary,
)

__all__ = [
    "AuthError",
    "CleanupExecutor",
    "CleanupFailure",
    "CleanupReport",
    "CredentialError",
    "CycleReport",
    "CycleState",
    "Delivered",
    "DispatchCoordinator",
    "DispatchOutcome",
    "DispatchReport",
    "FcmGatewayClient",
    "InvalidToken",
    "InvalidTokenRecord",
    "NotificationDispatcher",
    "OutcomeKind",
    "PushGateway",
    "PushMessage",
    "RegisteredToken",
    "SendResult",
    "ServiceAccountTokenProvider",
    "SessionScopedTokenStore",
    "TaskSnapshot",
    "TokenRegistry",
    "TokenStore",
    "TransientError",
    "UserDispatchSummary",
    "build_dispatcher",
    "build_gateway",
    "build_task_message",
    "classify_failure",
]
