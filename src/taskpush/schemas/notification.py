"""Serialisable view of a notification cycle."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from ..core.logging import token_preview

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..notifications.results import CycleReport


class TokenOutcomeRead(BaseModel):
    """Outcome for one token; the token value is truncated."""

    token: str
    success: bool
    outcome: str
    reason: str | None = None


class UserNotificationRead(BaseModel):
    user_id: int
    outcomes: list[TokenOutcomeRead] = Field(default_factory=list)


class NotificationSummary(BaseModel):
    """What happened when assignees were notified about a task."""

    state: str
    error: str | None = None
    attempted: int = 0
    counts: dict[str, int] = Field(default_factory=dict)
    users: list[UserNotificationRead] = Field(default_factory=list)
    removed_tokens: int = 0
    cleanup_failures: int = 0

    @classmethod
    def from_cycle(cls, report: CycleReport) -> "NotificationSummary":
        dispatch = report.dispatch
        cleanup = report.cleanup
        users = []
        if dispatch is not None:
            users = [
                UserNotificationRead(
                    user_id=summary.user_id,
                    outcomes=[
                        TokenOutcomeRead(
                            token=token_preview(outcome.token),
                            success=outcome.success,
                            outcome=outcome.kind.value,
                            reason=outcome.reason,
                        )
                        for outcome in summary.outcomes
                    ],
                )
                for summary in dispatch.users
            ]
        return cls(
            state=report.state.value,
            error=report.error,
            attempted=dispatch.attempted if dispatch is not None else 0,
            counts=dispatch.counts() if dispatch is not None else {},
            users=users,
            removed_tokens=cleanup.removed_count if cleanup is not None else 0,
            cleanup_failures=cleanup.failed_count if cleanup is not None else 0,
        )


__all__ = ["NotificationSummary", "TokenOutcomeRead", "UserNotificationRead"]
