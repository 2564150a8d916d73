"""Fan-out of a task-creation event to every assignee device."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from ..core.logging import token_preview
from ..core.metrics import record_send_outcome
from ..errors import LookupFailedError, TokenLookupError
from .gateway import PushGateway, PushMessage
from .registry import TokenStore
from .results import (
    AuthError,
    CycleState,
    DispatchOutcome,
    DispatchReport,
    InvalidTokenRecord,
    OutcomeKind,
    SendResult,
    TransientError,
    UserDispatchSummary,
)

logger = logging.getLogger(__name__)

DEFAULT_BODY = "You have a new task assigned"
AUTH_SKIP_REASON = "skipped after gateway authentication failure"

StateCallback = Callable[[CycleState], None]


@dataclass(frozen=True, slots=True)
class TaskSnapshot:
    """The task fields needed to compose a notification."""

    id: int | None
    title: str
    description: str = ""

    @classmethod
    def from_task(cls, task: Any) -> "TaskSnapshot":
        return cls(id=task.id, title=task.title, description=task.description or "")


def build_task_message(task: TaskSnapshot, default_body: str = DEFAULT_BODY) -> PushMessage:
    body = task.description.strip() or default_body
    return PushMessage(
        title=f"New Task: {task.title}",
        body=body,
        data={"taskId": "" if task.id is None else str(task.id), "taskTitle": task.title},
    )


class DispatchCoordinator:
    """Resolve assignee tokens in one lookup and send once per unique token.

    Individual send failures are captured in the returned report. The only
    exception that escapes :meth:`dispatch` is :class:`LookupFailedError`,
    raised before any send is attempted.
    """

    def __init__(
        self,
        registry: TokenStore,
        gateway: PushGateway,
        *,
        max_concurrency: int = 8,
        send_timeout: float = 10.0,
        default_body: str = DEFAULT_BODY,
    ) -> None:
        self._registry = registry
        self._gateway = gateway
        self._max_concurrency = max(1, max_concurrency)
        self._send_timeout = send_timeout
        self._default_body = default_body

    async def dispatch(
        self,
        task: TaskSnapshot,
        assignee_ids: Sequence[int],
        *,
        on_state: StateCallback | None = None,
        message: PushMessage | None = None,
    ) -> DispatchReport:
        """Send ``message`` (by default built from ``task``) to every assignee token."""
        notify = on_state or (lambda state: None)
        user_ids = list(dict.fromkeys(assignee_ids))
        report = DispatchReport(task_id=task.id)
        if not user_ids:
            logger.debug("Task has no assignees; nothing to dispatch", extra={"task_id": task.id})
            return report

        notify(CycleState.RESOLVING_TOKENS)
        try:
            resolved = await self._registry.tokens_for_users(user_ids)
        except TokenLookupError as exc:
            logger.error("Assignee token lookup failed", extra={"task_id": task.id, "user_ids": user_ids})
            raise LookupFailedError(details={"task_id": task.id}) from exc

        per_user: dict[int, list[str]] = {
            user_id: list(dict.fromkeys(entry.value for entry in resolved.get(user_id, ())))
            for user_id in user_ids
        }
        unique_tokens = list(dict.fromkeys(value for values in per_user.values() for value in values))

        notify(CycleState.SENDING)
        outcomes = await self._send_all(message or build_task_message(task, self._default_body), unique_tokens)

        notify(CycleState.AGGREGATING)
        report.outcomes = outcomes
        for user_id in user_ids:
            values = per_user[user_id]
            summary = UserDispatchSummary(user_id=user_id, tokens=values)
            for value in values:
                outcome = outcomes[value]
                summary.outcomes.append(outcome)
                if outcome.kind is OutcomeKind.INVALID_TOKEN:
                    report.invalid_tokens.append(
                        InvalidTokenRecord(token=value, reason=outcome.reason or "", user_id=user_id)
                    )
            report.users.append(summary)

        logger.info(
            "Task notification dispatch finished",
            extra={
                "task_id": task.id,
                "assignees": len(user_ids),
                "attempted": report.attempted,
                **report.counts(),
            },
        )
        return report

    async def _send_all(self, message: PushMessage, tokens: list[str]) -> dict[str, DispatchOutcome]:
        if not tokens:
            return {}
        semaphore = asyncio.Semaphore(self._max_concurrency)
        auth_failed = asyncio.Event()

        async def _send_one(token: str) -> DispatchOutcome:
            async with semaphore:
                if auth_failed.is_set():
                    record_send_outcome("skipped")
                    return DispatchOutcome(
                        token=token,
                        success=False,
                        kind=OutcomeKind.AUTH_ERROR,
                        reason=AUTH_SKIP_REASON,
                    )
                result = await self._send_with_timeout(token, message)
                if isinstance(result, AuthError) and not auth_failed.is_set():
                    auth_failed.set()
                    logger.error(
                        "Push gateway rejected credentials; skipping remaining sends",
                        extra={"token": token_preview(token), "reason": result.reason},
                    )
                record_send_outcome(result.kind.value)
                outcome = DispatchOutcome.from_result(token, result)
                if not outcome.success:
                    logger.warning(
                        "Push send failed",
                        extra={"token": token_preview(token), "outcome": outcome.kind.value, "reason": outcome.reason},
                    )
                return outcome

        results = await asyncio.gather(*(_send_one(token) for token in tokens))
        return dict(zip(tokens, results))

    async def _send_with_timeout(self, token: str, message: PushMessage) -> SendResult:
        try:
            return await asyncio.wait_for(self._gateway.send(token, message), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Push send exceeded timeout",
                extra={"token": token_preview(token), "timeout_seconds": self._send_timeout},
            )
            return TransientError(reason=f"send timed out after {self._send_timeout:g}s")
        except Exception as exc:
            logger.exception("Push send raised unexpectedly", extra={"token": token_preview(token)})
            return TransientError(reason=f"unexpected error: {exc.__class__.__name__}")


__all__ = [
    "AUTH_SKIP_REASON",
    "DEFAULT_BODY",
    "DispatchCoordinator",
    "TaskSnapshot",
    "build_task_message",
]
