"""Typed outcomes and reports produced by the notification pipeline."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class OutcomeKind(str, Enum):
    """Classification of a single push send attempt."""

    DELIVERED = "delivered"
    INVALID_TOKEN = "invalid_token"
    TRANSIENT_ERROR = "transient_error"
    AUTH_ERROR = "auth_error"


@dataclass(frozen=True, slots=True)
class Delivered:
    """The gateway accepted the message."""

    message_id: str | None = None

    @property
    def kind(self) -> OutcomeKind:
        return OutcomeKind.DELIVERED


@dataclass(frozen=True, slots=True)
class InvalidToken:
    """The gateway reported the token as permanently undeliverable."""

    reason: str
    status_code: int | None = None

    @property
    def kind(self) -> OutcomeKind:
        return OutcomeKind.INVALID_TOKEN


@dataclass(frozen=True, slots=True)
class TransientError:
    """Network, rate-limit or server-side failure worth retrying later."""

    reason: str
    status_code: int | None = None

    @property
    def kind(self) -> OutcomeKind:
        return OutcomeKind.TRANSIENT_ERROR


@dataclass(frozen=True, slots=True)
class AuthError:
    """The gateway rejected our credentials."""

    reason: str
    status_code: int | None = None

    @property
    def kind(self) -> OutcomeKind:
        return OutcomeKind.AUTH_ERROR


SendResult = Union[Delivered, InvalidToken, TransientError, AuthError]


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """Result of one send attempt for one token value."""

    token: str
    success: bool
    kind: OutcomeKind
    reason: str | None = None

    @classmethod
    def from_result(cls, token: str, result: SendResult) -> "DispatchOutcome":
        if isinstance(result, Delivered):
            return cls(token=token, success=True, kind=result.kind)
        return cls(token=token, success=False, kind=result.kind, reason=result.reason)


@dataclass(frozen=True, slots=True)
class InvalidTokenRecord:
    """A token the gateway declared dead, paired with the user that held it."""

    token: str
    reason: str
    user_id: int | None = None


@dataclass(slots=True)
class UserDispatchSummary:
    """Tokens attempted for one assignee and the outcome of each."""

    user_id: int
    tokens: list[str] = field(default_factory=list)
    outcomes: list[DispatchOutcome] = field(default_factory=list)


@dataclass(slots=True)
class DispatchReport:
    """Aggregated view of one dispatch call.

    ``outcomes`` holds exactly one entry per unique token value that was
    attempted. ``users`` preserves assignee order and repeats the shared
    outcome under every user holding the same token.
    """

    task_id: int | None = None
    users: list[UserDispatchSummary] = field(default_factory=list)
    outcomes: dict[str, DispatchOutcome] = field(default_factory=dict)
    invalid_tokens: list[InvalidTokenRecord] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def is_empty(self) -> bool:
        return not self.users and not self.outcomes

    def counts(self) -> dict[str, int]:
        tally = Counter(outcome.kind.value for outcome in self.outcomes.values())
        return {kind.value: tally.get(kind.value, 0) for kind in OutcomeKind}


@dataclass(frozen=True, slots=True)
class CleanupFailure:
    token: str
    reason: str


@dataclass(slots=True)
class CleanupReport:
    """Tokens removed by a cleanup pass and those whose removal failed."""

    removed: list[str] = field(default_factory=list)
    failed: list[CleanupFailure] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return len(self.removed)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


class CycleState(str, Enum):
    """Stages of a dispatch-and-cleanup cycle."""

    IDLE = "idle"
    RESOLVING_TOKENS = "resolving_tokens"
    SENDING = "sending"
    AGGREGATING = "aggregating"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


@dataclass(slots=True)
class CycleReport:
    """Everything one dispatch cycle did, including the states it passed through."""

    task_id: int | None = None
    states: list[CycleState] = field(default_factory=lambda: [CycleState.IDLE])
    dispatch: DispatchReport | None = None
    cleanup: CleanupReport | None = None
    error: str | None = None

    @property
    def state(self) -> CycleState:
        return self.states[-1]

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.state is CycleState.DONE

    def advance(self, state: CycleState) -> None:
        if self.states[-1] is not state:
            self.states.append(state)


__all__ = [
    "AuthError",
    "CleanupFailure",
    "CleanupReport",
    "CycleReport",
    "CycleState",
    "Delivered",
    "DispatchOutcome",
    "DispatchReport",
    "InvalidToken",
    "InvalidTokenRecord",
    "OutcomeKind",
    "SendResult",
    "TransientError",
    "UserDispatchSummary",
]
