"""Context variables stamped onto every log record."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[str] = ContextVar("taskpush_request_id", default="-")
_cycle_task_id: ContextVar[int | None] = ContextVar("taskpush_cycle_task_id", default=None)


def get_request_id() -> str:
    return _request_id.get()


def get_cycle_task_id() -> int | None:
    """Return the task whose notification cycle is running, if any."""

    return _cycle_task_id.get()


@contextmanager
def request_id_scope(request_id: str | None) -> Iterator[str]:
    """Bind ``request_id`` for the duration of the block.

    ``None`` keeps whatever id is already bound.
    """
    if not request_id:
        yield _request_id.get()
        return
    token = _request_id.set(request_id)
    try:
        yield request_id
    finally:
        _request_id.reset(token)


@contextmanager
def cycle_scope(task_id: int | None) -> Iterator[None]:
    token = _cycle_task_id.set(task_id)
    try:
        yield
    finally:
        _cycle_task_id.reset(token)


__all__ = [
    "REQUEST_ID_HEADER",
    "cycle_scope",
    "get_cycle_task_id",
    "get_request_id",
    "request_id_scope",
]
