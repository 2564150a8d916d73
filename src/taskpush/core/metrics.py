"""Prometheus counters describing notification delivery."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, generate_latest

REGISTRY = CollectorRegistry(auto_describe=True)

PUSH_SENDS = Counter(
    "taskpush_push_sends",
    "Push gateway send attempts grouped by outcome kind.",
    ["outcome"],
    registry=REGISTRY,
)
PUSH_CLEANUP = Counter(
    "taskpush_push_cleanup",
    "Invalid device token removals grouped by result.",
    ["result"],
    registry=REGISTRY,
)
DISPATCH_CYCLES = Counter(
    "taskpush_dispatch_cycles",
    "Completed dispatch cycles grouped by terminal result.",
    ["result"],
    registry=REGISTRY,
)


def record_send_outcome(outcome: str) -> None:
    PUSH_SENDS.labels(outcome=outcome).inc()


def record_cleanup(result: str, count: int = 1) -> None:
    if count > 0:
        PUSH_CLEANUP.labels(result=result).inc(count)


def record_cycle(result: str) -> None:
    DISPATCH_CYCLES.labels(result=result).inc()


def metrics_response() -> Response:
    """Render a Prometheus response with the current metrics snapshot."""

    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "metrics_response",
    "record_cleanup",
    "record_cycle",
    "record_send_outcome",
]
