from __future__ import annotations

import re

import pytest
from httpx import AsyncClient

from taskpush import __version__
from taskpush.models import UserRole

pytestmark = pytest.mark.asyncio


async def test_version_is_semver() -> None:
    assert re.match(r"^\d+\.\d+\.\d+$", __version__) is not None


async def test_health_and_root_metadata(client: AsyncClient) -> None:
    health = await client.get("/healthz")
    root = await client.get("/")

    assert health.json() == {"status": "ok"}
    assert root.json()["push_enabled"] is True
    assert root.json()["api_prefix"] == "/api"


async def test_metrics_expose_push_counters(client: AsyncClient, make_user) -> None:
    admin = await make_user(role=UserRole.ADMIN)
    member = await make_user(tokens=["tok-metrics"])
    await client.post("/api/tasks", json={"title": "Count me", "assignedTo": [member.id]}, headers=admin.headers)

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert 'taskpush_push_sends_total{outcome="delivered"}' in response.text
    assert 'taskpush_dispatch_cycles_total{result="done"}' in response.text
