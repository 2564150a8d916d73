from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import stored_tokens

pytestmark = pytest.mark.asyncio


async def test_register_device_token_is_idempotent(client: AsyncClient, make_user, session_factory) -> None:
    member = await make_user()

    first = await client.post(
        "/api/users/device-token",
        json={"fcmToken": " device-123 ", "platform": "android"},
        headers=member.headers,
    )
    second = await client.post(
        "/api/users/device-token",
        json={"fcmToken": "device-123", "platform": "android"},
        headers=member.headers,
    )

    assert first.status_code == 200
    assert first.json() == {"msg": "Token saved"}
    assert second.json() == {"msg": "Token already registered"}
    assert await stored_tokens(session_factory, member.id) == {member.id: ["device-123"]}


async def test_task_scoped_device_token_route_is_an_alias(client: AsyncClient, make_user, session_factory) -> None:
    member = await make_user()

    response = await client.post("/api/tasks/device-token", json={"fcmToken": "device-xyz"}, headers=member.headers)

    assert response.status_code == 200
    assert await stored_tokens(session_factory, member.id) == {member.id: ["device-xyz"]}


async def test_blank_device_token_is_rejected(client: AsyncClient, make_user) -> None:
    member = await make_user()

    response = await client.post("/api/users/device-token", json={"fcmToken": "   "}, headers=member.headers)

    assert response.status_code == 422


async def test_remove_token_only_affects_the_caller(client: AsyncClient, make_user, session_factory) -> None:
    owner = await make_user(tokens=["shared-device"])
    other = await make_user(tokens=["shared-device"])

    removed = await client.post("/api/users/remove-token", json={"fcmToken": "shared-device"}, headers=owner.headers)
    missing = await client.post("/api/users/remove-token", json={"fcmToken": "shared-device"}, headers=owner.headers)

    assert removed.json() == {"msg": "Token removed"}
    assert missing.json() == {"msg": "Token not found"}
    tokens = await stored_tokens(session_factory, owner.id, other.id)
    assert tokens == {owner.id: [], other.id: ["shared-device"]}


async def test_list_users_hides_credentials(client: AsyncClient, make_user) -> None:
    member = await make_user(tokens=["secret-token"])

    response = await client.get("/api/users", headers=member.headers)

    assert response.status_code == 200
    users = response.json()["users"]
    assert [user["id"] for user in users] == [member.id]
    assert set(users[0]) == {"id", "name", "email", "role"}
