from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from conftest import stored_tokens
from taskpush.errors import TokenLookupError
from taskpush.notifications import TokenRegistry

pytestmark = pytest.mark.asyncio


async def test_tokens_for_users_batches_and_fills_missing(session, make_user) -> None:
    alice = await make_user(tokens=["tok-a1", "tok-a2"])
    bob = await make_user()

    resolved = await TokenRegistry(session).tokens_for_users([bob.id, alice.id, 9999])

    assert list(resolved) == [bob.id, alice.id, 9999]
    assert [entry.value for entry in resolved[alice.id]] == ["tok-a1", "tok-a2"]
    assert resolved[bob.id] == []
    assert resolved[9999] == []


async def test_tokens_for_users_with_no_ids_returns_empty_mapping(session) -> None:
    assert await TokenRegistry(session).tokens_for_users([]) == {}


async def test_legacy_token_is_merged_once(session, make_user) -> None:
    carol = await make_user(tokens=["tok-shared"], legacy_token="tok-shared")
    dave = await make_user(legacy_token="tok-legacy")

    resolved = await TokenRegistry(session).tokens_for_users([carol.id, dave.id])

    assert [entry.value for entry in resolved[carol.id]] == ["tok-shared"]
    assert [(entry.value, entry.legacy) for entry in resolved[dave.id]] == [("tok-legacy", True)]


async def test_add_token_is_idempotent(session, session_factory, make_user) -> None:
    erin = await make_user()
    registry = TokenRegistry(session)

    assert await registry.add_token(erin.id, "tok-e", "android") is True
    assert await registry.add_token(erin.id, "tok-e", "android") is False

    assert await stored_tokens(session_factory, erin.id) == {erin.id: ["tok-e"]}


async def test_same_token_may_belong_to_several_users(session, session_factory, make_user) -> None:
    first = await make_user(tokens=["tok-reinstalled"])
    second = await make_user()

    assert await TokenRegistry(session).add_token(second.id, "tok-reinstalled") is True

    tokens = await stored_tokens(session_factory, first.id, second.id)
    assert tokens == {first.id: ["tok-reinstalled"], second.id: ["tok-reinstalled"]}


async def test_remove_token_clears_every_holder_and_legacy_field(session, session_factory, make_user) -> None:
    first = await make_user(tokens=["tok-dead", "tok-live"])
    second = await make_user(tokens=["tok-dead"])
    third = await make_user(legacy_token="tok-dead")

    touched = await TokenRegistry(session).remove_token("tok-dead")

    assert touched == 3
    tokens = await stored_tokens(session_factory, first.id, second.id, third.id)
    assert tokens == {first.id: ["tok-live"], second.id: [], third.id: []}


async def test_remove_token_is_idempotent(session, session_factory, make_user) -> None:
    frank = await make_user(tokens=["tok-f", "tok-keep"])
    registry = TokenRegistry(session)

    await registry.remove_token("tok-f")
    after_first = await stored_tokens(session_factory, frank.id)
    assert await registry.remove_token("tok-f") == 0
    after_second = await stored_tokens(session_factory, frank.id)

    assert after_first == after_second == {frank.id: ["tok-keep"]}


async def test_remove_token_for_user_leaves_other_holders(session, session_factory, make_user) -> None:
    grace = await make_user(tokens=["tok-g"])
    heidi = await make_user(tokens=["tok-g"])

    await TokenRegistry(session).remove_token_for_user(grace.id, "tok-g")

    assert await stored_tokens(session_factory, grace.id, heidi.id) == {grace.id: [], heidi.id: ["tok-g"]}


async def test_lookup_storage_failure_raises_token_lookup_error(tmp_path) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with factory() as broken_session:
            with pytest.raises(TokenLookupError) as exc_info:
                await TokenRegistry(broken_session).tokens_for_users([1, 2])
    finally:
        await engine.dispose()

    assert exc_info.value.code == "token_lookup_failed"
    assert exc_info.value.status_code == 404
