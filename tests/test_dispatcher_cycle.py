from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

import pytest

from conftest import FakePushGateway, FakeTokenStore, stored_tokens
from taskpush.notifications import (
    AuthError,
    CycleState,
    InvalidToken,
    NotificationDispatcher,
    PushMessage,
    TaskSnapshot,
    TransientError,
)

pytestmark = pytest.mark.asyncio

FULL_CYCLE = [
    CycleState.IDLE,
    CycleState.RESOLVING_TOKENS,
    CycleState.SENDING,
    CycleState.AGGREGATING,
    CycleState.CLEANING_UP,
    CycleState.DONE,
]


async def test_invalid_token_is_pruned_from_its_holder_only(
    dispatcher, fake_gateway, session_factory, make_user
) -> None:
    u1 = await make_user(tokens=["tokA"])
    u2 = await make_user(tokens=["tokA", "tokB"])
    fake_gateway.results["tokB"] = InvalidToken(reason="UNREGISTERED", status_code=404)

    report = await dispatcher.run_cycle(TaskSnapshot(id=1, title="Inventory"), [u1.id, u2.id])

    assert report.states == FULL_CYCLE
    assert report.error is None
    assert report.dispatch.attempted == 2
    assert report.dispatch.outcomes["tokB"].kind.value == "invalid_token"
    assert report.cleanup.removed == ["tokB"]
    assert await stored_tokens(session_factory, u1.id, u2.id) == {u1.id: ["tokA"], u2.id: ["tokA"]}


async def test_shared_invalid_token_is_removed_from_every_holder(
    dispatcher, fake_gateway, session_factory, make_user
) -> None:
    u1 = await make_user(tokens=["tok-old", "tok-1"])
    u2 = await make_user(tokens=["tok-old"], legacy_token="tok-old")
    fake_gateway.results["tok-old"] = InvalidToken(reason="UNREGISTERED", status_code=404)

    report = await dispatcher.run_cycle(TaskSnapshot(id=2, title="Audit"), [u1.id, u2.id])

    assert fake_gateway.tokens_sent.count("tok-old") == 1
    assert report.cleanup.removed == ["tok-old"]
    assert await stored_tokens(session_factory, u1.id, u2.id) == {u1.id: ["tok-1"], u2.id: []}


async def test_transient_and_auth_failures_keep_tokens(
    dispatcher, fake_gateway, session_factory, make_user
) -> None:
    user = await make_user(tokens=["tok-busy", "tok-auth"])
    fake_gateway.results.update(
        {
            "tok-busy": TransientError(reason="UNAVAILABLE", status_code=503),
            "tok-auth": AuthError(reason="UNAUTHENTICATED", status_code=401),
        }
    )

    report = await dispatcher.run_cycle(TaskSnapshot(id=3, title="Patch"), [user.id])

    assert report.cleanup.removed == []
    assert await stored_tokens(session_factory, user.id) == {user.id: ["tok-busy", "tok-auth"]}


async def test_lookup_failure_ends_cycle_without_sends(fake_gateway, session_factory) -> None:
    store = FakeTokenStore({1: ["tok"]})
    store.fail_lookup = True
    dispatcher = NotificationDispatcher(fake_gateway, session_factory, registry_factory=lambda _: store)

    report = await dispatcher.run_cycle(TaskSnapshot(id=4, title="Backup"), [1])

    assert report.error == "lookup_failed"
    assert report.states == [CycleState.IDLE, CycleState.RESOLVING_TOKENS, CycleState.DONE]
    assert report.dispatch is None
    assert fake_gateway.calls == []


async def test_unexpected_lookup_error_ends_cycle_as_failed(fake_gateway, session_factory) -> None:
    store = FakeTokenStore({1: ["tok"]})
    store.lookup_exception = RuntimeError("driver exploded")
    dispatcher = NotificationDispatcher(fake_gateway, session_factory, registry_factory=lambda _: store)

    report = await dispatcher.run_cycle(TaskSnapshot(id=10, title="Fragile"), [1])

    assert report.error == "cycle_failed"
    assert report.state is CycleState.DONE
    assert report.succeeded is False
    assert fake_gateway.calls == []


async def test_unexpected_cleanup_error_keeps_dispatch_results(fake_gateway, session_factory) -> None:
    store = FakeTokenStore({1: ["tok-dead", "tok-ok"]})
    store.removal_exception = RuntimeError("connection reset")
    fake_gateway.results["tok-dead"] = InvalidToken(reason="UNREGISTERED", status_code=404)
    dispatcher = NotificationDispatcher(fake_gateway, session_factory, registry_factory=lambda _: store)

    report = await dispatcher.run_cycle(TaskSnapshot(id=11, title="Prune"), [1])

    assert report.error == "cycle_failed"
    assert report.states[-2:] == [CycleState.CLEANING_UP, CycleState.DONE]
    assert report.dispatch.attempted == 2
    assert store.tokens[1] == ["tok-dead", "tok-ok"]


async def test_empty_assignee_cycle_goes_straight_to_done(dispatcher, fake_gateway) -> None:
    report = await dispatcher.run_cycle(TaskSnapshot(id=5, title="Solo"), [])

    assert report.states == [CycleState.IDLE, CycleState.DONE]
    assert report.dispatch.is_empty
    assert fake_gateway.calls == []


async def test_disabled_dispatcher_reports_without_sending(session_factory) -> None:
    dispatcher = NotificationDispatcher(None, session_factory)

    report = await dispatcher.run_cycle(TaskSnapshot(id=6, title="Quiet"), [1, 2])

    assert dispatcher.enabled is False
    assert report.succeeded
    assert report.dispatch.attempted == 0


async def test_scheduled_cycles_finish_and_are_drained(dispatcher, fake_gateway, make_user) -> None:
    user = await make_user(tokens=["tok-bg"])
    fake_gateway.delays["tok-bg"] = 0.05

    cycle = dispatcher.schedule(TaskSnapshot(id=7, title="Later"), [user.id])
    assert dispatcher.pending == 1

    assert await dispatcher.drain(timeout=2.0) == 0
    assert cycle.done()
    assert cycle.result().succeeded
    assert dispatcher.pending == 0
    assert fake_gateway.tokens_sent == ["tok-bg"]


async def test_cancelled_waiter_does_not_cancel_the_cycle(dispatcher, fake_gateway, make_user) -> None:
    user = await make_user(tokens=["tok-slow"])
    fake_gateway.delays["tok-slow"] = 0.1

    waiter = asyncio.create_task(dispatcher.dispatch_and_wait(TaskSnapshot(id=8, title="Detached"), [user.id]))
    await asyncio.sleep(0.02)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    assert await dispatcher.drain(timeout=2.0) == 0
    assert fake_gateway.tokens_sent == ["tok-slow"]


async def test_aclose_cancels_stragglers_and_closes_gateway(session_factory, make_user) -> None:
    gateway = FakePushGateway(delays={"tok-stuck": 10.0})
    dispatcher = NotificationDispatcher(gateway, session_factory, send_timeout=30.0)
    user = await make_user(tokens=["tok-stuck"])

    cycle = dispatcher.schedule(TaskSnapshot(id=9, title="Stuck"), [user.id])
    await asyncio.sleep(0.05)
    await dispatcher.aclose(grace_seconds=0.05)

    assert cycle.cancelled()
    assert gateway.closed is True


class CountingSessionFactory:
    def __init__(self, factory) -> None:
        self.factory = factory
        self.open = 0

    @asynccontextmanager
    async def __call__(self):
        self.open += 1
        try:
            async with self.factory() as session:
                yield session
        finally:
            self.open -= 1


class SessionAwareGateway(FakePushGateway):
    def __init__(self, sessions: CountingSessionFactory) -> None:
        super().__init__()
        self.sessions = sessions
        self.open_during_send: list[int] = []

    async def send(self, token: str, message: PushMessage):
        self.open_during_send.append(self.sessions.open)
        return await super().send(token, message)


async def test_no_database_session_is_held_while_sending(session_factory, make_user) -> None:
    sessions = CountingSessionFactory(session_factory)
    gateway = SessionAwareGateway(sessions)
    gateway.results["tok-gone"] = InvalidToken(reason="UNREGISTERED", status_code=404)
    dispatcher = NotificationDispatcher(gateway, sessions, max_concurrency=2)
    user = await make_user(tokens=["tok-live", "tok-gone"])

    report = await dispatcher.run_cycle(TaskSnapshot(id=12, title="Pooled"), [user.id])

    assert gateway.open_during_send == [0, 0]
    assert report.cleanup.removed == ["tok-gone"]
    assert sessions.open == 0
    assert await stored_tokens(session_factory, user.id) == {user.id: ["tok-live"]}
