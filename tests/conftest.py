from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from itertools import count
from pathlib import Path

os.environ.setdefault("TASKPUSH_ENVIRONMENT", "test")
os.environ.setdefault("TASKPUSH_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TASKPUSH_PUSH_ENABLED", "false")

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from taskpush.core.config import Settings, get_settings
from taskpush.core.security import create_access_token
from taskpush.db.base import metadata
from taskpush.deps import get_db_session
from taskpush.errors import TokenLookupError, TokenRemovalError
from taskpush.main import create_app
from taskpush.models import User, UserRole
from taskpush.notifications import (
    Delivered,
    NotificationDispatcher,
    PushMessage,
    RegisteredToken,
    SendResult,
    TokenRegistry,
)
from taskpush.services import UserService


class FakePushGateway:
    """In-memory gateway recording every send.

    ``results`` maps token values to the result (or exception) to produce;
    unknown tokens are delivered. ``delays`` holds per-token sleeps.
    """

    def __init__(
        self,
        results: dict[str, SendResult | BaseException] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.results = results or {}
        self.delays = delays or {}
        self.calls: list[tuple[str, PushMessage]] = []
        self.closed = False

    @property
    def tokens_sent(self) -> list[str]:
        return [token for token, _ in self.calls]

    async def send(self, token: str, message: PushMessage) -> SendResult:
        self.calls.append((token, message))
        delay = self.delays.get(token)
        if delay:
            await asyncio.sleep(delay)
        result = self.results.get(token, Delivered(message_id=f"projects/test/messages/{len(self.calls)}"))
        if isinstance(result, BaseException):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True


class FakeTokenStore:
    """Dictionary-backed token store with switchable storage failures."""

    def __init__(self, tokens: dict[int, list[str]] | None = None) -> None:
        self.tokens: dict[int, list[str]] = {user_id: list(values) for user_id, values in (tokens or {}).items()}
        self.lookup_calls: list[list[int]] = []
        self.removed: list[str] = []
        self.fail_lookup = False
        self.fail_removal: set[str] = set()
        self.lookup_exception: Exception | None = None
        self.removal_exception: Exception | None = None

    async def tokens_for_users(self, user_ids: Iterable[int]) -> dict[int, list[RegisteredToken]]:
        ids = list(user_ids)
        self.lookup_calls.append(ids)
        if self.lookup_exception is not None:
            raise self.lookup_exception
        if self.fail_lookup:
            raise TokenLookupError()
        return {user_id: [RegisteredToken(value=value) for value in self.tokens.get(user_id, [])] for user_id in ids}

    async def add_token(self, user_id: int, token: str, platform: str | None = None) -> bool:
        held = self.tokens.setdefault(user_id, [])
        if token in held:
            return False
        held.append(token)
        return True

    async def remove_token(self, token: str) -> int:
        self.removed.append(token)
        if self.removal_exception is not None:
            raise self.removal_exception
        if token in self.fail_removal:
            raise TokenRemovalError()
        touched = 0
        for held in self.tokens.values():
            while token in held:
                held.remove(token)
                touched += 1
        return touched


@dataclass(slots=True)
class SeededUser:
    user: User
    password: str
    headers: dict[str, str]

    @property
    def id(self) -> int:
        if self.user.id is None:  # pragma: no cover - defensive guard
            raise RuntimeError("Persisted user is missing an id.")
        return self.user.id


@pytest.fixture()
def fake_gateway() -> FakePushGateway:
    return FakePushGateway()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'taskpush.db'}",
        push_enabled=False,
        jwt_secret_key="test-secret",
    )


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(settings.database_url)
    async with engine.begin() as connection:
        await connection.run_sync(metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def dispatcher(
    fake_gateway: FakePushGateway,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[NotificationDispatcher]:
    dispatcher = NotificationDispatcher(fake_gateway, session_factory, max_concurrency=4, send_timeout=1.0)
    try:
        yield dispatcher
    finally:
        await dispatcher.aclose(1.0)


@pytest_asyncio.fixture
async def app(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    dispatcher: NotificationDispatcher,
) -> AsyncIterator[FastAPI]:
    application = create_app(settings)
    application.state.dispatcher = dispatcher

    async def _override_db_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as request_session:
            yield request_session

    application.dependency_overrides[get_db_session] = _override_db_session
    application.dependency_overrides[get_settings] = lambda: settings
    try:
        yield application
    finally:
        application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http_client:
        yield http_client


@pytest_asyncio.fixture
async def make_user(
    session: AsyncSession,
    settings: Settings,
) -> Callable[..., Awaitable[SeededUser]]:
    user_service = UserService(session)
    registry = TokenRegistry(session)
    counter = count()

    async def _factory(
        *,
        name: str | None = None,
        role: UserRole = UserRole.MEMBER,
        tokens: Sequence[str] = (),
        legacy_token: str | None = None,
        password: str = "StrongPass123!",
    ) -> SeededUser:
        index = next(counter)
        user = await user_service.create_user(
            name=name or f"User {index}",
            email=f"user-{index}@example.com",
            password=password,
            role=role,
        )
        for token in tokens:
            await registry.add_token(user.id, token)
        if legacy_token is not None:
            user.fcm_token = legacy_token
            session.add(user)
            await session.commit()
        access = create_access_token(subject=user.id, role=user.role.value, settings=settings)
        return SeededUser(user=user, password=password, headers={"Authorization": f"Bearer {access.token}"})

    return _factory


async def stored_tokens(
    session_factory: async_sessionmaker[AsyncSession],
    *user_ids: int,
) -> dict[int, list[str]]:
    """Read token values through a fresh session."""

    async with session_factory() as check:
        resolved = await TokenRegistry(check).tokens_for_users(user_ids)
    return {user_id: [entry.value for entry in entries] for user_id, entries in resolved.items()}
