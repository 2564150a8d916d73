"""Runs dispatch-and-cleanup cycles for newly created tasks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence

from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from ..core.config import Settings
from ..core.context import cycle_scope
from ..core.metrics import record_cycle
from ..errors import LookupFailedError
from .cleanup import CleanupExecutor
from .dispatch import DEFAULT_BODY, DispatchCoordinator, TaskSnapshot
from .gateway import PushGateway, PushMessage, build_gateway
from .registry import RegisteredToken, TokenRegistry, TokenStore
from .results import CleanupReport, CycleReport, CycleState, DispatchReport

logger = logging.getLogger(__name__)

RegistryFactory = Callable[[AsyncSession], TokenStore]


class SessionScopedTokenStore:
    """Token store that opens a short-lived session for every operation.

    No connection or transaction is held while pushes are in flight.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry_factory: RegistryFactory = TokenRegistry,
    ) -> None:
        self._session_factory = session_factory
        self._registry_factory = registry_factory

    async def tokens_for_users(self, user_ids: Iterable[int]) -> Mapping[int, Sequence[RegisteredToken]]:
        async with self._session_factory() as session:
            return await self._registry_factory(session).tokens_for_users(user_ids)

    async def add_token(self, user_id: int, token: str, platform: str | None = None) -> bool:
        async with self._session_factory() as session:
            return await self._registry_factory(session).add_token(user_id, token, platform)

    async def remove_token(self, token: str) -> int:
        async with self._session_factory() as session:
            return await self._registry_factory(session).remove_token(token)


class NotificationDispatcher:
    """Owns the push gateway and the background cycles started for tasks.

    Cycles read and prune tokens through short-lived sessions of their own so
    they can outlive the request that scheduled them. Pending cycles are
    tracked until they finish and are drained on shutdown before the gateway
    connection pool is closed.
    """

    def __init__(
        self,
        gateway: PushGateway | None,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_concurrency: int = 8,
        send_timeout: float = 10.0,
        default_body: str = DEFAULT_BODY,
        registry_factory: RegistryFactory = TokenRegistry,
    ) -> None:
        self._gateway = gateway
        self._session_factory = session_factory
        self._max_concurrency = max_concurrency
        self._send_timeout = send_timeout
        self._default_body = default_body
        self._registry_factory = registry_factory
        self._pending: set[asyncio.Task[CycleReport]] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        gateway: PushGateway | None = None,
    ) -> "NotificationDispatcher":
        return cls(
            gateway if gateway is not None else build_gateway(settings),
            session_factory,
            max_concurrency=settings.push_max_concurrency,
            send_timeout=settings.push_send_timeout_seconds,
            default_body=settings.push_default_body,
        )

    @property
    def enabled(self) -> bool:
        return self._gateway is not None

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def run_cycle(
        self,
        task: TaskSnapshot,
        assignee_ids: Sequence[int],
        *,
        message: PushMessage | None = None,
    ) -> CycleReport:
        """Dispatch to assignees, prune invalid tokens and report what happened."""
        with cycle_scope(task.id):
            return await self._run_cycle(task, assignee_ids, message)

    async def _run_cycle(
        self,
        task: TaskSnapshot,
        assignee_ids: Sequence[int],
        message: PushMessage | None,
    ) -> CycleReport:
        report = CycleReport(task_id=task.id)
        logger.info(
            "Notification cycle started",
            extra={"task_id": task.id, "assignees": len(assignee_ids), "push_enabled": self.enabled},
        )
        if self._gateway is None:
            report.dispatch = DispatchReport(task_id=task.id)
            report.advance(CycleState.DONE)
            record_cycle("disabled")
            return report

        store = SessionScopedTokenStore(self._session_factory, self._registry_factory)
        coordinator = DispatchCoordinator(
            store,
            self._gateway,
            max_concurrency=self._max_concurrency,
            send_timeout=self._send_timeout,
            default_body=self._default_body,
        )
        try:
            dispatch = await coordinator.dispatch(
                task,
                assignee_ids,
                on_state=report.advance,
                message=message,
            )
            report.dispatch = dispatch
            if dispatch.is_empty:
                report.cleanup = CleanupReport()
            else:
                report.advance(CycleState.CLEANING_UP)
                report.cleanup = await CleanupExecutor(store).cleanup(dispatch.invalid_tokens)
        except LookupFailedError as exc:
            report.error = exc.code
            report.advance(CycleState.DONE)
            record_cycle("lookup_failed")
            return report
        except Exception:
            logger.exception(
                "Notification cycle failed",
                extra={"task_id": task.id, "state": report.state.value},
            )
            report.error = "cycle_failed"
            report.advance(CycleState.DONE)
            record_cycle("failed")
            return report

        report.advance(CycleState.DONE)
        record_cycle("done")
        return report

    def schedule(self, task: TaskSnapshot, assignee_ids: Sequence[int]) -> asyncio.Task[CycleReport]:
        """Start a cycle without waiting for it; failures are logged on completion."""
        cycle = asyncio.create_task(
            self.run_cycle(task, list(assignee_ids)),
            name=f"notify-task-{task.id}",
        )
        self._pending.add(cycle)
        cycle.add_done_callback(self._on_cycle_done)
        return cycle

    async def dispatch_and_wait(self, task: TaskSnapshot, assignee_ids: Sequence[int]) -> CycleReport:
        """Run a cycle and await it; cancelling the caller leaves the cycle running."""
        return await asyncio.shield(self.schedule(task, assignee_ids))

    def _on_cycle_done(self, cycle: asyncio.Task[CycleReport]) -> None:
        self._pending.discard(cycle)
        if cycle.cancelled():
            logger.warning("Notification cycle cancelled", extra={"cycle": cycle.get_name()})
            return
        exc = cycle.exception()
        if exc is not None:
            logger.error(
                "Notification cycle failed",
                extra={"cycle": cycle.get_name()},
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            return
        report = cycle.result()
        if report.error is not None:
            logger.warning(
                "Notification cycle aborted",
                extra={"task_id": report.task_id, "error": report.error},
            )

    async def drain(self, timeout: float | None = None) -> int:
        """Wait for pending cycles; return how many were still running at the deadline."""
        if not self._pending:
            return 0
        _, still_running = await asyncio.wait(set(self._pending), timeout=timeout)
        if still_running:
            logger.warning("Notification cycles still running after drain", extra={"pending": len(still_running)})
        return len(still_running)

    async def aclose(self, grace_seconds: float | None = None) -> None:
        """Drain pending cycles, cancel stragglers and release the gateway."""
        leftover = await self.drain(grace_seconds)
        if leftover:
            stragglers = list(self._pending)
            for cycle in stragglers:
                cycle.cancel()
            await asyncio.gather(*stragglers, return_exceptions=True)
        if self._gateway is not None:
            await self._gateway.aclose()


def build_dispatcher(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> NotificationDispatcher:
    """Create the process-wide dispatcher, tolerating broken push configuration."""
    try:
        return NotificationDispatcher.from_settings(settings, session_factory)
    except Exception:
        logger.exception("Push gateway could not be initialised; notifications disabled")
        return NotificationDispatcher(None, session_factory)


__all__ = ["NotificationDispatcher", "RegistryFactory", "SessionScopedTokenStore", "build_dispatcher"]
