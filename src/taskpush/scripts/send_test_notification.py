"""Send a one-off notification to every device of a user.

Usage::

    python -m taskpush.scripts.send_test_notification <user_id> [title] [body]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from ..core.config import get_settings
from ..core.logging import configure_logging
from ..db.session import async_session_maker
from ..notifications import NotificationDispatcher, PushMessage, TaskSnapshot
from ..schemas import NotificationSummary

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("user_id", type=int)
    parser.add_argument("title", nargs="?", default="Test notification")
    parser.add_argument("body", nargs="?", default="This is a test push from the task service.")
    return parser.parse_args(argv)


async def send(user_id: int, title: str, body: str) -> NotificationSummary:
    settings = get_settings()
    dispatcher = NotificationDispatcher.from_settings(settings, async_session_maker)
    if not dispatcher.enabled:
        raise SystemExit("Push gateway is not configured; set TASKPUSH_PUSH_SERVICE_ACCOUNT_JSON or _FILE.")
    try:
        report = await dispatcher.run_cycle(
            TaskSnapshot(id=None, title=title, description=body),
            [user_id],
            message=PushMessage(title=title, body=body, data={"test": "1"}),
        )
    finally:
        await dispatcher.aclose()
    return NotificationSummary.from_cycle(report)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(get_settings())
    summary = asyncio.run(send(args.user_id, args.title, args.body))
    print(json.dumps(summary.model_dump(), indent=2))
    return 0 if summary.error is None else 1


if __name__ == "__main__":  # pragma: no cover - manual execution entry-point
    sys.exit(main())
