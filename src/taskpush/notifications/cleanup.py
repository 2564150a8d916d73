"""Best-effort removal of tokens the gateway reported as invalid."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..core.logging import token_preview
from ..core.metrics import record_cleanup
from ..errors import TokenRemovalError
from .registry import TokenStore
from .results import CleanupFailure, CleanupReport, InvalidTokenRecord

logger = logging.getLogger(__name__)


class CleanupExecutor:
    """Remove each distinct invalid token from every user that holds it."""

    def __init__(self, registry: TokenStore) -> None:
        self._registry = registry

    async def cleanup(self, invalid_tokens: Iterable[InvalidTokenRecord]) -> CleanupReport:
        report = CleanupReport()
        reasons: dict[str, str] = {}
        for record in invalid_tokens:
            reasons.setdefault(record.token, record.reason)

        for token, reason in reasons.items():
            try:
                await self._registry.remove_token(token)
            except TokenRemovalError as exc:
                logger.error(
                    "Failed to remove invalid device token",
                    extra={"token": token_preview(token), "reason": reason},
                    exc_info=exc,
                )
                report.failed.append(CleanupFailure(token=token, reason=exc.message))
                continue
            logger.info("Invalid device token pruned", extra={"token": token_preview(token), "reason": reason})
            report.removed.append(token)

        record_cleanup("removed", report.removed_count)
        record_cleanup("failed", report.failed_count)
        return report


__all__ = ["CleanupExecutor"]
