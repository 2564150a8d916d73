"""OAuth2 access tokens for the push gateway derived from a service account."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Protocol

import google.auth.transport.requests
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account

from ..core.config import Settings

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"


class CredentialError(RuntimeError):
    """Raised when service account material cannot be loaded or refreshed."""


class AccessTokenProvider(Protocol):
    """Source of bearer tokens for gateway requests."""

    async def get_token(self) -> str:
        ...

    def invalidate(self) -> None:
        ...


def load_service_account_info(settings: Settings) -> dict[str, Any] | None:
    """Read service account JSON from settings, preferring the inline value.

    Returns ``None`` when nothing is configured. Malformed material raises
    :class:`CredentialError` rather than silently disabling pushes.
    """

    if settings.push_service_account_json:
        try:
            return json.loads(settings.push_service_account_json)
        except json.JSONDecodeError as exc:
            raise CredentialError("push_service_account_json is not valid JSON") from exc

    path: Path | None = settings.push_service_account_file
    if path is None:
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise CredentialError(f"service account file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise CredentialError(f"service account file is not valid JSON: {path}") from exc


class ServiceAccountTokenProvider:
    """Caches a short-lived access token and refreshes it when it goes stale.

    ``google-auth`` refreshes synchronously over ``requests``; the refresh is
    pushed to a worker thread and serialised with a lock so concurrent sends
    share one refresh.
    """

    def __init__(self, credentials: service_account.Credentials) -> None:
        self._credentials = credentials
        self._lock = asyncio.Lock()

    @classmethod
    def from_info(cls, info: dict[str, Any]) -> "ServiceAccountTokenProvider":
        try:
            credentials = service_account.Credentials.from_service_account_info(info, scopes=[FCM_SCOPE])
        except (ValueError, KeyError) as exc:
            raise CredentialError("service account info is incomplete") from exc
        return cls(credentials)

    @property
    def project_id(self) -> str | None:
        return self._credentials.project_id

    async def get_token(self) -> str:
        async with self._lock:
            if not self._credentials.valid:
                request = google.auth.transport.requests.Request()
                try:
                    await asyncio.to_thread(self._credentials.refresh, request)
                except GoogleAuthError as exc:
                    raise CredentialError("unable to refresh push gateway credentials") from exc
                logger.debug("Push gateway access token refreshed", extra={"expiry": self._credentials.expiry})
            return self._credentials.token

    def invalidate(self) -> None:
        """Force the next ``get_token`` call to fetch a fresh token."""
        self._credentials.token = None


__all__ = [
    "AccessTokenProvider",
    "CredentialError",
    "FCM_SCOPE",
    "ServiceAccountTokenProvider",
    "load_service_account_info",
]
