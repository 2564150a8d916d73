"""HTTP client for the FCM v1 ``messages:send`` endpoint."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from ..core.config import FCM_ENDPOINT_TEMPLATE, Settings
from ..core.logging import token_preview
from .credentials import (
    AccessTokenProvider,
    CredentialError,
    ServiceAccountTokenProvider,
    load_service_account_info,
)
from .results import AuthError, Delivered, InvalidToken, SendResult, TransientError

logger = logging.getLogger(__name__)

_AUTH_CODES = frozenset(
    {"UNAUTHENTICATED", "PERMISSION_DENIED", "THIRD_PARTY_AUTH_ERROR", "SENDER_ID_MISMATCH"}
)


@dataclass(frozen=True, slots=True)
class PushMessage:
    """Notification content shared by every token in a dispatch."""

    title: str
    body: str
    data: Mapping[str, str] = field(default_factory=dict)

    def to_payload(self, token: str) -> dict[str, Any]:
        return {
            "message": {
                "token": token,
                "notification": {"title": self.title, "body": self.body},
                "data": {str(key): str(value) for key, value in self.data.items()},
            }
        }


class PushGateway(Protocol):
    """Anything able to deliver one message to one device token."""

    async def send(self, token: str, message: PushMessage) -> SendResult:
        ...

    async def aclose(self) -> None:
        ...


def _error_fields(body: Any) -> tuple[str | None, str | None, str]:
    """Extract ``(status, fcm_error_code, message)`` from an error response body."""

    if not isinstance(body, Mapping):
        return None, None, str(body or "")
    error = body.get("error")
    if not isinstance(error, Mapping):
        return None, None, str(error or "")
    status_name = error.get("status")
    message = str(error.get("message") or "")
    fcm_code = None
    for detail in error.get("details") or []:
        if isinstance(detail, Mapping) and str(detail.get("@type", "")).endswith("FcmError"):
            fcm_code = detail.get("errorCode")
            break
    return status_name, fcm_code, message


def classify_failure(status_code: int, body: Any) -> SendResult:
    """Map a non-2xx gateway response onto a typed send result.

    Only responses that identify the token itself as dead become
    :class:`InvalidToken`; anything ambiguous is treated as transient so a
    valid token is never pruned.
    """

    status_name, fcm_code, message = _error_fields(body)
    reason = fcm_code or status_name or f"HTTP {status_code}"
    if message:
        reason = f"{reason}: {message}"

    if fcm_code == "UNREGISTERED":
        return InvalidToken(reason=reason, status_code=status_code)
    if (fcm_code == "INVALID_ARGUMENT" or status_name == "INVALID_ARGUMENT") and (
        "registration token" in message.lower()
    ):
        return InvalidToken(reason=reason, status_code=status_code)
    if (
        status_code in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN)
        or status_name in _AUTH_CODES
        or fcm_code in _AUTH_CODES
    ):
        return AuthError(reason=reason, status_code=status_code)
    return TransientError(reason=reason, status_code=status_code)


class FcmGatewayClient:
    """Send notifications through FCM HTTP v1 using a bearer token provider."""

    def __init__(
        self,
        *,
        project_id: str,
        credentials: AccessTokenProvider,
        http_client: httpx.AsyncClient | None = None,
        endpoint_template: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._endpoint = (endpoint_template or FCM_ENDPOINT_TEMPLATE).format(project_id=project_id)
        self._credentials = credentials
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def send(self, token: str, message: PushMessage) -> SendResult:
        try:
            access_token = await self._credentials.get_token()
        except CredentialError as exc:
            logger.error("Push gateway credentials unavailable", exc_info=exc)
            return AuthError(reason=str(exc))

        try:
            response = await self._client.post(
                self._endpoint,
                json=message.to_payload(token),
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.TimeoutException as exc:
            logger.warning("Push gateway request timed out", extra={"token": token_preview(token)})
            return TransientError(reason=f"timeout: {exc.__class__.__name__}")
        except httpx.HTTPError as exc:
            logger.warning(
                "Push gateway transport error",
                extra={"token": token_preview(token), "error": str(exc)},
            )
            return TransientError(reason=f"transport: {exc.__class__.__name__}")

        if response.is_success:
            try:
                message_id = response.json().get("name")
            except ValueError:
                message_id = None
            logger.debug("Push accepted", extra={"token": token_preview(token), "message_id": message_id})
            return Delivered(message_id=message_id)

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        result = classify_failure(response.status_code, body)
        if isinstance(result, AuthError):
            self._credentials.invalidate()
        logger.debug(
            "Push rejected",
            extra={
                "token": token_preview(token),
                "status_code": response.status_code,
                "outcome": result.kind.value,
                "reason": result.reason,
            },
        )
        return result

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def build_gateway(settings: Settings) -> FcmGatewayClient | None:
    """Construct the production gateway, or ``None`` when pushes are disabled.

    The project id comes from settings first and then from the service
    account itself.
    """

    if not settings.push_enabled:
        logger.info("Push notifications disabled by configuration")
        return None
    info = load_service_account_info(settings)
    if info is None:
        logger.warning("No push service account configured; notifications will not be sent")
        return None
    provider = ServiceAccountTokenProvider.from_info(info)
    project_id = settings.push_project_id or provider.project_id or info.get("project_id")
    if not project_id:
        logger.warning("Push project id missing from settings and service account; notifications disabled")
        return None
    logger.info("Push gateway configured", extra={"project_id": project_id})
    return FcmGatewayClient(
        project_id=project_id,
        credentials=provider,
        endpoint_template=settings.push_endpoint_template,
        timeout_seconds=settings.push_send_timeout_seconds,
    )


__all__ = ["FcmGatewayClient", "PushGateway", "PushMessage", "build_gateway", "classify_failure"]
