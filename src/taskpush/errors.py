"""Application-level exception handling helpers."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, Mapping

from fastapi import FastAPI, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from .core.context import REQUEST_ID_HEADER, request_id_scope
from .schemas.system import ErrorResponse

logger = logging.getLogger(__name__)


class ApplicationError(Exception):
    """Base class for domain-specific errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "application_error",
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details


class NotFoundError(ApplicationError):
    """Error representing missing resources."""

    def __init__(
        self,
        message: str = "Resource not found.",
        *,
        code: str = "not_found",
        details: Any | None = None,
    ) -> None:
        super().__init__(message, code=code, status_code=status.HTTP_404_NOT_FOUND, details=details)


class ValidationError(ApplicationError):
    """Error representing business validation failures."""

    def __init__(
        self,
        message: str = "Validation failed.",
        *,
        code: str = "validation_error",
        details: Any | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class ServerError(ApplicationError):
    """Error representing unexpected server failures."""

    def __init__(
        self,
        message: str = "Internal server error.",
        *,
        code: str = "server_error",
        details: Any | None = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


class TokenLookupError(NotFoundError):
    """The token registry could not resolve device tokens for a user set."""

    def __init__(self, message: str = "Device token lookup failed.", *, details: Any | None = None) -> None:
        super().__init__(message, code="token_lookup_failed", details=details)


class TokenRemovalError(ServerError):
    """Storage failure while removing a device token."""

    def __init__(self, message: str = "Device token removal failed.", *, details: Any | None = None) -> None:
        super().__init__(message, code="token_removal_failed", details=details)


class DatabaseIntegrityError(ApplicationError):
    """Error raised when a write violates a database constraint."""

    def __init__(
        self,
        message: str = "Database integrity violation.",
        *,
        code: str = "db_integrity_error",
        details: Any | None = None,
    ) -> None:
        super().__init__(message, code=code, status_code=status.HTTP_409_CONFLICT, details=details)


class LookupFailedError(ServerError):
    """A dispatch cycle aborted because assignee tokens could not be resolved."""

    def __init__(self, message: str = "Assignee token lookup failed.", *, details: Any | None = None) -> None:
        super().__init__(message, code="lookup_failed", details=details)


_HTTP_STATUS_CODE_MAP: dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_503_SERVICE_UNAVAILABLE: "service_unavailable",
}


def _with_request_id(request_id: str | None, details: Any | None) -> Any | None:
    if not request_id:
        return details
    if details is None:
        return {"request_id": request_id}
    if isinstance(details, dict):
        return {"request_id": request_id, **details} if "request_id" not in details else details
    return {"request_id": request_id, "detail": details}


def _envelope(
    request: Request,
    error: ApplicationError,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Log ``error`` and render it as the ``{code, message, details}`` envelope."""
    request_id = getattr(request.state, "request_id", None)
    with request_id_scope(request_id):
        level = logging.ERROR if error.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR else logging.WARNING
        logger.log(
            level,
            "Request failed",
            extra={"code": error.code, "status_code": error.status_code, "path": request.url.path},
        )
    payload = ErrorResponse(
        code=error.code,
        message=error.message,
        details=_with_request_id(request_id, error.details),
    )
    response = JSONResponse(status_code=error.status_code, content=payload.model_dump(mode="json"))
    if headers:
        response.headers.update(headers)
    if request_id:
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response


def _from_http_exception(exc: StarletteHTTPException) -> ApplicationError:
    code = _HTTP_STATUS_CODE_MAP.get(exc.status_code, "http_error")
    if isinstance(exc.detail, str):
        return ApplicationError(exc.detail, code=code, status_code=exc.status_code)
    return ApplicationError(
        HTTPStatus(exc.status_code).phrase,
        code=code,
        status_code=exc.status_code,
        details=exc.detail,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with the provided FastAPI app."""

    @app.exception_handler(ApplicationError)
    async def _handle_application_error(request: Request, exc: ApplicationError) -> JSONResponse:
        return _envelope(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation_error(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        return _envelope(
            request,
            ValidationError("Request validation failed.", details={"errors": errors}),
        )

    @app.exception_handler(IntegrityError)
    async def _handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
        with request_id_scope(getattr(request.state, "request_id", None)):
            logger.error("Database integrity error encountered.", exc_info=exc)
        return _envelope(request, DatabaseIntegrityError())

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _envelope(request, _from_http_exception(exc), headers=exc.headers)

    @app.exception_handler(Exception)
    async def _handle_unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        with request_id_scope(getattr(request.state, "request_id", None)):
            logger.exception("Unhandled application error.")
        return _envelope(request, ServerError())


__all__ = [
    "ApplicationError",
    "DatabaseIntegrityError",
    "LookupFailedError",
    "NotFoundError",
    "ServerError",
    "TokenLookupError",
    "TokenRemovalError",
    "ValidationError",
    "register_exception_handlers",
]
