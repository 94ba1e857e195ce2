"""API error handling: consistent error responses.

Registers FastAPI exception handlers that convert calendar exceptions into
standardised ``{"error": {"code": "...", "message": "..."}}`` JSON responses.

Status code mapping:
- ``MissingCredentialsError`` → 401 Unauthorized
- ``RemoteApiError`` → the remote 4xx status, or 502 Bad Gateway for 5xx
- ``TransportError`` → 503 Service Unavailable
- ``ValueError`` → 400 Bad Request
- Any other ``Exception`` → 500 Internal Server Error
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from leadcal.api.deps import MissingCredentialsError
from leadcal.api.models import ErrorDetail, ErrorResponse
from leadcal.calendar.errors import RemoteApiError, TransportError, redact_credentials

logger = logging.getLogger(__name__)


def _error_response(status_code: int, code: str, message: str, **details) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorDetail(code=code, message=redact_credentials(message), details=details or None)
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _handle_missing_credentials(
    request: Request,
    exc: MissingCredentialsError,
) -> JSONResponse:
    return _error_response(401, "UNAUTHORIZED", str(exc))


async def _handle_remote_api_error(
    request: Request,
    exc: RemoteApiError,
) -> JSONResponse:
    """Pass remote 4xx statuses through; report remote 5xx as a bad gateway."""
    logger.warning("Calendar API rejected %s %s: %s", request.method, request.url.path, exc)
    status_code = exc.status_code if 400 <= exc.status_code < 500 else 502
    return _error_response(
        status_code,
        "CALENDAR_API_ERROR",
        exc.message,
        remote_status=exc.status_code,
    )


async def _handle_transport_error(
    request: Request,
    exc: TransportError,
) -> JSONResponse:
    logger.warning("Calendar API unreachable on %s %s: %s", request.method, request.url.path, exc)
    return _error_response(
        503,
        "CALENDAR_UNREACHABLE",
        "The calendar service could not be reached; check the connection and retry",
    )


async def _handle_value_error(
    request: Request,
    exc: ValueError,
) -> JSONResponse:
    """Return 400 for validation / value errors."""
    logger.info("Validation error: %s", exc)
    return _error_response(400, "VALIDATION_ERROR", str(exc))


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            return _error_response(500, "INTERNAL_ERROR", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application."""
    app.add_exception_handler(MissingCredentialsError, _handle_missing_credentials)  # type: ignore[arg-type]
    app.add_exception_handler(RemoteApiError, _handle_remote_api_error)  # type: ignore[arg-type]
    app.add_exception_handler(TransportError, _handle_transport_error)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, _handle_value_error)  # type: ignore[arg-type]
    app.add_middleware(CatchAllErrorMiddleware)
