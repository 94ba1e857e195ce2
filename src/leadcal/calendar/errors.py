"""Error hierarchy for the calendar sync core.

``RemoteApiError`` and ``TransportError`` are the two failures callers see:
the first means the remote calendar rejected a request, the second means the
request never completed.  ``AuthExpired`` and ``CredentialRefreshError`` are
absorbed by the authenticated transport.
"""

from __future__ import annotations

import re

import httpx

_CREDENTIAL_KEYS = r"client_secret|refresh_token|access_token|token"


class CalendarError(RuntimeError):
    """Base error raised by the calendar sync core."""


class RemoteApiError(CalendarError):
    """Raised when the remote calendar API rejects a well-formed request."""

    def __init__(self, *, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Calendar API request failed ({status_code}): {message}")


class TransportError(CalendarError):
    """Raised when the remote calendar service could not be reached."""


class CredentialRefreshError(CalendarError):
    """Raised when a refresh-token exchange fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(redact_credentials(message))


class AuthExpired(CalendarError):
    """A request came back 401; only ever raised and caught inside the transport."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"Access credential rejected ({response.status_code})")


class EventMappingError(CalendarError, ValueError):
    """Raised when an appointment cannot be turned into a remote event payload."""


def redact_credentials(message: str) -> str:
    """Replace credential values embedded in *message* with ``[REDACTED]``."""
    redacted = re.sub(
        r"(?i)\bBearer\s+[A-Za-z0-9._~+/=-]+",
        "Bearer [REDACTED]",
        message,
    )
    # key=value style pairs
    redacted = re.sub(
        rf"(?i)\b({_CREDENTIAL_KEYS})\s*=\s*([^\s,;&]+)",
        r"\1=[REDACTED]",
        redacted,
    )
    # JSON/Python dict style quoted values
    redacted = re.sub(
        rf"""(?i)(['"]?(?:{_CREDENTIAL_KEYS})['"]?\s*:\s*)(['"]).*?\2""",
        r'\1"[REDACTED]"',
        redacted,
    )
    return redacted


def safe_error_message(response: httpx.Response) -> str:
    """Extract the provider-supplied error message from a failed response.

    Google returns ``{"error": {"message": ...}}`` for API errors and
    ``{"error": "...", "error_description": "..."}`` from the token endpoint.
    Falls back to a generic message when no JSON body can be parsed.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return " ".join(message.split())[:200]
        description = payload.get("error_description")
        if isinstance(description, str) and description.strip():
            return " ".join(description.split())[:200]
        if isinstance(error_payload, str) and error_payload.strip():
            return " ".join(error_payload.split())[:200]

    return f"Calendar API error: {response.status_code}"
