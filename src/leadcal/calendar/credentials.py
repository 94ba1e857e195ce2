"""OAuth credential handling for the remote calendar.

``CredentialRefresher`` exchanges a refresh token for a new access token.  It
keeps no state between calls: at-most-one refresh per failed request is the
transport's job, and persisting the new token is the session layer's.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from leadcal.calendar.errors import CalendarError, CredentialRefreshError, safe_error_message

logger = logging.getLogger(__name__)

GOOGLE_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"


class CredentialConfigError(CalendarError):
    """Raised when OAuth client credential JSON is missing or invalid."""


@dataclass
class SessionCredentials:
    """The access/refresh token pair supplied by the surrounding session layer."""

    access_token: str
    refresh_token: str | None = None


class OAuthClientCredentials(BaseModel):
    """OAuth client id/secret pair used for refresh-token exchange."""

    model_config = ConfigDict(extra="forbid")

    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)

    @field_validator("client_id", "client_secret")
    @classmethod
    def _normalize_non_empty(cls, value: str, info: ValidationInfo) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{info.field_name} must be a non-empty string")
        return normalized

    @classmethod
    def from_json(cls, raw_value: str) -> OAuthClientCredentials:
        """Parse a Google client-secret JSON document (flat, ``installed`` or ``web``)."""
        try:
            payload = json.loads(raw_value)
        except json.JSONDecodeError as exc:
            raise CredentialConfigError(f"Credential JSON must be valid JSON: {exc.msg}") from exc

        if not isinstance(payload, dict):
            raise CredentialConfigError("Credential JSON must decode to a JSON object")

        credential_data = {
            "client_id": _extract_credential_value(payload, "client_id"),
            "client_secret": _extract_credential_value(payload, "client_secret"),
        }

        missing = sorted(key for key, value in credential_data.items() if value is None)
        if missing:
            raise CredentialConfigError(
                f"Credential JSON is missing required field(s): {', '.join(missing)}"
            )

        invalid = sorted(
            key
            for key, value in credential_data.items()
            if not isinstance(value, str) or not value.strip()
        )
        if invalid:
            raise CredentialConfigError(
                f"Credential JSON must contain non-empty string field(s): {', '.join(invalid)}"
            )

        return cls(
            client_id=str(credential_data["client_id"]),
            client_secret=str(credential_data["client_secret"]),
        )


def _extract_credential_value(payload: dict[str, Any], key: str) -> Any:
    if key in payload:
        return payload[key]

    for nested_key in ("installed", "web"):
        nested = payload.get(nested_key)
        if isinstance(nested, dict) and key in nested:
            return nested[key]
    return None


class CredentialRefresher:
    """Stateless refresh-token exchange against the OAuth token endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        credentials: OAuthClientCredentials | None,
        *,
        token_url: str = GOOGLE_OAUTH_TOKEN_URL,
    ) -> None:
        self._http_client = http_client
        self._credentials = credentials
        self._token_url = token_url

    async def refresh(self, refresh_token: str) -> str:
        """Return a fresh access token for *refresh_token*.

        Raises ``CredentialRefreshError`` on any failure.  A failure is final
        for this input; retrying with the same refresh token will not help.
        """
        if not isinstance(refresh_token, str) or not refresh_token.strip():
            raise ValueError("refresh_token must be a non-empty string")
        if self._credentials is None:
            raise CredentialRefreshError("OAuth client credentials are not configured")

        try:
            response = await self._http_client.post(
                self._token_url,
                data={
                    "client_id": self._credentials.client_id,
                    "client_secret": self._credentials.client_secret,
                    "refresh_token": refresh_token.strip(),
                    "grant_type": "refresh_token",
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise CredentialRefreshError(f"OAuth token refresh request failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise CredentialRefreshError(
                f"OAuth token refresh failed ({response.status_code}): "
                f"{safe_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise CredentialRefreshError(
                "OAuth token endpoint returned invalid JSON",
                status_code=response.status_code,
            ) from exc

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(access_token, str) or not access_token.strip():
            raise CredentialRefreshError(
                "OAuth token response is missing a non-empty access_token",
                status_code=response.status_code,
            )

        logger.info("Refreshed calendar access token")
        return access_token.strip()
