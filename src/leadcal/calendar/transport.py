"""Authenticated transport for the remote calendar API.

Every call attaches the session's bearer token.  A 401 triggers at most one
refresh-token exchange and at most one retry; the retry's outcome is final.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from leadcal.calendar.credentials import CredentialRefresher
from leadcal.calendar.errors import (
    AuthExpired,
    CredentialRefreshError,
    RemoteApiError,
    TransportError,
    safe_error_message,
)

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"


class AuthenticatedTransport:
    """Bearer-authenticated JSON requests with a single refresh-and-retry on 401."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        refresher: CredentialRefresher,
        *,
        base_url: str = GOOGLE_CALENDAR_API_BASE_URL,
    ) -> None:
        self._http_client = http_client
        self._refresher = refresher
        self._base_url = base_url.rstrip("/")

    async def call(
        self,
        method: str,
        path: str,
        *,
        access_token: str,
        refresh_token: str | None = None,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        on_token_refreshed: Callable[[str], None] | None = None,
    ) -> Any:
        """Issue a request and return the parsed JSON body.

        Returns ``None`` for empty success responses (e.g. DELETE).

        Raises:
            RemoteApiError: the API answered with a non-success status (a
                recovered 401 is not an error).
            TransportError: the request never completed.
        """
        normalized_path = path if path.startswith("/") else f"/{path}"
        url = f"{self._base_url}{normalized_path}"

        try:
            response = await self._attempt(method, url, access_token, params, json_body)
        except AuthExpired as expired:
            response = expired.response
            new_token = await self._refresh(refresh_token)
            if new_token is not None:
                if on_token_refreshed is not None:
                    on_token_refreshed(new_token)
                try:
                    response = await self._attempt(method, url, new_token, params, json_body)
                except AuthExpired as retry_expired:
                    logger.warning("Calendar API still rejects the refreshed access token")
                    response = retry_expired.response

        return self._parse(response)

    async def _attempt(
        self,
        method: str,
        url: str,
        access_token: str,
        params: dict[str, Any] | None,
        json_body: dict[str, Any] | None,
    ) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        try:
            response = await self._http_client.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
            )
        except httpx.TransportError as exc:
            raise TransportError(f"Calendar API request failed: {exc}") from exc

        if response.status_code == 401:
            raise AuthExpired(response)
        return response

    async def _refresh(self, refresh_token: str | None) -> str | None:
        if not refresh_token or not refresh_token.strip():
            return None
        logger.info("Calendar access token rejected; attempting refresh")
        try:
            return await self._refresher.refresh(refresh_token)
        except CredentialRefreshError as exc:
            logger.warning("Calendar token refresh failed: %s", exc)
            return None

    @staticmethod
    def _parse(response: httpx.Response) -> Any:
        if response.status_code < 200 or response.status_code >= 300:
            raise RemoteApiError(
                status_code=response.status_code,
                message=safe_error_message(response),
            )

        if response.status_code == 204 or not response.content.strip():
            return None

        try:
            return response.json()
        except ValueError as exc:
            raise RemoteApiError(
                status_code=response.status_code,
                message="Calendar API returned invalid JSON for a successful response",
            ) from exc
