"""Calendar event operations for one session's credentials."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from leadcal.calendar.credentials import SessionCredentials
from leadcal.calendar.errors import RemoteApiError
from leadcal.calendar.models import RemoteEvent
from leadcal.calendar.transport import AuthenticatedTransport
from leadcal.calendar.window import SyncWindow

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_ID = "primary"


class CalendarClient:
    """List/get/create/update/delete events in a single remote calendar.

    The client never rotates credentials on its own.  With
    ``persist_refreshed_tokens`` enabled, a token obtained by the transport's
    refresh is written back into ``credentials`` so later calls reuse it.
    """

    def __init__(
        self,
        transport: AuthenticatedTransport,
        credentials: SessionCredentials,
        *,
        calendar_id: str = DEFAULT_CALENDAR_ID,
        persist_refreshed_tokens: bool = False,
    ) -> None:
        self._transport = transport
        self._credentials = credentials
        self._calendar_id = calendar_id
        self._persist_refreshed_tokens = persist_refreshed_tokens

    @property
    def calendar_id(self) -> str:
        return self._calendar_id

    def _events_path(self, event_id: str | None = None) -> str:
        path = f"/calendars/{quote(self._calendar_id, safe='')}/events"
        if event_id is None:
            return path
        normalized_event_id = event_id.strip()
        if not normalized_event_id:
            raise ValueError("event_id must be a non-empty string")
        return f"{path}/{quote(normalized_event_id, safe='')}"

    def _remember_token(self, access_token: str) -> None:
        self._credentials.access_token = access_token

    async def _call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        return await self._transport.call(
            method,
            path,
            access_token=self._credentials.access_token,
            refresh_token=self._credentials.refresh_token,
            params=params,
            json_body=json_body,
            on_token_refreshed=self._remember_token if self._persist_refreshed_tokens else None,
        )

    async def list_events(self, window: SyncWindow) -> list[RemoteEvent]:
        """Return the concrete event instances overlapping *window*, by start time."""
        params = {
            "timeMin": window.time_min,
            "timeMax": window.time_max,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        payload = await self._call("GET", self._events_path(), params=params)
        items = payload.get("items") if isinstance(payload, dict) else None
        if items is None:
            return []
        if not isinstance(items, list):
            raise RemoteApiError(status_code=200, message="List response items is not an array")
        events = [item for item in items if isinstance(item, dict)]
        logger.debug(
            "Listed %d calendar event(s) between %s and %s",
            len(events),
            window.time_min,
            window.time_max,
        )
        return events

    async def get_event(self, event_id: str) -> RemoteEvent:
        payload = await self._call("GET", self._events_path(event_id))
        return _require_event(payload, "get")

    async def create_event(self, body: RemoteEvent) -> RemoteEvent:
        payload = await self._call("POST", self._events_path(), json_body=body)
        return _require_event(payload, "create")

    async def update_event(self, event_id: str, body: RemoteEvent) -> RemoteEvent:
        payload = await self._call("PUT", self._events_path(event_id), json_body=body)
        return _require_event(payload, "update")

    async def delete_event(self, event_id: str) -> None:
        await self._call("DELETE", self._events_path(event_id))


def _require_event(payload: Any, operation: str) -> RemoteEvent:
    if not isinstance(payload, dict):
        raise RemoteApiError(
            status_code=200,
            message=f"Calendar API returned an unexpected payload for {operation}",
        )
    return payload
