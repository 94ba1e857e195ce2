"""Shared fixtures for the leadcal test suite.

``FakeCalendarApi`` stands in for both Google endpoints the calendar core
talks to (the Calendar v3 events collection and the OAuth token endpoint) via
``httpx.MockTransport``, so tests exercise real request/response handling
without the network.
"""

from __future__ import annotations

import itertools
import json
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import parse_qs, unquote

import httpx
import pytest

from leadcal.calendar.credentials import GOOGLE_OAUTH_TOKEN_URL
from leadcal.calendar.transport import GOOGLE_CALENDAR_API_BASE_URL
from leadcal.config import GoogleConfig, LeadcalConfig

NEW_YORK = "America/New_York"

_EVENTS_PREFIX = "/calendar/v3/calendars/"


def remote_event(
    event_id: str,
    *,
    summary: str = "",
    start: str = "2024-03-01T09:00:00-05:00",
    end: str = "2024-03-01T10:00:00-05:00",
    timezone: str | None = NEW_YORK,
    private: dict[str, str] | None = None,
    description: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a Google Calendar event resource as the API would return it."""
    event: dict[str, Any] = {
        "id": event_id,
        "status": "confirmed",
        "summary": summary,
        "start": {"dateTime": start},
        "end": {"dateTime": end},
    }
    if timezone is not None:
        event["start"]["timeZone"] = timezone
        event["end"]["timeZone"] = timezone
    if private is not None:
        event["extendedProperties"] = {"private": private}
    if description is not None:
        event["description"] = description
    event.update(extra)
    return event


class FakeCalendarApi:
    """In-memory Google Calendar events collection plus OAuth token endpoint."""

    def __init__(
        self,
        *,
        valid_tokens: set[str] | None = None,
        refreshed_token: str = "tok-2",
    ) -> None:
        self.events: dict[str, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.valid_tokens = valid_tokens if valid_tokens is not None else {"tok-1"}
        self.refreshed_token = refreshed_token
        self.refresh_status = 200
        self.failure: tuple[int, Any] | None = None
        self._ids = itertools.count(1)

    # -- inspection helpers -------------------------------------------------

    @property
    def api_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) != GOOGLE_OAUTH_TOKEN_URL]

    @property
    def refresh_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if str(r.url) == GOOGLE_OAUTH_TOKEN_URL]

    def add(self, event: dict[str, Any]) -> dict[str, Any]:
        self.events[event["id"]] = event
        return event

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    # -- request handling ---------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == GOOGLE_OAUTH_TOKEN_URL:
            return self._token(request)

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token not in self.valid_tokens:
            return httpx.Response(
                401, json={"error": {"code": 401, "message": "Invalid Credentials"}}
            )
        if self.failure is not None:
            status_code, body = self.failure
            return httpx.Response(status_code, json=body)

        path = request.url.path
        if not path.startswith(_EVENTS_PREFIX):
            return httpx.Response(404, json={"error": {"message": "unexpected path"}})
        segments = path[len(_EVENTS_PREFIX) :].split("/")
        event_id = unquote(segments[2]) if len(segments) > 2 else None

        if request.method == "GET" and event_id is None:
            items = sorted(self.events.values(), key=lambda e: e["start"].get("dateTime", ""))
            return httpx.Response(200, json={"kind": "calendar#events", "items": items})
        if request.method == "POST" and event_id is None:
            body = json.loads(request.content)
            created = {**body, "id": f"evt-{next(self._ids)}", "status": "confirmed"}
            self.events[created["id"]] = created
            return httpx.Response(200, json=created)
        if event_id not in self.events:
            return httpx.Response(404, json={"error": {"code": 404, "message": "Not Found"}})
        if request.method == "GET":
            return httpx.Response(200, json=self.events[event_id])
        if request.method == "PUT":
            body = json.loads(request.content)
            updated = {**body, "id": event_id, "status": "confirmed"}
            self.events[event_id] = updated
            return httpx.Response(200, json=updated)
        if request.method == "DELETE":
            del self.events[event_id]
            return httpx.Response(204)
        return httpx.Response(405, json={"error": {"message": "method not allowed"}})

    def _token(self, request: httpx.Request) -> httpx.Response:
        if self.refresh_status != 200:
            return httpx.Response(
                self.refresh_status,
                json={"error": "invalid_grant", "error_description": "Token has been revoked."},
            )
        form = parse_qs(request.content.decode())
        if form.get("grant_type") != ["refresh_token"] or not form.get("refresh_token"):
            return httpx.Response(400, json={"error": "invalid_request"})
        self.valid_tokens.add(self.refreshed_token)
        return httpx.Response(
            200, json={"access_token": self.refreshed_token, "expires_in": 3600}
        )


@pytest.fixture
def fake_api() -> FakeCalendarApi:
    return FakeCalendarApi()


@pytest.fixture
async def http_client(fake_api: FakeCalendarApi) -> AsyncIterator[httpx.AsyncClient]:
    client = fake_api.http_client()
    try:
        yield client
    finally:
        await client.aclose()


@pytest.fixture
def config() -> LeadcalConfig:
    return LeadcalConfig(
        timezone=NEW_YORK,
        google=GoogleConfig(
            client_id="cid",
            client_secret="secret",
            api_base_url=GOOGLE_CALENDAR_API_BASE_URL,
        ),
    )
