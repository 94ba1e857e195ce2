"""Tests for the debounced, stale-safe range fetcher and its mutations."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any

import pytest
from conftest import NEW_YORK, remote_event

from leadcal.calendar.errors import RemoteApiError, TransportError
from leadcal.calendar.mapper import EventMapper
from leadcal.calendar.models import Appointment
from leadcal.calendar.sync import CalendarSync, SyncState
from leadcal.calendar.window import SyncWindow, ViewMode

pytestmark = pytest.mark.unit

_DAY = date(2024, 3, 1)


def _event_on(day: date, event_id: str, summary: str = "") -> dict[str, Any]:
    return remote_event(
        event_id,
        summary=summary,
        start=f"{day.isoformat()}T09:00:00-05:00",
        end=f"{day.isoformat()}T10:00:00-05:00",
    )


class _ClientDouble:
    """Calendar client double storing events per local day.

    ``list_gates`` hold a list call for a given day open until released;
    ``write_gate`` does the same for create/update/delete.
    """

    def __init__(self) -> None:
        self.events: dict[date, list[dict[str, Any]]] = {}
        self.windows: list[SyncWindow] = []
        self.list_gates: dict[date, asyncio.Event] = {}
        self.list_errors: dict[date, Exception] = {}
        self.write_gate: asyncio.Event | None = None
        self.write_error: Exception | None = None
        self.writes: list[tuple[str, Any]] = []
        self._next_id = 0

    def add(self, day: date, event: dict[str, Any]) -> None:
        self.events.setdefault(day, []).append(event)

    async def list_events(self, window: SyncWindow) -> list[dict[str, Any]]:
        self.windows.append(window)
        day = window.start.date()
        gate = self.list_gates.get(day)
        if gate is not None:
            await gate.wait()
        if day in self.list_errors:
            raise self.list_errors[day]
        return list(self.events.get(day, []))

    async def _write(self, operation: str, payload: Any) -> None:
        self.writes.append((operation, payload))
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.write_error is not None:
            raise self.write_error

    async def create_event(self, body: dict[str, Any]) -> dict[str, Any]:
        await self._write("create", body)
        self._next_id += 1
        created = {**body, "id": f"evt-{self._next_id}", "status": "confirmed"}
        self.add(date.fromisoformat(body["start"]["dateTime"][:10]), created)
        return created

    async def update_event(self, event_id: str, body: dict[str, Any]) -> dict[str, Any]:
        await self._write("update", event_id)
        updated = {**body, "id": event_id, "status": "confirmed"}
        for events in self.events.values():
            events[:] = [updated if e["id"] == event_id else e for e in events]
        return updated

    async def delete_event(self, event_id: str) -> None:
        await self._write("delete", event_id)
        for events in self.events.values():
            events[:] = [e for e in events if e["id"] != event_id]


@pytest.fixture
def client() -> _ClientDouble:
    return _ClientDouble()


@pytest.fixture
async def sync(client):
    fetcher = CalendarSync(
        client,
        EventMapper(NEW_YORK),
        view=ViewMode.DAY,
        reference_date=_DAY,
        debounce_seconds=0.01,
    )
    yield fetcher
    await fetcher.aclose()


def _inspection(**overrides: Any) -> Appointment:
    fields: dict[str, Any] = {
        "title": "Inspection",
        "date": _DAY,
        "start_time": "09:00",
        "lead_id": "7",
    }
    fields.update(overrides)
    return Appointment(**fields)


class TestReads:
    async def test_initial_state(self, sync):
        assert sync.state is SyncState.IDLE
        assert sync.appointments == ()
        assert sync.error is None
        assert not sync.is_loading

    async def test_refetch_loads_current_window(self, sync, client):
        client.add(_DAY, _event_on(_DAY, "evt-a", "Inspection"))

        await sync.refetch()

        assert sync.state is SyncState.READY
        assert [a.id for a in sync.appointments] == ["evt-a"]
        assert client.windows == [sync.window]

    async def test_rapid_changes_are_debounced_into_one_fetch(self, sync, client):
        last = date(2024, 3, 5)
        client.add(last, _event_on(last, "evt-last"))

        for offset in range(1, 6):
            sync.set_view(reference_date=date(2024, 3, offset))
        await sync.flush()

        assert len(client.windows) == 1
        assert client.windows[0].start.date() == last
        assert [a.id for a in sync.appointments] == ["evt-last"]

    async def test_view_change_uses_new_window(self, sync, client):
        sync.set_view(view=ViewMode.WEEK)
        await sync.flush()

        assert sync.view is ViewMode.WEEK
        assert client.windows[0].start.date() == date(2024, 2, 25)
        assert client.windows[0].end.date() == date(2024, 3, 2)

    async def test_stale_response_is_discarded(self, sync, client):
        newer = date(2024, 3, 2)
        client.add(_DAY, _event_on(_DAY, "evt-old"))
        client.add(newer, _event_on(newer, "evt-new"))
        gate = asyncio.Event()
        client.list_gates[_DAY] = gate

        slow = asyncio.create_task(sync.refetch())
        await asyncio.sleep(0)
        assert sync.is_loading

        sync.set_view(reference_date=newer)
        await sync.flush()
        assert [a.id for a in sync.appointments] == ["evt-new"]

        gate.set()
        await slow

        assert [a.id for a in sync.appointments] == ["evt-new"]
        assert sync.state is SyncState.READY

    async def test_stale_error_is_discarded(self, sync, client):
        newer = date(2024, 3, 2)
        client.add(newer, _event_on(newer, "evt-new"))
        gate = asyncio.Event()
        client.list_gates[_DAY] = gate
        client.list_errors[_DAY] = TransportError("offline")

        slow = asyncio.create_task(sync.refetch())
        await asyncio.sleep(0)
        sync.set_view(reference_date=newer)
        await sync.flush()
        gate.set()
        await slow

        assert sync.error is None
        assert sync.state is SyncState.READY

    @pytest.mark.parametrize(
        "error",
        [
            RemoteApiError(status_code=403, message="Forbidden"),
            TransportError("Calendar API request failed: offline"),
        ],
    )
    async def test_read_failure_is_exposed_not_raised(self, sync, client, error):
        client.add(_DAY, _event_on(_DAY, "evt-a"))
        await sync.refetch()
        client.list_errors[_DAY] = error

        await sync.refetch()

        assert sync.state is SyncState.FAILED
        assert sync.error is error
        assert [a.id for a in sync.appointments] == ["evt-a"]

    async def test_next_fetch_clears_error(self, sync, client):
        client.list_errors[_DAY] = TransportError("offline")
        await sync.refetch()
        del client.list_errors[_DAY]

        await sync.refetch()

        assert sync.error is None
        assert sync.state is SyncState.READY

    async def test_close_cancels_pending_fetch(self, sync, client):
        sync.set_view(reference_date=date(2024, 3, 9))
        await sync.aclose()
        await asyncio.sleep(0.05)

        assert client.windows == []

    async def test_negative_debounce_rejected(self, client):
        with pytest.raises(ValueError):
            CalendarSync(client, EventMapper(NEW_YORK), debounce_seconds=-1)


class TestWrites:
    async def test_create_applies_after_remote_confirms(self, sync, client):
        client.write_gate = asyncio.Event()

        pending = asyncio.create_task(sync.create_appointment(_inspection()))
        await asyncio.sleep(0)
        assert sync.appointments == ()

        client.write_gate.set()
        created = await pending

        assert created.id == "evt-1"
        assert created.lead_id == "7"
        assert [a.id for a in sync.appointments] == ["evt-1"]
        # Mutations are followed by a refetch of the current window.
        assert len(client.windows) == 1

    async def test_create_rejects_existing_id(self, sync):
        with pytest.raises(ValueError):
            await sync.create_appointment(_inspection(id="evt-9"))

    async def test_failed_create_leaves_list_untouched(self, sync, client):
        client.add(_DAY, _event_on(_DAY, "evt-a"))
        await sync.refetch()
        client.write_error = RemoteApiError(status_code=400, message="Bad Request")

        with pytest.raises(RemoteApiError):
            await sync.create_appointment(_inspection())

        assert [a.id for a in sync.appointments] == ["evt-a"]
        assert len(client.windows) == 1

    async def test_update_replaces_entry(self, sync, client):
        client.add(_DAY, _event_on(_DAY, "evt-a", "Inspection"))
        await sync.refetch()

        updated = await sync.update_appointment(
            _inspection(id="evt-a", title="Inspection (moved)", start_time="11:00")
        )

        assert updated.start_time == "11:00"
        assert [(a.id, a.title) for a in sync.appointments] == [("evt-a", "Inspection (moved)")]
        assert client.writes[0] == ("update", "evt-a")

    async def test_update_requires_id(self, sync):
        with pytest.raises(ValueError):
            await sync.update_appointment(_inspection())

    async def test_failed_update_leaves_list_untouched(self, sync, client):
        client.add(_DAY, _event_on(_DAY, "evt-a", "Inspection"))
        await sync.refetch()
        client.write_error = TransportError("offline")

        with pytest.raises(TransportError):
            await sync.update_appointment(_inspection(id="evt-a", title="Changed"))

        assert [a.title for a in sync.appointments] == ["Inspection"]

    async def test_delete_removes_entry(self, sync, client):
        client.add(_DAY, _event_on(_DAY, "evt-a"))
        client.add(_DAY, _event_on(_DAY, "evt-b"))
        await sync.refetch()

        await sync.delete_appointment("evt-a")

        assert [a.id for a in sync.appointments] == ["evt-b"]

    async def test_failed_delete_leaves_list_untouched(self, sync, client):
        client.add(_DAY, _event_on(_DAY, "evt-a"))
        await sync.refetch()
        client.write_error = RemoteApiError(status_code=404, message="Not Found")

        with pytest.raises(RemoteApiError):
            await sync.delete_appointment("evt-a")

        assert [a.id for a in sync.appointments] == ["evt-a"]

    async def test_delete_requires_id(self, sync):
        with pytest.raises(ValueError):
            await sync.delete_appointment("")
