"""Session-scoped, range-based view of the remote calendar.

``CalendarSync`` holds the appointments for the window the UI is looking at.
View changes are debounced, superseded fetches are discarded rather than
applied, and writes touch the in-memory list only after the remote calendar
confirms them.
"""

from __future__ import annotations

import asyncio
import calendar
import logging
from datetime import date, datetime
from enum import StrEnum
from zoneinfo import ZoneInfo

from leadcal.calendar.client import CalendarClient
from leadcal.calendar.errors import CalendarError, EventMappingError
from leadcal.calendar.mapper import EventMapper
from leadcal.calendar.models import Appointment
from leadcal.calendar.window import SyncWindow, ViewMode, compute_window

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


class SyncState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class CalendarSync:
    """Appointments for one session's current (view, reference date) window.

    Read failures never raise: they are exposed through ``error`` and the
    ``FAILED`` state.  Write failures raise to the caller and leave the list
    untouched.
    """

    def __init__(
        self,
        client: CalendarClient,
        mapper: EventMapper,
        *,
        view: ViewMode | str = ViewMode.WEEK,
        reference_date: date | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        week_start: int = calendar.SUNDAY,
    ) -> None:
        if debounce_seconds < 0:
            raise ValueError("debounce_seconds must not be negative")
        self._client = client
        self._mapper = mapper
        self._view = ViewMode(view)
        self._reference_date = reference_date or datetime.now(
            ZoneInfo(mapper.default_timezone)
        ).date()
        self._debounce_seconds = debounce_seconds
        self._week_start = week_start

        self._appointments: list[Appointment] = []
        self._state = SyncState.IDLE
        self._error: CalendarError | None = None
        self._generation = 0
        self._debounce_task: asyncio.Task[None] | None = None
        self._fetch_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Exposed state
    # ------------------------------------------------------------------

    @property
    def appointments(self) -> tuple[Appointment, ...]:
        return tuple(self._appointments)

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state is SyncState.LOADING

    @property
    def error(self) -> CalendarError | None:
        return self._error

    @property
    def view(self) -> ViewMode:
        return self._view

    @property
    def reference_date(self) -> date:
        return self._reference_date

    @property
    def window(self) -> SyncWindow:
        return compute_window(
            self._view,
            self._reference_date,
            timezone=self._mapper.default_timezone,
            week_start=self._week_start,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def set_view(
        self,
        view: ViewMode | str | None = None,
        reference_date: date | None = None,
    ) -> None:
        """Change the view and/or reference date; fetch once the input settles."""
        if view is not None:
            self._view = ViewMode(view)
        if reference_date is not None:
            self._reference_date = reference_date

        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(self._debounced_fetch())

    async def _debounced_fetch(self) -> None:
        await asyncio.sleep(self._debounce_seconds)
        task = asyncio.create_task(self._load())
        self._fetch_tasks.add(task)
        task.add_done_callback(self._fetch_tasks.discard)

    async def refetch(self) -> None:
        """Fetch the current window now, bypassing the debounce."""
        await self._load()

    async def _load(self) -> None:
        self._generation += 1
        generation = self._generation
        window = self.window
        self._state = SyncState.LOADING
        self._error = None

        try:
            events = await self._client.list_events(window)
        except CalendarError as exc:
            if generation != self._generation:
                logger.debug("Discarding error from superseded calendar fetch: %s", exc)
                return
            logger.warning(
                "Calendar fetch failed for %s..%s: %s",
                window.time_min,
                window.time_max,
                exc,
            )
            self._error = exc
            self._state = SyncState.FAILED
            return

        if generation != self._generation:
            logger.debug(
                "Discarding superseded calendar fetch for %s..%s",
                window.time_min,
                window.time_max,
            )
            return

        self._appointments = self._mapper.from_remote_many(events)
        self._state = SyncState.READY

    async def flush(self) -> None:
        """Wait for any pending debounced fetch and all in-flight fetches."""
        if self._debounce_task is not None:
            await asyncio.wait({self._debounce_task})
        while self._fetch_tasks:
            await asyncio.gather(*list(self._fetch_tasks))

    async def aclose(self) -> None:
        """Cancel pending work; results of cancelled fetches are never applied."""
        self._generation += 1
        pending = [task for task in (self._debounce_task, *self._fetch_tasks) if task is not None]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if self._state is SyncState.LOADING:
            self._state = SyncState.IDLE

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        if appointment.id:
            raise ValueError("create_appointment expects an appointment without an id")

        raw = await self._client.create_event(self._mapper.to_remote(appointment))
        created = self._require_mapped(raw, "create")
        self._appointments.append(created)
        logger.info("Created calendar event %s for lead %r", created.id, created.lead_id)
        await self.refetch()
        return created

    async def update_appointment(self, appointment: Appointment) -> Appointment:
        if not appointment.id:
            raise ValueError("update_appointment requires an appointment id")

        raw = await self._client.update_event(appointment.id, self._mapper.to_remote(appointment))
        updated = self._require_mapped(raw, "update")
        self._appointments = [
            updated if existing.id == updated.id else existing for existing in self._appointments
        ]
        logger.info("Updated calendar event %s", updated.id)
        await self.refetch()
        return updated

    async def delete_appointment(self, appointment_id: str) -> None:
        if not appointment_id:
            raise ValueError("delete_appointment requires an appointment id")

        await self._client.delete_event(appointment_id)
        self._appointments = [
            existing for existing in self._appointments if existing.id != appointment_id
        ]
        logger.info("Deleted calendar event %s", appointment_id)
        await self.refetch()

    def _require_mapped(self, raw: dict, operation: str) -> Appointment:
        mapped = self._mapper.from_remote(raw)
        if mapped is None:
            raise EventMappingError(
                f"Calendar returned an event without a usable time window after {operation}"
            )
        return mapped
