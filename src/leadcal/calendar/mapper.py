"""Translation between ``Appointment`` and Google Calendar event JSON.

Pure functions only.  ``from_remote`` returns ``None`` for events this core
cannot represent (all-day, missing or malformed times, cancelled) so a batch
can drop them without failing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from leadcal.calendar.errors import EventMappingError
from leadcal.calendar.models import (
    PINNED_TIMEZONE_KEY,
    PURPOSE_COLOR_IDS,
    Appointment,
    LinkageMetadata,
    RemoteEvent,
    parse_purpose,
    parse_status,
)

logger = logging.getLogger(__name__)

DEFAULT_EVENT_DURATION = timedelta(hours=1)


def _parse_event_datetime(value: str) -> datetime | None:
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = f"{normalized[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    return parsed


def _coerce_zone(name: Any) -> ZoneInfo | None:
    if not isinstance(name, str) or not name.strip():
        return None
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        return None


def _parse_clock(value: str) -> time:
    hour, minute = value.split(":")
    return time(int(hour), int(minute))


def _format_clock(value: datetime) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


class EventMapper:
    """Maps appointments to and from remote events in a configured time zone."""

    def __init__(self, default_timezone: str) -> None:
        self._default_zone = ZoneInfo(default_timezone)
        self.default_timezone = default_timezone

    def _zone_for(self, appointment: Appointment) -> tuple[ZoneInfo, str]:
        if appointment.timezone is None:
            return self._default_zone, self.default_timezone
        return ZoneInfo(appointment.timezone), appointment.timezone

    def boundaries(self, appointment: Appointment) -> tuple[datetime, datetime]:
        """Resolve an appointment's start and end instants in its effective zone.

        A missing end, or an end at or before the start, becomes start + 1 hour.
        """
        if appointment.date is None:
            raise EventMappingError(
                f"Cannot build a calendar event for {appointment.title!r}: date is missing"
            )
        zone, _ = self._zone_for(appointment)
        day: date = appointment.date
        start_at = datetime.combine(day, _parse_clock(appointment.start_time), tzinfo=zone)

        default_end = (start_at.astimezone(UTC) + DEFAULT_EVENT_DURATION).astimezone(zone)
        if appointment.end_time is None:
            return start_at, default_end

        end_at = datetime.combine(day, _parse_clock(appointment.end_time), tzinfo=zone)
        if end_at.astimezone(UTC) <= start_at.astimezone(UTC):
            return start_at, default_end
        return start_at, end_at

    def to_remote(self, appointment: Appointment) -> RemoteEvent:
        """Build the Google Calendar request body for *appointment*."""
        _, zone_name = self._zone_for(appointment)
        start_at, end_at = self.boundaries(appointment)

        private = appointment.linkage.to_private()
        if appointment.timezone is not None:
            private[PINNED_TIMEZONE_KEY] = appointment.timezone

        body: RemoteEvent = {
            "summary": appointment.title,
            "description": appointment.notes,
            "location": appointment.location,
            "start": {"dateTime": start_at.isoformat(), "timeZone": zone_name},
            "end": {"dateTime": end_at.isoformat(), "timeZone": zone_name},
            "extendedProperties": {"private": private},
        }
        if appointment.purpose is not None:
            body["colorId"] = PURPOSE_COLOR_IDS[appointment.purpose]
        return body

    def from_remote(self, event: RemoteEvent) -> Appointment | None:
        """Build an ``Appointment`` from a Google event, or ``None`` if it is unusable."""
        if not isinstance(event, dict):
            return None

        status_raw = event.get("status")
        if isinstance(status_raw, str) and status_raw.lower() == "cancelled":
            return None

        event_id = event.get("id")
        if not isinstance(event_id, str) or not event_id.strip():
            return None

        start_payload = event.get("start")
        end_payload = event.get("end")
        if not isinstance(start_payload, dict) or not isinstance(end_payload, dict):
            return None

        start_raw = start_payload.get("dateTime")
        end_raw = end_payload.get("dateTime")
        if not isinstance(start_raw, str) or not isinstance(end_raw, str):
            return None

        start_at = _parse_event_datetime(start_raw)
        end_at = _parse_event_datetime(end_raw)
        if start_at is None or end_at is None:
            return None

        event_zone = _coerce_zone(start_payload.get("timeZone"))
        # An explicitly chosen zone survives even when it is the default one.
        pinned = event_zone is not None and _pinned_zone(event) == event_zone.key
        if event_zone is None or (event_zone.key == self.default_timezone and not pinned):
            zone, timezone = self._default_zone, None
        else:
            zone, timezone = event_zone, event_zone.key

        # Floating times (no offset) are wall-clock times in the event's zone.
        if start_at.tzinfo is None:
            start_at = start_at.replace(tzinfo=zone)
        if end_at.tzinfo is None:
            end_at = end_at.replace(tzinfo=zone)

        local_start = start_at.astimezone(zone)
        local_end = end_at.astimezone(zone)
        linkage = LinkageMetadata.from_event(event)

        return Appointment(
            id=event_id.strip(),
            title=_text(event.get("summary")),
            lead_id=linkage.lead_id,
            lead_name=linkage.lead_name,
            date=local_start.date(),
            start_time=_format_clock(local_start),
            end_time=_format_clock(local_end),
            location=_text(event.get("location")),
            notes=_text(event.get("description")),
            purpose=parse_purpose(linkage.purpose),
            status=parse_status(linkage.status),
            timezone=timezone,
        )

    def from_remote_many(self, events: Iterable[RemoteEvent]) -> list[Appointment]:
        """Map a batch, dropping events without a usable timed window."""
        appointments: list[Appointment] = []
        for event in events:
            appointment = self.from_remote(event)
            if appointment is None:
                logger.debug(
                    "Dropping calendar event without a usable time window: %s",
                    event.get("id") if isinstance(event, dict) else event,
                )
                continue
            appointments.append(appointment)
        return appointments


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _pinned_zone(event: RemoteEvent) -> str | None:
    extended = event.get("extendedProperties")
    private = extended.get("private") if isinstance(extended, dict) else None
    if not isinstance(private, dict):
        return None
    value = private.get(PINNED_TIMEZONE_KEY)
    return value if isinstance(value, str) and value else None
