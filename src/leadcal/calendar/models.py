"""Domain types shared by the calendar sync core."""

from __future__ import annotations

import datetime as dt
import re
from enum import StrEnum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Raw Google Calendar event JSON, passed through the transport untouched.
RemoteEvent = dict[str, Any]

LINKAGE_LEAD_ID_KEY = "leadId"
LINKAGE_LEAD_NAME_KEY = "leadName"
LINKAGE_PURPOSE_KEY = "purpose"
LINKAGE_STATUS_KEY = "status"
PINNED_TIMEZONE_KEY = "timeZone"

_TIME_OF_DAY_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


class AppointmentPurpose(StrEnum):
    ADJUSTER = "ADJUSTER"
    BUILD = "BUILD"
    ACV = "ACV"
    RCV = "RCV"
    PICK_UP_CHECK = "PICK_UP_CHECK"
    MEETING_WITH_CLIENT = "MEETING_WITH_CLIENT"


class AppointmentStatus(StrEnum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    RESCHEDULED = "RESCHEDULED"
    NO_SHOW = "NO_SHOW"


# Google Calendar colorId per purpose (calendar UI palette ids).
PURPOSE_COLOR_IDS: dict[AppointmentPurpose, str] = {
    AppointmentPurpose.ADJUSTER: "10",
    AppointmentPurpose.BUILD: "5",
    AppointmentPurpose.ACV: "6",
    AppointmentPurpose.RCV: "3",
    AppointmentPurpose.PICK_UP_CHECK: "6",
    AppointmentPurpose.MEETING_WITH_CLIENT: "9",
}


def parse_purpose(value: Any) -> AppointmentPurpose | None:
    """Parse a purpose tag, returning ``None`` for empty or unknown values."""
    if isinstance(value, AppointmentPurpose):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return AppointmentPurpose(value.strip().upper())
    except ValueError:
        return None


def parse_status(value: Any) -> AppointmentStatus:
    """Parse a status tag, defaulting to ``SCHEDULED`` for empty or unknown values."""
    if isinstance(value, AppointmentStatus):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return AppointmentStatus(value.strip().upper())
        except ValueError:
            pass
    return AppointmentStatus.SCHEDULED


def normalize_time_of_day(value: str) -> str:
    """Normalize ``H:MM``, ``HH:MM`` or ``HH:MM:SS`` to ``HH:MM``.

    Seconds are dropped.  Raises ``ValueError`` for anything else, including
    out-of-range hours or minutes.
    """
    match = _TIME_OF_DAY_PATTERN.fullmatch(value.strip())
    if match is None:
        raise ValueError(f"Invalid time of day {value!r}; expected HH:MM or HH:MM:SS")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time of day {value!r}; out of range")
    return f"{hour:02d}:{minute:02d}"


class LinkageMetadata(BaseModel):
    """Lead linkage fields carried in ``extendedProperties.private``.

    Every field defaults to the empty string; a missing wire key and an empty
    string mean the same thing.
    """

    model_config = ConfigDict(frozen=True)

    lead_id: str = ""
    lead_name: str = ""
    purpose: str = ""
    status: str = ""

    @classmethod
    def from_private(cls, bag: Any) -> LinkageMetadata:
        """Read linkage fields from a private-properties bag, ignoring non-strings."""
        if not isinstance(bag, dict):
            return cls()

        def _read(key: str) -> str:
            value = bag.get(key)
            return value if isinstance(value, str) else ""

        return cls(
            lead_id=_read(LINKAGE_LEAD_ID_KEY),
            lead_name=_read(LINKAGE_LEAD_NAME_KEY),
            purpose=_read(LINKAGE_PURPOSE_KEY),
            status=_read(LINKAGE_STATUS_KEY),
        )

    @classmethod
    def from_event(cls, event: Any) -> LinkageMetadata:
        if not isinstance(event, dict):
            return cls()
        extended = event.get("extendedProperties")
        if not isinstance(extended, dict):
            return cls()
        return cls.from_private(extended.get("private"))

    def to_private(self) -> dict[str, str]:
        return {
            LINKAGE_LEAD_ID_KEY: self.lead_id,
            LINKAGE_LEAD_NAME_KEY: self.lead_name,
            LINKAGE_PURPOSE_KEY: self.purpose,
            LINKAGE_STATUS_KEY: self.status,
        }


class Appointment(BaseModel):
    """A scheduled business event owned by the CRM.

    ``id`` stays empty until the appointment exists in the remote calendar.
    ``timezone`` of ``None`` means the configured calendar zone.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = ""
    title: str
    lead_id: str = ""
    lead_name: str = ""
    date: dt.date | None = None
    start_time: str
    end_time: str | None = None
    location: str = ""
    notes: str = ""
    purpose: AppointmentPurpose | None = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    timezone: str | None = Field(default=None, alias="timeZone")

    @field_validator("start_time")
    @classmethod
    def _normalize_start_time(cls, value: str) -> str:
        return normalize_time_of_day(value)

    @field_validator("end_time")
    @classmethod
    def _normalize_end_time(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return normalize_time_of_day(value)

    @field_validator("purpose", mode="before")
    @classmethod
    def _coerce_purpose(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().upper()
            return normalized or None
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return AppointmentStatus.SCHEDULED
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        normalized = value.strip()
        try:
            ZoneInfo(normalized)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone {value!r}") from exc
        return normalized

    @property
    def linkage(self) -> LinkageMetadata:
        return LinkageMetadata(
            lead_id=self.lead_id,
            lead_name=self.lead_name,
            purpose=self.purpose.value if self.purpose is not None else "",
            status=self.status.value,
        )
