"""Attribute calendar events to a lead and label them by keyword.

Attribution prefers the structured ``leadId`` linkage and falls back to
matching the lead's name in the title or its id in the description, so events
edited outside the CRM (which may lose private properties) are still found.
Bucketing is a best-effort label: an event can match no keyword, in which case
it lands in ``unclassified``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from leadcal.calendar.client import CalendarClient
from leadcal.calendar.mapper import EventMapper
from leadcal.calendar.models import Appointment, LinkageMetadata, RemoteEvent
from leadcal.calendar.window import lead_window

logger = logging.getLogger(__name__)

DEFAULT_LEAD_WINDOW_MONTHS = 6


class LeadEventBucket(StrEnum):
    ADJUSTER = "adjuster"
    BUILD = "build"
    ACV = "acv"
    RCV = "rcv"


# Checked in order; the first keyword found in the title wins.
BUCKET_KEYWORDS: tuple[tuple[str, LeadEventBucket], ...] = (
    ("adjuster", LeadEventBucket.ADJUSTER),
    ("build", LeadEventBucket.BUILD),
    ("acv", LeadEventBucket.ACV),
    ("rcv", LeadEventBucket.RCV),
)

ClassifiableEvent = Appointment | RemoteEvent


@dataclass
class LeadEventClassification:
    attributed: list[Any] = field(default_factory=list)
    by_bucket: dict[LeadEventBucket, list[Any]] = field(
        default_factory=lambda: {bucket: [] for bucket in LeadEventBucket}
    )
    unclassified: list[Any] = field(default_factory=list)


def _event_text(event: ClassifiableEvent) -> tuple[str, str, str]:
    """Return ``(lead_id, title, description)`` for a mapped or raw event."""
    if isinstance(event, Appointment):
        return event.lead_id, event.title, event.notes

    linkage = LinkageMetadata.from_event(event)
    summary = event.get("summary")
    description = event.get("description")
    return (
        linkage.lead_id,
        summary if isinstance(summary, str) else "",
        description if isinstance(description, str) else "",
    )


def is_attributed(event: ClassifiableEvent, entity_id: str, entity_name: str | None = None) -> bool:
    lead_id, title, description = _event_text(event)
    if lead_id and lead_id == entity_id:
        return True
    if entity_name and entity_name.lower() in title.lower():
        return True
    return bool(entity_id) and entity_id in description


def bucket_for(title: str) -> LeadEventBucket | None:
    lowered = title.lower()
    for keyword, bucket in BUCKET_KEYWORDS:
        if keyword in lowered:
            return bucket
    return None


def classify(
    events: Sequence[ClassifiableEvent],
    entity_id: str,
    entity_name: str | None = None,
) -> LeadEventClassification:
    """Split *events* into those attributed to the lead, then bucket them by title."""
    result = LeadEventClassification()
    for event in events:
        if not is_attributed(event, entity_id, entity_name):
            continue
        result.attributed.append(event)
        _, title, _ = _event_text(event)
        bucket = bucket_for(title)
        if bucket is None:
            result.unclassified.append(event)
        else:
            result.by_bucket[bucket].append(event)
    return result


async def load_lead_events(
    client: CalendarClient,
    mapper: EventMapper,
    entity_id: str,
    entity_name: str | None = None,
    *,
    now: datetime,
    months: int = DEFAULT_LEAD_WINDOW_MONTHS,
) -> LeadEventClassification:
    """Fetch a wide window around *now* and classify it for one lead."""
    if not entity_id.strip():
        raise ValueError("entity_id must be a non-empty string")

    window = lead_window(now, timezone=mapper.default_timezone, months=months)
    events = await client.list_events(window)
    appointments = mapper.from_remote_many(events)
    result = classify(appointments, entity_id, entity_name)
    logger.info(
        "Attributed %d of %d calendar event(s) to lead %s",
        len(result.attributed),
        len(appointments),
        entity_id,
    )
    return result
