"""Calendar appointment endpoints backed by the user's Google calendar."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Annotated
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Query, Response

from leadcal.api.deps import get_calendar_client, get_config, get_mapper
from leadcal.api.models import ApiMeta, ApiResponse, LeadEventsResponse
from leadcal.calendar.classifier import load_lead_events
from leadcal.calendar.client import CalendarClient
from leadcal.calendar.errors import EventMappingError
from leadcal.calendar.mapper import EventMapper
from leadcal.calendar.models import Appointment
from leadcal.calendar.window import ViewMode, compute_window
from leadcal.config import LeadcalConfig

router = APIRouter(prefix="/api/calendar", tags=["calendar"])
logger = logging.getLogger(__name__)

ClientDep = Annotated[CalendarClient, Depends(get_calendar_client)]
MapperDep = Annotated[EventMapper, Depends(get_mapper)]
ConfigDep = Annotated[LeadcalConfig, Depends(get_config)]


def _mapped(mapper: EventMapper, raw: dict, operation: str) -> Appointment:
    appointment = mapper.from_remote(raw)
    if appointment is None:
        raise EventMappingError(f"Calendar event returned by {operation} has no usable time window")
    return appointment


@router.get("/events", response_model=ApiResponse[list[Appointment]])
async def list_appointments(
    client: ClientDep,
    mapper: MapperDep,
    config: ConfigDep,
    view: ViewMode = ViewMode.WEEK,
    date: dt.date | None = None,
) -> ApiResponse[list[Appointment]]:
    """Appointments in the day/week/month window containing *date* (default today)."""
    reference = date or dt.datetime.now(ZoneInfo(config.timezone)).date()
    window = compute_window(
        view,
        reference,
        timezone=config.timezone,
        week_start=config.week_start_day,
    )
    events = await client.list_events(window)
    appointments = mapper.from_remote_many(events)
    return ApiResponse(
        data=appointments,
        meta=ApiMeta(
            view=view.value,
            time_min=window.time_min,
            time_max=window.time_max,
            dropped=len(events) - len(appointments),
        ),
    )


@router.get("/lead-events", response_model=ApiResponse[LeadEventsResponse])
async def list_lead_events(
    client: ClientDep,
    mapper: MapperDep,
    config: ConfigDep,
    lead_id: Annotated[str, Query(alias="leadId", min_length=1)],
    lead_name: Annotated[str | None, Query(alias="leadName")] = None,
) -> ApiResponse[LeadEventsResponse]:
    """A lead's events across the wide lead window, bucketed by purpose keyword."""
    result = await load_lead_events(
        client,
        mapper,
        lead_id,
        lead_name,
        now=dt.datetime.now(ZoneInfo(config.timezone)),
        months=config.sync.lead_window_months,
    )
    return ApiResponse(data=LeadEventsResponse.from_classification(lead_id, result))


@router.get("/events/{event_id}", response_model=ApiResponse[Appointment])
async def get_appointment(
    event_id: str,
    client: ClientDep,
    mapper: MapperDep,
) -> ApiResponse[Appointment]:
    raw = await client.get_event(event_id)
    return ApiResponse(data=_mapped(mapper, raw, "get"))


@router.post("/events", status_code=201, response_model=ApiResponse[Appointment])
async def create_appointment(
    appointment: Appointment,
    client: ClientDep,
    mapper: MapperDep,
) -> ApiResponse[Appointment]:
    if appointment.id:
        raise ValueError("New appointments must not carry an id")
    raw = await client.create_event(mapper.to_remote(appointment))
    created = _mapped(mapper, raw, "create")
    logger.info("Created calendar event %s for lead %r", created.id, created.lead_id)
    return ApiResponse(data=created)


@router.put("/events/{event_id}", response_model=ApiResponse[Appointment])
async def update_appointment(
    event_id: str,
    appointment: Appointment,
    client: ClientDep,
    mapper: MapperDep,
) -> ApiResponse[Appointment]:
    raw = await client.update_event(event_id, mapper.to_remote(appointment))
    updated = _mapped(mapper, raw, "update")
    logger.info("Updated calendar event %s", updated.id)
    return ApiResponse(data=updated)


@router.delete("/events/{event_id}", status_code=204)
async def delete_appointment(event_id: str, client: ClientDep) -> Response:
    await client.delete_event(event_id)
    logger.info("Deleted calendar event %s", event_id)
    return Response(status_code=204)
