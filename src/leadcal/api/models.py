"""Pydantic response models for the leadcal HTTP API.

Successful responses follow ``{"data": T, "meta": {...}}``; failures follow
``{"error": {"code": ..., "message": ...}}``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from leadcal.calendar.classifier import LeadEventBucket, LeadEventClassification
from leadcal.calendar.models import Appointment

# ---------------------------------------------------------------------------
# Base response wrappers
# ---------------------------------------------------------------------------


class ApiMeta(BaseModel):
    """Extensible metadata bag attached to every API response."""

    model_config = {"extra": "allow"}


class ApiResponse[T](BaseModel):
    """Generic API response wrapper."""

    data: T
    meta: ApiMeta = Field(default_factory=ApiMeta)


class ErrorDetail(BaseModel):
    """Structured error payload."""

    code: str
    message: str
    details: dict | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: ErrorDetail


# ---------------------------------------------------------------------------
# Calendar payloads
# ---------------------------------------------------------------------------


class LeadEventsResponse(BaseModel):
    """A lead's calendar events, bucketed by title keyword."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    lead_id: str
    attributed: list[Appointment] = Field(default_factory=list)
    adjuster: list[Appointment] = Field(default_factory=list)
    build: list[Appointment] = Field(default_factory=list)
    acv: list[Appointment] = Field(default_factory=list)
    rcv: list[Appointment] = Field(default_factory=list)
    unclassified: list[Appointment] = Field(default_factory=list)

    @classmethod
    def from_classification(
        cls, lead_id: str, result: LeadEventClassification
    ) -> LeadEventsResponse:
        return cls(
            lead_id=lead_id,
            attributed=result.attributed,
            adjuster=result.by_bucket[LeadEventBucket.ADJUSTER],
            build=result.by_bucket[LeadEventBucket.BUILD],
            acv=result.by_bucket[LeadEventBucket.ACV],
            rcv=result.by_bucket[LeadEventBucket.RCV],
            unclassified=result.unclassified,
        )
