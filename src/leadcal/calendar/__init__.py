"""Calendar synchronization core.

Keeps CRM appointments mirrored in the remote Google calendar and attributes
remote events back to leads.
"""

from leadcal.calendar.classifier import (
    LeadEventBucket,
    LeadEventClassification,
    classify,
    load_lead_events,
)
from leadcal.calendar.client import CalendarClient
from leadcal.calendar.credentials import (
    CredentialRefresher,
    OAuthClientCredentials,
    SessionCredentials,
)
from leadcal.calendar.errors import (
    CalendarError,
    CredentialRefreshError,
    EventMappingError,
    RemoteApiError,
    TransportError,
)
from leadcal.calendar.mapper import EventMapper
from leadcal.calendar.models import (
    Appointment,
    AppointmentPurpose,
    AppointmentStatus,
    LinkageMetadata,
)
from leadcal.calendar.sync import CalendarSync, SyncState
from leadcal.calendar.transport import AuthenticatedTransport
from leadcal.calendar.window import SyncWindow, ViewMode, compute_window, lead_window

__all__ = [
    "Appointment",
    "AppointmentPurpose",
    "AppointmentStatus",
    "AuthenticatedTransport",
    "CalendarClient",
    "CalendarError",
    "CalendarSync",
    "CredentialRefreshError",
    "CredentialRefresher",
    "EventMapper",
    "EventMappingError",
    "LeadEventBucket",
    "LeadEventClassification",
    "LinkageMetadata",
    "OAuthClientCredentials",
    "RemoteApiError",
    "SessionCredentials",
    "SyncState",
    "SyncWindow",
    "TransportError",
    "ViewMode",
    "classify",
    "compute_window",
    "lead_window",
    "load_lead_events",
]
