"""Build the calendar stack from ``LeadcalConfig``."""

from __future__ import annotations

import httpx

from leadcal.calendar.client import CalendarClient
from leadcal.calendar.credentials import CredentialRefresher, SessionCredentials
from leadcal.calendar.mapper import EventMapper
from leadcal.calendar.sync import CalendarSync
from leadcal.calendar.transport import AuthenticatedTransport
from leadcal.config import LeadcalConfig


def build_http_client(config: LeadcalConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=config.google.timeout_s)


def build_transport(config: LeadcalConfig, http_client: httpx.AsyncClient) -> AuthenticatedTransport:
    refresher = CredentialRefresher(
        http_client,
        config.google.oauth_credentials(),
        token_url=config.google.token_url,
    )
    return AuthenticatedTransport(http_client, refresher, base_url=config.google.api_base_url)


def build_client(
    config: LeadcalConfig,
    transport: AuthenticatedTransport,
    credentials: SessionCredentials,
) -> CalendarClient:
    return CalendarClient(
        transport,
        credentials,
        calendar_id=config.google.calendar_id,
        persist_refreshed_tokens=config.sync.persist_refreshed_tokens,
    )


def build_mapper(config: LeadcalConfig) -> EventMapper:
    return EventMapper(config.timezone)


def build_sync(config: LeadcalConfig, client: CalendarClient, **kwargs) -> CalendarSync:
    """Create a session-owned ``CalendarSync``; *kwargs* set the initial view."""
    return CalendarSync(
        client,
        build_mapper(config),
        debounce_seconds=config.sync.debounce_seconds,
        week_start=config.week_start_day,
        **kwargs,
    )
