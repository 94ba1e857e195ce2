"""FastAPI dependencies: app-wide calendar stack plus per-request credentials.

The surrounding session layer authenticates the user and forwards the Google
tokens: the access token as ``Authorization: Bearer ...`` and the refresh
token, when it has one, as ``X-Refresh-Token``.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, Request

from leadcal.calendar.client import CalendarClient
from leadcal.calendar.credentials import SessionCredentials
from leadcal.calendar.factory import build_client
from leadcal.calendar.mapper import EventMapper
from leadcal.calendar.transport import AuthenticatedTransport
from leadcal.config import LeadcalConfig
from leadcal.core.logging import set_account_context


class MissingCredentialsError(Exception):
    """Raised when a request carries no bearer access token."""


def get_config(request: Request) -> LeadcalConfig:
    return request.app.state.config


def get_transport(request: Request) -> AuthenticatedTransport:
    return request.app.state.transport


def get_mapper(request: Request) -> EventMapper:
    return request.app.state.mapper


async def get_session_credentials(
    authorization: Annotated[str | None, Header()] = None,
    x_refresh_token: Annotated[str | None, Header()] = None,
    x_user_email: Annotated[str | None, Header()] = None,
) -> SessionCredentials:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise MissingCredentialsError("A bearer access token is required")
    set_account_context(x_user_email.strip() if x_user_email else None)
    refresh_token = x_refresh_token.strip() if x_refresh_token else None
    return SessionCredentials(access_token=token.strip(), refresh_token=refresh_token or None)


def get_calendar_client(
    config: Annotated[LeadcalConfig, Depends(get_config)],
    transport: Annotated[AuthenticatedTransport, Depends(get_transport)],
    credentials: Annotated[SessionCredentials, Depends(get_session_credentials)],
) -> CalendarClient:
    return build_client(config, transport, credentials)
