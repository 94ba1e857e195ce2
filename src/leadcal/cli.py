"""CLI for leadcal: inspect lead appointments and serve the calendar API."""

from __future__ import annotations

import asyncio
import datetime as dt
import json
import logging
import sys
from pathlib import Path
from zoneinfo import ZoneInfo

import click

from leadcal import __version__
from leadcal.calendar.classifier import LeadEventBucket, load_lead_events
from leadcal.calendar.credentials import SessionCredentials
from leadcal.calendar.errors import CalendarError
from leadcal.calendar.factory import (
    build_client,
    build_http_client,
    build_mapper,
    build_sync,
    build_transport,
)
from leadcal.calendar.models import Appointment
from leadcal.calendar.window import ViewMode
from leadcal.config import ConfigError, LeadcalConfig, default_config, load_config
from leadcal.core.logging import configure_logging

logger = logging.getLogger(__name__)

_token_options = [
    click.option(
        "--access-token",
        envvar="LEADCAL_ACCESS_TOKEN",
        required=True,
        help="Google OAuth access token (or LEADCAL_ACCESS_TOKEN)",
    ),
    click.option(
        "--refresh-token",
        envvar="LEADCAL_REFRESH_TOKEN",
        default=None,
        help="Google OAuth refresh token (or LEADCAL_REFRESH_TOKEN)",
    ),
    click.option("--json", "as_json", is_flag=True, help="Emit JSON instead of a table"),
]


def _with_token_options(func):
    for option in reversed(_token_options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to leadcal.toml (or a directory containing it)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """Leadcal: lead-linked appointments on top of Google Calendar."""
    try:
        config = load_config(config_path) if config_path is not None else default_config()
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=config.logging.log_root,
    )
    ctx.obj = config


def _format_row(appointment: Appointment) -> str:
    when = f"{appointment.date} {appointment.start_time}-{appointment.end_time or '?'}"
    purpose = appointment.purpose.value if appointment.purpose else "-"
    lead = appointment.lead_name or appointment.lead_id or "-"
    return f"{when:<24} {purpose:<20} {lead:<20} {appointment.title}"


def _echo_appointments(appointments: list[Appointment] | tuple[Appointment, ...]) -> None:
    if not appointments:
        click.echo("No appointments.")
        return
    click.echo(f"{'When':<24} {'Purpose':<20} {'Lead':<20} {'Title'}")
    click.echo("-" * 80)
    for appointment in appointments:
        click.echo(_format_row(appointment))


def _dump(payload) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


async def _fetch_window(
    config: LeadcalConfig,
    credentials: SessionCredentials,
    view: ViewMode,
    reference: dt.date,
):
    async with build_http_client(config) as http_client:
        client = build_client(config, build_transport(config, http_client), credentials)
        sync = build_sync(config, client, view=view, reference_date=reference)
        try:
            await sync.refetch()
        finally:
            await sync.aclose()
        return sync


@cli.command()
@click.option(
    "--view",
    type=click.Choice([mode.value for mode in ViewMode]),
    default=ViewMode.WEEK.value,
    show_default=True,
    help="Window around the reference date",
)
@click.option(
    "--date",
    "reference",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Reference date (YYYY-MM-DD); defaults to today",
)
@_with_token_options
@click.pass_obj
def events(
    config: LeadcalConfig,
    view: str,
    reference: dt.datetime | None,
    access_token: str,
    refresh_token: str | None,
    as_json: bool,
) -> None:
    """List appointments in the day, week or month around a date."""
    day = reference.date() if reference else dt.datetime.now(ZoneInfo(config.timezone)).date()
    credentials = SessionCredentials(access_token=access_token, refresh_token=refresh_token)
    sync = asyncio.run(_fetch_window(config, credentials, ViewMode(view), day))

    if sync.error is not None:
        click.echo(f"Calendar fetch failed: {sync.error}", err=True)
        sys.exit(1)

    if as_json:
        _dump([a.model_dump(mode="json", by_alias=True) for a in sync.appointments])
        return
    window = sync.window
    click.echo(f"{view.capitalize()} of {day}: {window.time_min} .. {window.time_max}")
    _echo_appointments(sync.appointments)


@cli.command("lead-events")
@click.argument("lead_id")
@click.option("--name", "lead_name", default=None, help="Lead display name for title matching")
@_with_token_options
@click.pass_obj
def lead_events(
    config: LeadcalConfig,
    lead_id: str,
    lead_name: str | None,
    access_token: str,
    refresh_token: str | None,
    as_json: bool,
) -> None:
    """Show a lead's appointments grouped by adjuster, build, ACV and RCV."""
    credentials = SessionCredentials(access_token=access_token, refresh_token=refresh_token)

    async def _run():
        async with build_http_client(config) as http_client:
            client = build_client(config, build_transport(config, http_client), credentials)
            return await load_lead_events(
                client,
                build_mapper(config),
                lead_id,
                lead_name,
                now=dt.datetime.now(ZoneInfo(config.timezone)),
                months=config.sync.lead_window_months,
            )

    try:
        result = asyncio.run(_run())
    except (CalendarError, ValueError) as exc:
        click.echo(f"Lead event lookup failed: {exc}", err=True)
        sys.exit(1)

    if as_json:
        _dump(
            {
                "leadId": lead_id,
                "attributed": len(result.attributed),
                **{
                    bucket.value: [a.model_dump(mode="json", by_alias=True) for a in items]
                    for bucket, items in result.by_bucket.items()
                },
                "unclassified": [
                    a.model_dump(mode="json", by_alias=True) for a in result.unclassified
                ],
            }
        )
        return

    click.echo(f"{len(result.attributed)} appointment(s) linked to lead {lead_id}")
    for bucket in LeadEventBucket:
        items = result.by_bucket[bucket]
        click.echo(f"\n[{bucket.value}] {len(items)}")
        for appointment in items:
            click.echo(f"  {_format_row(appointment)}")
    if result.unclassified:
        click.echo(f"\n[unclassified] {len(result.unclassified)}")
        for appointment in result.unclassified:
            click.echo(f"  {_format_row(appointment)}")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", type=int, default=8000, show_default=True, help="Bind port")
@click.pass_obj
def serve(config: LeadcalConfig, host: str, port: int) -> None:
    """Run the calendar HTTP API."""
    import uvicorn

    from leadcal.api.app import create_app

    click.echo(f"Serving leadcal API on http://{host}:{port}")
    uvicorn.run(create_app(config), host=host, port=port, log_config=None)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
