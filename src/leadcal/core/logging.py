"""Log formatting for leadcal.

Call sites use plain ``logging.getLogger(__name__)``; every handler installed
here renders records through structlog's ``ProcessorFormatter``, as coloured
console lines or JSON.  Each record is stamped with the calendar account of
the current request and the active OTel trace, and has bearer tokens and OAuth
secrets scrubbed before it reaches a formatter.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path

import structlog
from opentelemetry import trace

from leadcal.calendar.errors import redact_credentials

LOG_FILENAME = "leadcal.log"

# Third-party loggers that only matter when something is wrong.
_NOISE_LOGGERS = ("uvicorn.access", "uvicorn.error", "httpx", "httpcore")

_account_context: ContextVar[str | None] = ContextVar("calendar_account", default=None)


def set_account_context(account: str | None) -> None:
    """Bind the calendar account (user email) to the current request or task."""
    _account_context.set(account)


def get_account_context() -> str | None:
    return _account_context.get()


def add_account_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    event_dict["account"] = _account_context.get()
    return event_dict


def add_otel_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Stamp ``trace_id``/``span_id``; all-zero ids outside a recording span."""
    span_context = trace.get_current_span().get_span_context()
    trace_id = span_context.trace_id if span_context else 0
    span_id = span_context.span_id if trace_id else 0
    event_dict["trace_id"] = f"{trace_id:032x}"
    event_dict["span_id"] = f"{span_id:016x}"
    return event_dict


class CredentialRedactionFilter(logging.Filter):
    """Scrub bearer tokens and OAuth secrets from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_credentials(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def _record_processors(time_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_account_context,
        add_otel_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _redacting_handler(
    handler: logging.Handler,
    renderer: structlog.types.Processor,
    time_fmt: str,
) -> logging.Handler:
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=_record_processors(time_fmt),
        )
    )
    handler.addFilter(CredentialRedactionFilter())
    return handler


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | str | None = None,
    account: str | None = None,
) -> None:
    """Install leadcal's handlers on the root logger, replacing any existing ones.

    Parameters
    ----------
    level:
        Root log level name; unknown names fall back to INFO.
    fmt:
        ``"text"`` for coloured console lines, ``"json"`` for JSON lines.
    log_root:
        When set, records are also written as JSON to ``{log_root}/leadcal.log``
        at DEBUG level.
    account:
        Calendar account to stamp on records outside any request (CLI runs).
    """
    if account:
        set_account_context(account)

    if fmt == "json":
        console = _redacting_handler(
            logging.StreamHandler(sys.stderr), structlog.processors.JSONRenderer(), "iso"
        )
    else:
        console = _redacting_handler(
            logging.StreamHandler(sys.stderr), structlog.dev.ConsoleRenderer(), "%H:%M:%S"
        )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_root is not None:
        log_dir = Path(log_root)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = _redacting_handler(
            logging.FileHandler(log_dir / LOG_FILENAME), structlog.processors.JSONRenderer(), "iso"
        )
        file_handler.setLevel(logging.DEBUG)
        root.addHandler(file_handler)
