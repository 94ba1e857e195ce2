"""leadcal configuration loading and validation.

Reads ``leadcal.toml``, resolves ``${VAR_NAME}`` references from the
environment, and returns a validated ``LeadcalConfig`` dataclass.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from leadcal.calendar.client import DEFAULT_CALENDAR_ID
from leadcal.calendar.credentials import GOOGLE_OAUTH_TOKEN_URL, OAuthClientCredentials
from leadcal.calendar.transport import GOOGLE_CALENDAR_API_BASE_URL
from leadcal.calendar.window import WEEKDAY_NAMES

CONFIG_FILENAME = "leadcal.toml"
DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_WEEK_START = "sunday"

# Pattern matching ${VAR_NAME}; supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_LOG_FORMATS = ("text", "json")


class ConfigError(Exception):
    """Raised when leadcal configuration is missing, malformed, or invalid."""


@dataclass
class LoggingConfig:
    """Logging configuration from [leadcal.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class GoogleConfig:
    """Remote calendar and OAuth client settings from [leadcal.google]."""

    client_id: str = ""
    client_secret: str = ""
    api_base_url: str = GOOGLE_CALENDAR_API_BASE_URL
    token_url: str = GOOGLE_OAUTH_TOKEN_URL
    calendar_id: str = DEFAULT_CALENDAR_ID
    timeout_s: float = 30.0

    def oauth_credentials(self) -> OAuthClientCredentials | None:
        """Client credentials for token refresh, or ``None`` when not configured."""
        if not self.client_id.strip() or not self.client_secret.strip():
            return None
        return OAuthClientCredentials(client_id=self.client_id, client_secret=self.client_secret)


@dataclass
class SyncConfig:
    """Range fetcher settings from [leadcal.sync]."""

    debounce_ms: int = 500
    lead_window_months: int = 6
    persist_refreshed_tokens: bool = False

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


@dataclass
class LeadcalConfig:
    """Parsed and validated leadcal configuration."""

    timezone: str = DEFAULT_TIMEZONE
    week_start: str = DEFAULT_WEEK_START
    google: GoogleConfig = field(default_factory=GoogleConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def week_start_day(self) -> int:
        """``week_start`` as a :mod:`calendar` weekday number (Monday is 0)."""
        return WEEKDAY_NAMES[self.week_start]


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(f"Unresolved environment variable(s) in config value: {vars_str}")

    return result


def _section(data: dict[str, Any], key: str, label: str) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{label}] must be a table")
    return value


def _validate_timezone(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError("leadcal.timezone must be a non-empty string")
    normalized = value.strip()
    try:
        ZoneInfo(normalized)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Unknown leadcal.timezone: {value!r}") from exc
    return normalized


def _validate_week_start(value: Any) -> str:
    normalized = str(value).strip().lower()
    if normalized not in WEEKDAY_NAMES:
        raise ConfigError(
            f"Invalid leadcal.week_start: {value!r}. Expected a weekday name such as 'sunday'."
        )
    return normalized


def _parse_google(section: dict[str, Any]) -> GoogleConfig:
    defaults = GoogleConfig()
    timeout_raw = section.get("timeout_s", defaults.timeout_s)
    if isinstance(timeout_raw, bool) or not isinstance(timeout_raw, int | float):
        raise ConfigError("leadcal.google.timeout_s must be a number")
    if timeout_raw <= 0:
        raise ConfigError("leadcal.google.timeout_s must be positive")

    calendar_id = str(section.get("calendar_id", defaults.calendar_id)).strip()
    if not calendar_id:
        raise ConfigError("leadcal.google.calendar_id must be a non-empty string")

    return GoogleConfig(
        client_id=str(section.get("client_id", "")).strip(),
        client_secret=str(section.get("client_secret", "")).strip(),
        api_base_url=str(section.get("api_base_url", defaults.api_base_url)).strip(),
        token_url=str(section.get("token_url", defaults.token_url)).strip(),
        calendar_id=calendar_id,
        timeout_s=float(timeout_raw),
    )


def _parse_sync(section: dict[str, Any]) -> SyncConfig:
    defaults = SyncConfig()
    debounce_ms = section.get("debounce_ms", defaults.debounce_ms)
    if isinstance(debounce_ms, bool) or not isinstance(debounce_ms, int) or debounce_ms < 0:
        raise ConfigError("leadcal.sync.debounce_ms must be a non-negative integer")

    months = section.get("lead_window_months", defaults.lead_window_months)
    if isinstance(months, bool) or not isinstance(months, int) or months < 0:
        raise ConfigError("leadcal.sync.lead_window_months must be a non-negative integer")

    persist = section.get("persist_refreshed_tokens", defaults.persist_refreshed_tokens)
    if not isinstance(persist, bool):
        raise ConfigError("leadcal.sync.persist_refreshed_tokens must be a boolean")

    return SyncConfig(
        debounce_ms=debounce_ms,
        lead_window_months=months,
        persist_refreshed_tokens=persist,
    )


def _parse_logging(section: dict[str, Any]) -> LoggingConfig:
    level = str(section.get("level", "INFO")).upper()
    fmt = str(section.get("format", "text")).lower()
    if fmt not in _LOG_FORMATS:
        raise ConfigError(
            f"Invalid leadcal.logging.format: {fmt!r}. Expected one of: {', '.join(_LOG_FORMATS)}"
        )
    log_root = section.get("log_root")
    return LoggingConfig(
        level=level,
        format=fmt,
        log_root=str(log_root) if log_root is not None else None,
    )


def parse_config(data: dict[str, Any]) -> LeadcalConfig:
    """Validate an already-parsed TOML document."""
    data = resolve_env_vars(data)
    root = _section(data, "leadcal", "leadcal")

    return LeadcalConfig(
        timezone=_validate_timezone(root.get("timezone", DEFAULT_TIMEZONE)),
        week_start=_validate_week_start(root.get("week_start", DEFAULT_WEEK_START)),
        google=_parse_google(_section(root, "google", "leadcal.google")),
        sync=_parse_sync(_section(root, "sync", "leadcal.sync")),
        logging=_parse_logging(_section(root, "logging", "leadcal.logging")),
    )


def load_config(path: Path) -> LeadcalConfig:
    """Load and validate ``leadcal.toml``.

    *path* may be the file itself or a directory containing it.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or fails validation.
    """
    toml_path = path / CONFIG_FILENAME if path.is_dir() else path

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_text())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    return parse_config(data)


def default_config() -> LeadcalConfig:
    """Built-in defaults with OAuth client credentials taken from the environment."""
    config = LeadcalConfig()
    config.google.client_id = os.environ.get("GOOGLE_CLIENT_ID", "").strip()
    config.google.client_secret = os.environ.get("GOOGLE_CLIENT_SECRET", "").strip()
    return config
