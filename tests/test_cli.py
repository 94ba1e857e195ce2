"""Tests for the leadcal CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from conftest import FakeCalendarApi, remote_event

import leadcal.cli as cli_module
from leadcal.cli import cli

pytestmark = pytest.mark.unit

CONFIG_TOML = """\
[leadcal]
timezone = "America/New_York"

[leadcal.google]
client_id = "cid"
client_secret = "secret"

[leadcal.logging]
level = "WARNING"
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "leadcal.toml"
    path.write_text(CONFIG_TOML)
    return path


@pytest.fixture
def logging_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    calls: list[dict] = []
    monkeypatch.setattr(cli_module, "configure_logging", lambda **kwargs: calls.append(kwargs))
    return calls


@pytest.fixture
def fake_api(monkeypatch: pytest.MonkeyPatch) -> FakeCalendarApi:
    api = FakeCalendarApi()
    monkeypatch.setattr(cli_module, "build_http_client", lambda config: api.http_client())
    return api


def _invoke(config_file: Path, *args: str, **kwargs):
    return CliRunner().invoke(cli, ["--config", str(config_file), *args], **kwargs)


class TestEvents:
    def test_lists_day(self, config_file, fake_api, logging_calls):
        fake_api.add(
            remote_event(
                "evt-1",
                summary="Inspection",
                private={"leadId": "7", "leadName": "Jane Doe", "purpose": "ADJUSTER"},
            )
        )

        result = _invoke(
            config_file,
            "events",
            "--view",
            "day",
            "--date",
            "2024-03-01",
            "--access-token",
            "tok-1",
        )

        assert result.exit_code == 0, result.output
        assert "Day of 2024-03-01: 2024-03-01T05:00:00Z" in result.output
        assert "Inspection" in result.output
        assert "ADJUSTER" in result.output
        assert "Jane Doe" in result.output
        assert logging_calls == [{"level": "WARNING", "fmt": "text", "log_root": None}]

    def test_json_output_and_env_token(self, config_file, fake_api, logging_calls, monkeypatch):
        monkeypatch.setenv("LEADCAL_ACCESS_TOKEN", "tok-1")
        fake_api.add(remote_event("evt-1", summary="Build"))

        result = _invoke(config_file, "events", "--date", "2024-03-01", "--json")

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert [a["id"] for a in payload] == ["evt-1"]
        assert payload[0]["startTime"] == "09:00"

    def test_empty_window(self, config_file, fake_api, logging_calls):
        result = _invoke(config_file, "events", "--access-token", "tok-1")

        assert result.exit_code == 0, result.output
        assert "No appointments." in result.output

    def test_fetch_failure_exits_nonzero(self, config_file, fake_api, logging_calls):
        result = _invoke(config_file, "events", "--access-token", "expired")

        assert result.exit_code == 1
        assert "Calendar fetch failed" in result.output

    def test_refresh_token_recovers_expired_access(self, config_file, fake_api, logging_calls):
        result = _invoke(
            config_file, "events", "--access-token", "expired", "--refresh-token", "rtok"
        )

        assert result.exit_code == 0, result.output
        assert len(fake_api.refresh_requests) == 1

    def test_access_token_required(self, config_file, fake_api, logging_calls, monkeypatch):
        monkeypatch.delenv("LEADCAL_ACCESS_TOKEN", raising=False)

        result = _invoke(config_file, "events")

        assert result.exit_code == 2
        assert "--access-token" in result.output


class TestLeadEvents:
    def test_groups_by_bucket(self, config_file, fake_api, logging_calls):
        fake_api.add(
            remote_event(
                "evt-1", summary="Adjuster meeting - Jane Doe", private={"leadId": "42"}
            )
        )
        fake_api.add(remote_event("evt-2", summary="Follow-up call", description="lead 42"))
        fake_api.add(remote_event("evt-3", summary="Dentist"))

        result = _invoke(
            config_file, "lead-events", "42", "--name", "Jane Doe", "--access-token", "tok-1"
        )

        assert result.exit_code == 0, result.output
        assert "2 appointment(s) linked to lead 42" in result.output
        assert "[adjuster] 1" in result.output
        assert "[build] 0" in result.output
        assert "[unclassified] 1" in result.output
        assert "Dentist" not in result.output

    def test_json_output(self, config_file, fake_api, logging_calls):
        fake_api.add(remote_event("evt-1", summary="ACV check", private={"leadId": "42"}))

        result = _invoke(config_file, "lead-events", "42", "--access-token", "tok-1", "--json")

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["leadId"] == "42"
        assert payload["attributed"] == 1
        assert [a["id"] for a in payload["acv"]] == ["evt-1"]

    def test_remote_failure_exits_nonzero(self, config_file, fake_api, logging_calls):
        fake_api.failure = (500, {"error": {"message": "Backend Error"}})

        result = _invoke(config_file, "lead-events", "42", "--access-token", "tok-1")

        assert result.exit_code == 1
        assert "Backend Error" in result.output


class TestServe:
    def test_runs_uvicorn_with_app(self, config_file, logging_calls, monkeypatch):
        import uvicorn

        calls: list[tuple] = []
        monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

        result = _invoke(config_file, "serve", "--port", "8123")

        assert result.exit_code == 0, result.output
        app, kwargs = calls[0]
        assert app.title == "Leadcal API"
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 8123


class TestConfigOption:
    def test_invalid_config_exits(self, tmp_path: Path, logging_calls):
        path = tmp_path / "leadcal.toml"
        path.write_text('[leadcal]\ntimezone = "Nowhere/Special"\n')

        result = CliRunner().invoke(cli, ["--config", str(path), "serve"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
