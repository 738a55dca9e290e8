"""Tests for environment-driven settings and the CLI parser."""
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from settings import ActiveHours, load_settings


@pytest.fixture(autouse=True)
def no_dotenv():
    with patch("settings.load_dotenv"):
        yield


def test_database_url_required(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        load_settings()


def test_defaults(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///outreach.db")
    for name in ("UNIPILE_DSN", "UNIPILE_API_KEY", "UNIPILE_ACCOUNT_ID", "ACTIVE_DAYS"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.provider.configured is False
    assert settings.active_hours.days == [1, 2, 3, 4, 5]
    assert settings.active_hours.timezone == "America/Chicago"
    assert settings.max_followups_per_run == 5


def test_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///outreach.db")
    monkeypatch.setenv("UNIPILE_DSN", "api1.unipile.com:13111")
    monkeypatch.setenv("UNIPILE_API_KEY", "key")
    monkeypatch.setenv("UNIPILE_ACCOUNT_ID", "acc")
    monkeypatch.setenv("ACTIVE_DAYS", "6,1,1")
    monkeypatch.setenv("ACTIVE_HOURS_START", "7")

    settings = load_settings()

    assert settings.provider.configured is True
    assert settings.active_hours.days == [1, 6]
    assert settings.active_hours.start_hour == 7


def test_active_days_validated():
    with pytest.raises(ValidationError):
        ActiveHours(days=[0, 8])


def test_cli_parser():
    from agent import _build_arg_parser

    parser = _build_arg_parser()
    args = parser.parse_args(["--no-llm", "backfill", "--days", "7"])
    assert args.no_llm is True
    assert args.command == "backfill"
    assert args.days == 7

    with pytest.raises(SystemExit):
        parser.parse_args(["trigger", "not-a-task"])
