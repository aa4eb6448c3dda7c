from pathlib import Path

import pytest

from birthday_tracker.settings import load_settings

ENV_NAMES = (
    "TELEGRAM_BOT_TOKEN",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "SUPABASE_TABLE",
    "BIRTHDAY_CACHE_PATH",
    "DEFAULT_TIMEZONE",
    "LEAP_DAY_RULE",
    "REMOTE_TIMEOUT_SECONDS",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", " token ")

    settings = load_settings()

    assert settings.telegram_bot_token == "token"
    assert settings.remote_enabled is False
    assert settings.supabase_table == "birthdays"
    assert settings.cache_path == tmp_path / "data" / "birthdays.json"
    assert settings.default_timezone == "Asia/Tokyo"
    assert settings.leap_day_rule == "mar1"
    assert settings.remote_timeout_seconds == 10.0


def test_remote_and_cache_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "anon-key")
    monkeypatch.setenv("BIRTHDAY_CACHE_PATH", "")
    monkeypatch.setenv("LEAP_DAY_RULE", "FEB28")

    settings = load_settings()

    assert settings.remote_enabled is True
    assert settings.cache_path is None
    assert settings.leap_day_rule == "feb28"


def test_missing_token_rejected() -> None:
    with pytest.raises(ValueError, match="TELEGRAM_BOT_TOKEN"):
        load_settings()


@pytest.mark.parametrize(
    "name,value",
    [("LEAP_DAY_RULE", "never"), ("REMOTE_TIMEOUT_SECONDS", "soon"), ("REMOTE_TIMEOUT_SECONDS", "0")],
)
def test_invalid_values_rejected(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        load_settings()
