from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from birthday_tracker.models import DEFAULT_TIMEZONE
from birthday_tracker.recurrence import ALLOWED_LEAP_DAY_RULES
from birthday_tracker.remote_store import DEFAULT_TABLE


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    supabase_url: str | None
    supabase_key: str | None
    supabase_table: str
    cache_path: Path | None
    default_timezone: str
    leap_day_rule: str
    remote_timeout_seconds: float
    log_level: str

    @property
    def remote_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ValueError(f"Missing required environment variable: {name}")
    return value.strip()


def _optional_env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def load_settings() -> Settings:
    root = Path.cwd()

    token = _required_env("TELEGRAM_BOT_TOKEN")

    raw_cache_path = os.getenv("BIRTHDAY_CACHE_PATH")
    if raw_cache_path is None:
        cache_path: Path | None = root / "data" / "birthdays.json"
    elif raw_cache_path.strip():
        cache_path = Path(raw_cache_path.strip())
    else:
        cache_path = None

    leap_day_rule = os.getenv("LEAP_DAY_RULE", "mar1").strip().lower()
    if leap_day_rule not in ALLOWED_LEAP_DAY_RULES:
        raise ValueError(f"LEAP_DAY_RULE must be one of {sorted(ALLOWED_LEAP_DAY_RULES)}")

    raw_timeout = os.getenv("REMOTE_TIMEOUT_SECONDS", "10")
    try:
        remote_timeout = float(raw_timeout)
    except ValueError as exc:
        raise ValueError(f"REMOTE_TIMEOUT_SECONDS must be a number, got {raw_timeout!r}") from exc
    if remote_timeout <= 0:
        raise ValueError("REMOTE_TIMEOUT_SECONDS must be positive")

    return Settings(
        telegram_bot_token=token,
        supabase_url=_optional_env("SUPABASE_URL"),
        supabase_key=_optional_env("SUPABASE_KEY"),
        supabase_table=_optional_env("SUPABASE_TABLE") or DEFAULT_TABLE,
        cache_path=cache_path,
        default_timezone=_optional_env("DEFAULT_TIMEZONE") or DEFAULT_TIMEZONE,
        leap_day_rule=leap_day_rule,
        remote_timeout_seconds=remote_timeout,
        log_level=(_optional_env("LOG_LEVEL") or "INFO").upper(),
    )
