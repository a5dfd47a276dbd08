from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    bot_token: str
    db_path: str
    tz: str
    coach_telegram_ids: frozenset[int]
    date_check_seconds: int
    warning_check_seconds: int
    midnight_warning_minutes: int
    stale_session_hours: int
    log_level: str


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {value}")
    return value


def _id_list_env(name: str) -> frozenset[int]:
    ids = set()
    for part in os.getenv(name, "").split(","):
        part = part.strip()
        if not part:
            continue
        if not part.lstrip("-").isdigit():
            raise RuntimeError(f"{name} contains an invalid id: {part!r}")
        ids.add(int(part))
    return frozenset(ids)


def load_settings() -> Settings:
    bot_token = os.getenv("BOT_TOKEN", "").strip()
    if not bot_token:
        raise RuntimeError("BOT_TOKEN missing in .env")

    return Settings(
        bot_token=bot_token,
        db_path=os.getenv("DB_PATH", "data/app.db").strip(),
        # All "day" math runs in this zone, never the server's local clock.
        tz=os.getenv("TZ", "Europe/Istanbul").strip(),
        coach_telegram_ids=_id_list_env("COACH_TELEGRAM_IDS"),
        date_check_seconds=_int_env("DATE_CHECK_SECONDS", 60),
        warning_check_seconds=_int_env("WARNING_CHECK_SECONDS", 300),
        midnight_warning_minutes=_int_env("MIDNIGHT_WARNING_MINUTES", 60),
        stale_session_hours=_int_env("STALE_SESSION_HOURS", 24),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
    )
