from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Union

import pytz

TzLike = Union[str, "pytz.BaseTzInfo"]


def _tz(tz: TzLike):
    return pytz.timezone(tz) if isinstance(tz, str) else tz


def to_iso(dt: datetime) -> str:
    """Aware datetime -> ISO-8601 string in UTC."""
    if dt.tzinfo is None:
        raise ValueError("naive datetime, refusing to guess its zone")
    return dt.astimezone(timezone.utc).isoformat()


def parse_iso(value: str) -> datetime:
    s = (value or "").strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def reference_date(dt: datetime, tz: TzLike) -> date:
    """Calendar date of `dt` in the reference timezone."""
    return dt.astimezone(_tz(tz)).date()


def date_str(d: date) -> str:
    return d.isoformat()


def midnight_after(d: date, tz: TzLike) -> datetime:
    """First instant of the day following `d`, in the reference timezone."""
    zone = _tz(tz)
    return zone.localize(datetime.combine(d + timedelta(days=1), time.min))


def minutes_until_midnight(now: datetime, tz: TzLike) -> int:
    today = reference_date(now, tz)
    remaining = midnight_after(today, tz) - now
    return max(0, int(remaining.total_seconds() // 60))


def last_days(today: date, days: int) -> list[date]:
    """`days` dates ending with today, oldest first."""
    return [today - timedelta(days=i) for i in range(days - 1, -1, -1)]


def fmt_hms(seconds: int) -> str:
    """Format seconds as HH:MM:SS."""
    seconds = max(0, int(seconds))
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02}:{m:02}:{s:02}"


def fmt_total(seconds: int) -> str:
    seconds = max(0, int(seconds))
    h = seconds // 3600
    m = (seconds % 3600) // 60
    return f"{h} saat {m} dakika"
