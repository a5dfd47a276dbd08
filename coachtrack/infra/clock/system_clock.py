from __future__ import annotations

from datetime import datetime

import pytz


class SystemClock:
    """Wall clock, reported in the reference timezone."""

    def __init__(self, tz: str) -> None:
        self._tz = pytz.timezone(tz)

    @property
    def tz(self):
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)
