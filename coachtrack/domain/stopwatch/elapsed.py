from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from coachtrack.domain.stopwatch.models import ActiveSession

_MS = timedelta(milliseconds=1)


def millis_between(start: datetime, end: datetime) -> int:
    return (end - start) // _MS


def elapsed_seconds(session: ActiveSession, now: datetime, until: Optional[datetime] = None) -> int:
    """
    Seconds studied in `session`, rebuilt from its durable fields.

    While paused the reference instant is last_pause_time, so the value is
    frozen. `until` caps the reference instant (used when splitting a run at
    midnight). Never negative.
    """
    if session.is_paused and session.last_pause_time is not None:
        reference = session.last_pause_time
    else:
        reference = now
    if until is not None and until < reference:
        reference = until

    active_ms = millis_between(session.start_time, reference) - int(session.total_paused_time)
    return max(0, active_ms // 1000)
