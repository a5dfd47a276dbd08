from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

IDLE = "idle"
RUNNING = "running"
PAUSED = "paused"


@dataclass(frozen=True)
class ActiveSession:
    """
    The single in-progress stopwatch run of a student.
    - start_time never changes while the row exists
    - last_pause_time is set only while is_paused
    - total_paused_time is milliseconds, grows only on resume
    """
    id: str
    student_id: int
    start_time: datetime
    is_paused: bool = False
    last_pause_time: Optional[datetime] = None
    total_paused_time: int = 0

    @property
    def state(self) -> str:
        return PAUSED if self.is_paused else RUNNING


@dataclass(frozen=True)
class CompletedSession:
    id: str
    student_id: int
    duration_seconds: int
    session_date: str  # YYYY-MM-DD, reference timezone


@dataclass(frozen=True)
class StopwatchSnapshot:
    state_label: str
    elapsed_seconds: int
    today_total_seconds: int
    warning_active: bool

    @property
    def is_active(self) -> bool:
        return self.state_label != IDLE


@dataclass(frozen=True)
class Rollover:
    """What an automatic day split flushed into the previous date."""
    session_date: str
    duration_seconds: int
