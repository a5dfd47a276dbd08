from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import uuid4

import pytest
import pytz

from coachtrack.domain.common.errors import PersistenceFailure
from coachtrack.domain.stopwatch.models import ActiveSession, CompletedSession
from coachtrack.domain.stopwatch.service import StopwatchService
from coachtrack.infra.identity import SessionIdentity

TZ_NAME = "Europe/Istanbul"
TZ = pytz.timezone(TZ_NAME)
STUDENT = 42


def local(y: int, mo: int, d: int, h: int = 0, mi: int = 0, s: int = 0) -> datetime:
    return TZ.localize(datetime(y, mo, d, h, mi, s))


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: Any) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, dt: datetime) -> None:
        self.current = dt


class MemoryGateway:
    """In-memory SessionGateway; `fail_on` names operations that should fail."""

    def __init__(self) -> None:
        self.active: dict[str, ActiveSession] = {}
        self.completed: list[CompletedSession] = []
        self.fail_on: set[str] = set()
        self.calls: list[str] = []

    def _call(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail_on:
            raise PersistenceFailure(op, "injected")

    def rows_for(self, student_id: int) -> list[ActiveSession]:
        return [s for s in self.active.values() if s.student_id == student_id]

    async def get_active_session(self, student_id: int) -> Optional[ActiveSession]:
        self._call("get_active_session")
        rows = self.rows_for(student_id)
        return rows[0] if rows else None

    async def create_active_session(self, student_id: int, start_time: datetime) -> ActiveSession:
        self._call("create_active_session")
        session = ActiveSession(id=uuid4().hex, student_id=student_id, start_time=start_time)
        self.active[session.id] = session
        return session

    async def update_active_session(self, session_id: str, **fields: Any) -> ActiveSession:
        self._call("update_active_session")
        if session_id not in self.active:
            raise PersistenceFailure("update_active_session", f"no active session {session_id}")
        updated = replace(self.active[session_id], **fields)
        self.active[session_id] = updated
        return updated

    async def finish_active_session(
        self, session_id: str, student_id: int, duration_seconds: int, session_date: str
    ) -> Optional[CompletedSession]:
        self._call("finish_active_session")
        if self.active.pop(session_id, None) is None or duration_seconds <= 0:
            return None
        return self._record(student_id, duration_seconds, session_date)

    async def split_active_session(
        self,
        session_id: str,
        student_id: int,
        duration_seconds: int,
        session_date: str,
        start_time: datetime,
        is_paused: bool = False,
        last_pause_time: Optional[datetime] = None,
    ) -> Optional[ActiveSession]:
        self._call("split_active_session")
        if self.active.pop(session_id, None) is None:
            return None
        if duration_seconds > 0:
            self._record(student_id, duration_seconds, session_date)
        fresh = ActiveSession(
            id=uuid4().hex,
            student_id=student_id,
            start_time=start_time,
            is_paused=is_paused,
            last_pause_time=last_pause_time if is_paused else None,
        )
        self.active[fresh.id] = fresh
        return fresh

    async def delete_active_session(self, session_id: str) -> None:
        self._call("delete_active_session")
        self.active.pop(session_id, None)

    async def delete_active_sessions_for(self, student_id: int) -> int:
        self._call("delete_active_sessions_for")
        ids = [s.id for s in self.rows_for(student_id)]
        for session_id in ids:
            del self.active[session_id]
        return len(ids)

    async def append_completed_session(self, student_id: int, duration_seconds: int, session_date: str) -> CompletedSession:
        self._call("append_completed_session")
        return self._record(student_id, duration_seconds, session_date)

    def _record(self, student_id: int, duration_seconds: int, session_date: str) -> CompletedSession:
        record = CompletedSession(
            id=uuid4().hex,
            student_id=student_id,
            duration_seconds=duration_seconds,
            session_date=session_date,
        )
        self.completed.append(record)
        return record

    async def sum_completed_sessions(self, student_id: int, session_date: str) -> int:
        self._call("sum_completed_sessions")
        return sum(
            c.duration_seconds
            for c in self.completed
            if c.student_id == student_id and c.session_date == session_date
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(local(2026, 3, 10, 14, 0, 0))


@pytest.fixture
def gateway() -> MemoryGateway:
    return MemoryGateway()


@pytest.fixture
def identity() -> SessionIdentity:
    return SessionIdentity(STUDENT)


@pytest.fixture
def make_service(gateway, identity, clock):
    def _make(**kwargs: Any) -> StopwatchService:
        params = dict(gateway=gateway, identity=identity, clock=clock, tz=TZ_NAME)
        params.update(kwargs)
        return StopwatchService(**params)

    return _make


@pytest.fixture
def service(make_service) -> StopwatchService:
    return make_service()
