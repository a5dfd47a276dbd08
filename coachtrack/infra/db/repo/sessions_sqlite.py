from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional
from uuid import uuid4

import aiosqlite

from coachtrack.domain.common.errors import PersistenceFailure
from coachtrack.domain.common.time import parse_iso, to_iso
from coachtrack.domain.stopwatch.models import ActiveSession, CompletedSession
from coachtrack.domain.stopwatch.ports import Clock
from coachtrack.infra.db.connection import Database

_UPDATABLE = {"is_paused", "last_pause_time", "total_paused_time"}


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except aiosqlite.Error as e:
        raise PersistenceFailure(operation, str(e)) from e


def _row_to_active(row: aiosqlite.Row) -> ActiveSession:
    return ActiveSession(
        id=row["id"],
        student_id=int(row["student_id"]),
        start_time=parse_iso(row["start_time"]),
        is_paused=bool(row["is_paused"]),
        last_pause_time=parse_iso(row["last_pause_time"]) if row["last_pause_time"] else None,
        total_paused_time=int(row["total_paused_time"] or 0),
    )


def _to_column(name: str, value: Any) -> Any:
    if name == "is_paused":
        return 1 if value else 0
    if name == "last_pause_time":
        return to_iso(value) if value is not None else None
    if name == "total_paused_time":
        value = int(value)
        if value < 0:
            raise ValueError("total_paused_time cannot be negative")
        return value
    return value


def _completed(student_id: int, duration_seconds: int, session_date: str) -> CompletedSession:
    duration_seconds = int(duration_seconds)
    if duration_seconds < 0:
        raise ValueError("duration_seconds cannot be negative")
    return CompletedSession(
        id=uuid4().hex,
        student_id=student_id,
        duration_seconds=duration_seconds,
        session_date=session_date,
    )


class SessionsSqliteRepo:
    """SessionGateway backed by the active_sessions and study_sessions tables."""

    def __init__(self, db: Database, clock: Clock) -> None:
        self._db = db
        self._clock = clock

    async def get_active_session(self, student_id: int) -> Optional[ActiveSession]:
        with storage_errors("get_active_session"):
            row = await self._db.fetchone(
                "SELECT * FROM active_sessions WHERE student_id=? LIMIT 1;",
                (student_id,),
            )
        return _row_to_active(row) if row else None

    async def create_active_session(self, student_id: int, start_time: datetime) -> ActiveSession:
        session = ActiveSession(id=uuid4().hex, student_id=student_id, start_time=start_time)
        with storage_errors("create_active_session"):
            async with self._db.connect() as conn:
                # delete-then-insert in one transaction: last writer wins
                await conn.execute("DELETE FROM active_sessions WHERE student_id=?;", (student_id,))
                await conn.execute(
                    """
                    INSERT INTO active_sessions(id, student_id, start_time, is_paused, last_pause_time, total_paused_time)
                    VALUES (?, ?, ?, 0, NULL, 0);
                    """,
                    (session.id, student_id, to_iso(start_time)),
                )
                await conn.commit()
        return session

    async def update_active_session(self, session_id: str, **fields: Any) -> ActiveSession:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"cannot update active session fields: {sorted(unknown)}")
        if not fields:
            raise ValueError("nothing to update")

        cols = ", ".join(f"{k}=?" for k in fields)
        vals = [_to_column(k, v) for k, v in fields.items()] + [session_id]
        with storage_errors("update_active_session"):
            async with self._db.connect() as conn:
                await conn.execute(f"UPDATE active_sessions SET {cols} WHERE id=?;", vals)
                cur = await conn.execute("SELECT * FROM active_sessions WHERE id=?;", (session_id,))
                row = await cur.fetchone()
                await conn.commit()
        if row is None:
            raise PersistenceFailure("update_active_session", f"no active session {session_id}")
        return _row_to_active(row)

    async def finish_active_session(
        self, session_id: str, student_id: int, duration_seconds: int, session_date: str
    ) -> Optional[CompletedSession]:
        """
        Delete the active row and record its duration in one transaction.
        Nothing is written when the row is already gone; zero durations are
        not recorded.
        """
        record = _completed(student_id, duration_seconds, session_date)
        with storage_errors("finish_active_session"):
            async with self._db.connect() as conn:
                cur = await conn.execute("DELETE FROM active_sessions WHERE id=?;", (session_id,))
                if cur.rowcount == 0:
                    return None
                if record.duration_seconds > 0:
                    await self._insert_completed(conn, record)
                await conn.commit()
        return record if record.duration_seconds > 0 else None

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
        """
        Close the active row into study_sessions and open its continuation
        starting at `start_time`, all in one transaction. Returns None when
        the row is already gone.
        """
        record = _completed(student_id, duration_seconds, session_date)
        fresh = ActiveSession(
            id=uuid4().hex,
            student_id=student_id,
            start_time=start_time,
            is_paused=bool(is_paused),
            last_pause_time=last_pause_time if is_paused else None,
        )
        with storage_errors("split_active_session"):
            async with self._db.connect() as conn:
                cur = await conn.execute("DELETE FROM active_sessions WHERE id=?;", (session_id,))
                if cur.rowcount == 0:
                    return None
                if record.duration_seconds > 0:
                    await self._insert_completed(conn, record)
                await conn.execute(
                    """
                    INSERT INTO active_sessions(id, student_id, start_time, is_paused, last_pause_time, total_paused_time)
                    VALUES (?, ?, ?, ?, ?, 0);
                    """,
                    (
                        fresh.id,
                        student_id,
                        to_iso(start_time),
                        _to_column("is_paused", fresh.is_paused),
                        _to_column("last_pause_time", fresh.last_pause_time),
                    ),
                )
                await conn.commit()
        return fresh

    async def delete_active_session(self, session_id: str) -> None:
        with storage_errors("delete_active_session"):
            await self._db.execute("DELETE FROM active_sessions WHERE id=?;", (session_id,))

    async def delete_active_sessions_for(self, student_id: int) -> int:
        with storage_errors("delete_active_sessions_for"):
            return await self._db.execute("DELETE FROM active_sessions WHERE student_id=?;", (student_id,))

    async def list_active_student_ids(self) -> list[int]:
        with storage_errors("list_active_student_ids"):
            rows = await self._db.fetchall("SELECT student_id FROM active_sessions ORDER BY student_id;")
        return [int(r["student_id"]) for r in rows]

    async def append_completed_session(
        self, student_id: int, duration_seconds: int, session_date: str
    ) -> CompletedSession:
        record = _completed(student_id, duration_seconds, session_date)
        with storage_errors("append_completed_session"):
            async with self._db.connect() as conn:
                await self._insert_completed(conn, record)
                await conn.commit()
        return record

    async def _insert_completed(self, conn: aiosqlite.Connection, record: CompletedSession) -> None:
        await conn.execute(
            """
            INSERT INTO study_sessions(id, student_id, duration_seconds, session_date, created_at)
            VALUES (?, ?, ?, ?, ?);
            """,
            (record.id, record.student_id, record.duration_seconds, record.session_date, to_iso(self._clock.now())),
        )

    async def sum_completed_sessions(self, student_id: int, session_date: str) -> int:
        with storage_errors("sum_completed_sessions"):
            row = await self._db.fetchone(
                """
                SELECT COALESCE(SUM(duration_seconds), 0) AS total
                FROM study_sessions
                WHERE student_id=? AND session_date=?;
                """,
                (student_id, session_date),
            )
        return int(row["total"] or 0) if row else 0

    async def list_completed_sessions(self, student_id: int, session_date: str) -> list[CompletedSession]:
        with storage_errors("list_completed_sessions"):
            rows = await self._db.fetchall(
                """
                SELECT id, student_id, duration_seconds, session_date
                FROM study_sessions
                WHERE student_id=? AND session_date=?
                ORDER BY created_at ASC;
                """,
                (student_id, session_date),
            )
        return [
            CompletedSession(
                id=r["id"],
                student_id=int(r["student_id"]),
                duration_seconds=int(r["duration_seconds"]),
                session_date=r["session_date"],
            )
            for r in rows
        ]
