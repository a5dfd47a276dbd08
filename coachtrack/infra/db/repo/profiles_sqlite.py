from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import aiosqlite

from coachtrack.domain.common.errors import PersistenceFailure
from coachtrack.infra.db.connection import Database
from coachtrack.infra.db.repo.sessions_sqlite import storage_errors

STUDENT = "student"
COACH = "coach"


@dataclass(frozen=True)
class Profile:
    id: int
    name: str
    role: str
    coach_id: Optional[int]
    created_at: str

    @property
    def is_coach(self) -> bool:
        return self.role == COACH


def _row_to_profile(row: aiosqlite.Row) -> Profile:
    return Profile(
        id=int(row["id"]),
        name=row["name"],
        role=row["role"],
        coach_id=int(row["coach_id"]) if row["coach_id"] is not None else None,
        created_at=row["created_at"],
    )


class ProfilesRepo:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def get(self, user_id: int) -> Optional[Profile]:
        with storage_errors("get_profile"):
            row = await self._db.fetchone("SELECT * FROM profiles WHERE id=?;", (user_id,))
        return _row_to_profile(row) if row else None

    async def upsert(self, *, user_id: int, name: str, role: str, now_iso: str) -> Profile:
        if role not in (STUDENT, COACH):
            raise ValueError(f"unknown role: {role}")
        with storage_errors("upsert_profile"):
            await self._db.execute(
                """
                INSERT INTO profiles(id, name, role, coach_id, created_at)
                VALUES (?, ?, ?, NULL, ?)
                ON CONFLICT(id) DO UPDATE SET name=excluded.name, role=excluded.role;
                """,
                (user_id, name, role, now_iso),
            )
        profile = await self.get(user_id)
        if profile is None:
            raise PersistenceFailure("upsert_profile", f"profile {user_id} missing after upsert")
        return profile

    async def set_coach(self, *, student_id: int, coach_id: int) -> bool:
        with storage_errors("set_coach"):
            n = await self._db.execute(
                "UPDATE profiles SET coach_id=? WHERE id=? AND role='student';",
                (coach_id, student_id),
            )
        return n > 0

    async def list_students(self, coach_id: int) -> list[Profile]:
        with storage_errors("list_students"):
            rows = await self._db.fetchall(
                "SELECT * FROM profiles WHERE coach_id=? AND role='student' ORDER BY name COLLATE NOCASE;",
                (coach_id,),
            )
        return [_row_to_profile(r) for r in rows]
