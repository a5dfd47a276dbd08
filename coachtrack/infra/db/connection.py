from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Sequence

import aiosqlite


@dataclass
class Database:
    db_path: str

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        """One connection for several statements that must commit together."""
        async with aiosqlite.connect(self.db_path) as conn:
            await conn.execute("PRAGMA foreign_keys = ON;")
            conn.row_factory = aiosqlite.Row
            yield conn

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        async with self.connect() as conn:
            cur = await conn.execute(sql, params)
            await conn.commit()
            return cur.rowcount

    async def fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[aiosqlite.Row]:
        async with self.connect() as conn:
            cur = await conn.execute(sql, params)
            return await cur.fetchone()

    async def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[aiosqlite.Row]:
        async with self.connect() as conn:
            cur = await conn.execute(sql, params)
            rows = await cur.fetchall()
            return list(rows)

    async def executescript(self, script: str) -> None:
        async with self.connect() as conn:
            await conn.executescript(script)
            await conn.commit()
