from __future__ import annotations

import logging
from pathlib import Path

from coachtrack.infra.db.connection import Database

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


async def apply_migrations(*, db: Database, now_iso: str, migrations_dir: str | Path = MIGRATIONS_DIR) -> list[str]:
    """
    Apply every NNN_name.sql in order, once. Returns the versions applied now.
    """
    await db.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_version (
          version TEXT PRIMARY KEY,
          applied_at TEXT NOT NULL
        );
        """
    )
    rows = await db.fetchall("SELECT version FROM schema_version;")
    done = {r["version"] for r in rows}

    applied: list[str] = []
    for path in sorted(Path(migrations_dir).glob("*.sql")):
        version = path.stem
        if version in done:
            continue
        await db.executescript(path.read_text(encoding="utf-8"))
        await db.execute(
            "INSERT INTO schema_version(version, applied_at) VALUES (?, ?);",
            (version, now_iso),
        )
        logger.info("applied migration %s", version)
        applied.append(version)
    return applied
