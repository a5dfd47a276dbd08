from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from coachtrack.config import load_settings
from coachtrack.domain.common.errors import CoachtrackError
from coachtrack.domain.common.time import to_iso
from coachtrack.infra.clock.system_clock import SystemClock
from coachtrack.infra.db.connection import Database
from coachtrack.infra.db.repo.profiles_sqlite import ProfilesRepo
from coachtrack.infra.db.repo.sessions_sqlite import SessionsSqliteRepo
from coachtrack.infra.db.schema_version import apply_migrations
from coachtrack.ui.telegram.handlers.start import router as start_router
from coachtrack.ui.telegram.handlers.stopwatch import notification_text
from coachtrack.ui.telegram.handlers.stopwatch import router as stopwatch_router
from coachtrack.ui.telegram.handlers.students import router as students_router
from coachtrack.ui.telegram.middlewares.auth import ProfileMiddleware
from coachtrack.ui.telegram.middlewares.di import DIMiddleware
from coachtrack.ui.telegram.stopwatch_registry import StopwatchRegistry

logger = logging.getLogger(__name__)


def _abs_db_path(repo_root: Path, db_path_str: str) -> Path:
    p = Path(db_path_str)
    if not p.is_absolute():
        p = repo_root / p
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


async def restore_active_stopwatches(registry: StopwatchRegistry, sessions: SessionsSqliteRepo) -> int:
    """Load every stopwatch that was running before the restart so its day checks run."""
    restored = 0
    for student_id in await sessions.list_active_student_ids():
        try:
            await registry.get(student_id)
            restored += 1
        except CoachtrackError as e:
            logger.warning("could not restore stopwatch of %s: %s", student_id, e)
    return restored


async def main() -> None:
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    repo_root = Path(__file__).resolve().parents[3]  # .../coachtrack/ui/telegram/main.py -> repo root

    db_path = _abs_db_path(repo_root, settings.db_path)
    logger.info("DB_PATH: %s", db_path)

    db = Database(str(db_path))
    clock = SystemClock(settings.tz)

    await apply_migrations(db=db, now_iso=to_iso(clock.now()))

    sessions = SessionsSqliteRepo(db, clock)
    profiles = ProfilesRepo(db)

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher()

    async def notify(user_id: int, kind: str, payload: Any) -> None:
        await bot.send_message(chat_id=user_id, text=notification_text(kind, payload))

    registry = StopwatchRegistry(gateway=sessions, clock=clock, settings=settings, notify=notify)

    di = DIMiddleware(registry=registry, sessions=sessions, profiles=profiles, clock=clock, settings=settings)
    auth = ProfileMiddleware(profiles)
    dp.message.middleware(di)
    dp.callback_query.middleware(di)
    dp.message.middleware(auth)
    dp.callback_query.middleware(auth)

    # start first: it is the only route open to unregistered users
    dp.include_router(start_router)
    dp.include_router(stopwatch_router)
    dp.include_router(students_router)

    restored = await restore_active_stopwatches(registry, sessions)
    logger.info("restored %d active stopwatch(es)", restored)

    logger.info("Starting polling...")
    try:
        await dp.start_polling(bot)
    finally:
        registry.shutdown()
        await bot.session.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
