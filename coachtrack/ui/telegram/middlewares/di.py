from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from coachtrack.config import Settings
from coachtrack.infra.clock.system_clock import SystemClock
from coachtrack.infra.db.repo.profiles_sqlite import ProfilesRepo
from coachtrack.infra.db.repo.sessions_sqlite import SessionsSqliteRepo
from coachtrack.ui.telegram.stopwatch_registry import StopwatchRegistry


class DIMiddleware(BaseMiddleware):
    """
    Inject dependencies to handlers.
    """

    def __init__(
        self,
        *,
        registry: StopwatchRegistry,
        sessions: SessionsSqliteRepo,
        profiles: ProfilesRepo,
        clock: SystemClock,
        settings: Settings,
    ):
        self._registry = registry
        self._sessions = sessions
        self._profiles = profiles
        self._clock = clock
        self._settings = settings

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        data["registry"] = self._registry
        data["sessions"] = self._sessions
        data["profiles"] = self._profiles
        data["clock"] = self._clock
        data["settings"] = self._settings
        return await handler(event, data)
