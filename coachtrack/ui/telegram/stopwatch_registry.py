from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Awaitable, Callable, Optional

from coachtrack.config import Settings
from coachtrack.domain.common.errors import PersistenceFailure
from coachtrack.domain.stopwatch.day_boundary import DayBoundaryMonitor
from coachtrack.domain.stopwatch.ports import Clock, SessionGateway
from coachtrack.domain.stopwatch.service import StopwatchService
from coachtrack.infra.identity import SessionIdentity
from coachtrack.infra.scheduler.periodic import PeriodicTask

logger = logging.getLogger(__name__)

# (user_id, kind, payload)
UserNotify = Callable[[int, str, Any], Awaitable[None]]


@dataclass
class _Entry:
    identity: SessionIdentity
    service: StopwatchService
    monitor: DayBoundaryMonitor
    tasks: list[PeriodicTask] = field(default_factory=list)
    listener: Optional[Callable[[Optional[int]], None]] = None


class StopwatchRegistry:
    """
    One stopwatch per Telegram user, created on first use and rehydrated from
    the store. Each stopwatch gets its own date and midnight checks, which
    stop when the user signs out.
    """

    def __init__(self, *, gateway: SessionGateway, clock: Clock, settings: Settings, notify: UserNotify) -> None:
        self._gateway = gateway
        self._clock = clock
        self._settings = settings
        self._notify = notify
        self._entries: dict[int, _Entry] = {}
        # first rehydration per user; concurrent callers await the same one
        self._loading: dict[int, asyncio.Task] = {}

    def __contains__(self, user_id: int) -> bool:
        return user_id in self._entries

    async def get(self, user_id: int) -> StopwatchService:
        """
        Stopwatch of `user_id`. The first call rehydrates it; a
        StaleSessionConflict from that rehydration is passed on and the
        stopwatch stays registered (idle). Callers arriving while the first
        rehydration runs wait for it and share its outcome.
        """
        loading = self._loading.get(user_id)
        if loading is None:
            entry = self._entries.get(user_id)
            if entry is not None:
                return entry.service
            loading = asyncio.ensure_future(self._load(user_id))
            self._loading[user_id] = loading
            loading.add_done_callback(lambda _: self._loading.pop(user_id, None))
        return await asyncio.shield(loading)

    async def _load(self, user_id: int) -> StopwatchService:
        entry = self._build(user_id)
        self._entries[user_id] = entry
        try:
            await entry.service.rehydrate()
        except PersistenceFailure:
            # never leave an unhydrated stopwatch around, it would look idle
            self._drop(user_id)
            raise
        finally:
            if user_id in self._entries:
                for task in entry.tasks:
                    task.start()
        return entry.service

    def sign_out(self, user_id: int) -> None:
        entry = self._entries.get(user_id)
        if entry is not None:
            entry.identity.sign_out()

    def shutdown(self) -> None:
        for user_id in list(self._entries):
            self._drop(user_id)

    def _build(self, user_id: int) -> _Entry:
        s = self._settings
        identity = SessionIdentity()
        identity.sign_in(user_id)

        service = StopwatchService(
            gateway=self._gateway,
            identity=identity,
            clock=self._clock,
            tz=s.tz,
            stale_after=timedelta(hours=s.stale_session_hours),
        )

        async def notify(kind: str, payload: Any) -> None:
            await self._notify(user_id, kind, payload)

        monitor = DayBoundaryMonitor(
            service,
            clock=self._clock,
            tz=s.tz,
            warning_minutes=s.midnight_warning_minutes,
            notify=notify,
        )
        entry = _Entry(
            identity=identity,
            service=service,
            monitor=monitor,
            tasks=[
                PeriodicTask(f"date-check:{user_id}", s.date_check_seconds, monitor.check_date, run_immediately=True),
                PeriodicTask(f"midnight-warning:{user_id}", s.warning_check_seconds, monitor.check_warning, run_immediately=True),
            ],
        )

        def on_identity(new_user_id: Optional[int]) -> None:
            if new_user_id != user_id:
                self._drop(user_id)

        entry.listener = on_identity
        identity.subscribe(on_identity)
        return entry

    def _drop(self, user_id: int) -> None:
        entry = self._entries.pop(user_id, None)
        if entry is None:
            return
        for task in entry.tasks:
            task.stop()
        if entry.listener is not None:
            entry.identity.unsubscribe(entry.listener)
        logger.info("stopwatch of user %s unloaded", user_id)
