from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from coachtrack.domain.common.time import TzLike, minutes_until_midnight
from coachtrack.domain.stopwatch.models import RUNNING, Rollover
from coachtrack.domain.stopwatch.ports import Clock
from coachtrack.domain.stopwatch.service import StopwatchService

logger = logging.getLogger(__name__)

ROLLOVER = "rollover"
MIDNIGHT_WARNING = "midnight_warning"

Notify = Callable[[str, Any], Awaitable[None]]


class DayBoundaryMonitor:
    """
    Periodic checks around the reference-timezone midnight.
    - check_date: split the session when the calendar date changed
    - check_warning: raise a warning shortly before midnight while running
    Both skip when the stopwatch is in the middle of a transition.
    """

    def __init__(
        self,
        service: StopwatchService,
        *,
        clock: Clock,
        tz: TzLike,
        warning_minutes: int = 60,
        notify: Optional[Notify] = None,
    ) -> None:
        self._service = service
        self._clock = clock
        self._tz = tz
        self._warning_minutes = warning_minutes
        self._notify = notify

    async def check_date(self) -> Optional[Rollover]:
        if self._service.busy:
            logger.debug("date check skipped, stopwatch busy")
            return None
        if not self._service.needs_rollover():
            return None

        result = await self._service.rollover()
        if result is not None and self._notify is not None:
            await self._notify(ROLLOVER, result)
        return result

    async def check_warning(self) -> bool:
        if self._service.busy:
            logger.debug("warning check skipped, stopwatch busy")
            return self._service.warning_active

        remaining = minutes_until_midnight(self._clock.now(), self._tz)
        active = self._service.state == RUNNING and remaining <= self._warning_minutes
        was_active = self._service.warning_active
        self._service.set_warning(active)

        if active and not was_active and self._notify is not None:
            await self._notify(MIDNIGHT_WARNING, remaining)
        return active
