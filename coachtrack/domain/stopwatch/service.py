from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Optional

from coachtrack.domain.common.errors import NotAuthenticated, PersistenceFailure, StaleSessionConflict
from coachtrack.domain.common.time import TzLike, date_str, midnight_after, reference_date
from coachtrack.domain.stopwatch.elapsed import elapsed_seconds, millis_between
from coachtrack.domain.stopwatch.models import (
    IDLE,
    ActiveSession,
    Rollover,
    StopwatchSnapshot,
)
from coachtrack.domain.stopwatch.ports import Clock, IdentityProvider, SessionGateway
from coachtrack.domain.stopwatch.totals import daily_total

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER = timedelta(hours=24)


class StopwatchService:
    """
    Study stopwatch of one student.

    The store is the source of truth: local state is only a mirror of the
    ActiveSession row and elapsed time is always recomputed from it. Every
    transition runs under one lock and changes local state only after the
    gateway calls succeeded.
    """

    def __init__(
        self,
        *,
        gateway: SessionGateway,
        identity: IdentityProvider,
        clock: Clock,
        tz: TzLike,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ) -> None:
        self._gateway = gateway
        self._identity = identity
        self._clock = clock
        self._tz = tz
        self._stale_after = stale_after

        self._lock = asyncio.Lock()
        self._session: Optional[ActiveSession] = None
        # reference date recorded when we last entered running or idle
        self._session_date: date = reference_date(clock.now(), tz)
        self._today_total = 0
        self.warning_active = False

    # ---- read side ----

    @property
    def state(self) -> str:
        return self._session.state if self._session is not None else IDLE

    @property
    def session(self) -> Optional[ActiveSession]:
        return self._session

    @property
    def session_date(self) -> date:
        return self._session_date

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def snapshot(self) -> StopwatchSnapshot:
        elapsed = 0
        if self._session is not None:
            elapsed = elapsed_seconds(self._session, self._clock.now())
        return StopwatchSnapshot(
            state_label=self.state,
            elapsed_seconds=elapsed,
            today_total_seconds=self._today_total,
            warning_active=self.warning_active,
        )

    def needs_rollover(self) -> bool:
        if self._session is None:
            return False
        return reference_date(self._clock.now(), self._tz) != self._session_date

    def set_warning(self, active: bool) -> None:
        self.warning_active = bool(active) and self._session is not None

    # ---- helpers ----

    def _student_id(self) -> int:
        user_id = self._identity.current_user_id()
        if user_id is None:
            raise NotAuthenticated("no signed-in user")
        return user_id

    def _is_stale(self, session: ActiveSession, now: datetime) -> bool:
        return now - session.start_time > self._stale_after

    def _enter_idle(self, now: datetime) -> None:
        self._session = None
        self._session_date = reference_date(now, self._tz)
        self.warning_active = False

    async def _refresh_total(self, student_id: int) -> None:
        today = reference_date(self._clock.now(), self._tz)
        try:
            self._today_total = await daily_total(self._gateway, student_id, today)
        except PersistenceFailure as e:
            # the transition itself is already committed; keep the old figure
            logger.warning("today's total not refreshed for student %s: %s", student_id, e)

    # ---- transitions ----

    async def rehydrate(self) -> StopwatchSnapshot:
        """
        Re-enter the state stored for the signed-in student.
        A row older than the staleness threshold is discarded and
        StaleSessionConflict is raised after the cleanup.
        """
        async with self._lock:
            student_id = self._student_id()
            row = await self._gateway.get_active_session(student_id)
            now = self._clock.now()

            if row is not None and self._is_stale(row, now):
                await self._gateway.delete_active_session(row.id)
                self._enter_idle(now)
                await self._refresh_total(student_id)
                age_hours = (now - row.start_time).total_seconds() / 3600
                logger.warning("discarded stale active session %s of student %s", row.id, student_id)
                raise StaleSessionConflict(row.id, age_hours)

            if row is None:
                self._enter_idle(now)
            else:
                self._session = row
                self._session_date = reference_date(row.start_time, self._tz)
            await self._refresh_total(student_id)
            return self.snapshot()

    async def start(self) -> StopwatchSnapshot:
        async with self._lock:
            if self._session is not None:
                return self.snapshot()

            student_id = self._student_id()
            now = self._clock.now()

            prior = await self._gateway.get_active_session(student_id)
            if prior is not None:
                if self._is_stale(prior, now):
                    logger.warning("discarding stale active session %s of student %s", prior.id, student_id)
                else:
                    logger.info("replacing active session %s of student %s", prior.id, student_id)
            await self._gateway.delete_active_sessions_for(student_id)
            session = await self._gateway.create_active_session(student_id, now)

            self._session = session
            self._session_date = reference_date(now, self._tz)
            self.warning_active = False
            logger.info("stopwatch started for student %s (session %s)", student_id, session.id)
            return self.snapshot()

    async def pause(self) -> StopwatchSnapshot:
        async with self._lock:
            session = self._session
            if session is None or session.is_paused:
                return self.snapshot()

            now = self._clock.now()
            self._session = await self._gateway.update_active_session(
                session.id, is_paused=True, last_pause_time=now
            )
            self.warning_active = False
            return self.snapshot()

    async def resume(self) -> StopwatchSnapshot:
        async with self._lock:
            session = self._session
            if session is None or not session.is_paused:
                return self.snapshot()

            now = self._clock.now()
            fields = {"is_paused": False, "last_pause_time": None}
            if session.last_pause_time is not None:
                paused_ms = max(0, millis_between(session.last_pause_time, now))
                fields["total_paused_time"] = session.total_paused_time + paused_ms
            else:
                logger.warning("session %s paused without a pause time; resuming as is", session.id)

            self._session = await self._gateway.update_active_session(session.id, **fields)
            return self.snapshot()

    async def stop(self) -> StopwatchSnapshot:
        async with self._lock:
            session = self._session
            if session is None:
                return self.snapshot()
            student_id = session.student_id

            now = self._clock.now()
            today = reference_date(now, self._tz)
            # a day boundary the monitor has not split yet
            while self._session is not None and self._session_date != today:
                await self._split(now)

            session = self._session
            elapsed = 0
            if session is not None:
                elapsed = elapsed_seconds(session, now)
                await self._gateway.finish_active_session(session.id, student_id, elapsed, date_str(today))

            self._enter_idle(now)
            logger.info("stopwatch stopped for student %s: %ss", student_id, elapsed)
            await self._refresh_total(student_id)
            return self.snapshot()

    async def rollover(self) -> Optional[Rollover]:
        """
        Split the running session at the midnight that ended the recorded
        date. The part before midnight goes to the previous date and a new
        session continues from midnight in the same state.
        """
        async with self._lock:
            session = self._session
            now = self._clock.now()
            if session is None or reference_date(now, self._tz) == self._session_date:
                return None

            result = await self._split(now)
            await self._refresh_total(session.student_id)
            return result

    async def _split(self, now: datetime) -> Optional[Rollover]:
        session = self._session
        previous = self._session_date
        boundary = min(midnight_after(previous, self._tz), now)
        elapsed = elapsed_seconds(session, now, until=boundary)

        pause_at = None
        if session.is_paused:
            pause_at = boundary
            if session.last_pause_time is not None and session.last_pause_time > boundary:
                pause_at = session.last_pause_time

        fresh = await self._gateway.split_active_session(
            session.id,
            session.student_id,
            elapsed,
            date_str(previous),
            boundary,
            is_paused=session.is_paused,
            last_pause_time=pause_at,
        )
        if fresh is None:
            logger.info("active session %s was closed elsewhere", session.id)
            self._enter_idle(now)
            return None

        self._session = fresh
        self._session_date = reference_date(boundary, self._tz)
        self.warning_active = False
        logger.info(
            "day rollover for student %s: %ss saved to %s",
            session.student_id,
            elapsed,
            date_str(previous),
        )
        return Rollover(session_date=date_str(previous), duration_seconds=elapsed)

    async def refresh_today_total(self) -> int:
        async with self._lock:
            await self._refresh_total(self._student_id())
            return self._today_total
