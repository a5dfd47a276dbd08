from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from coachtrack.domain.stopwatch.models import ActiveSession, CompletedSession

IdentityListener = Callable[[Optional[int]], Any]


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime:
        """Current instant, timezone-aware."""
        ...


@runtime_checkable
class IdentityProvider(Protocol):
    """
    Who is using the stopwatch right now.
    Listeners receive the new user id (None after sign-out).
    """

    def current_user_id(self) -> Optional[int]: ...

    def subscribe(self, listener: IdentityListener) -> None: ...

    def unsubscribe(self, listener: IdentityListener) -> None: ...


@runtime_checkable
class SessionGateway(Protocol):
    """
    Persistence for active and completed sessions.
    Implementations raise PersistenceFailure on any storage error.
    """

    async def get_active_session(self, student_id: int) -> Optional[ActiveSession]: ...

    async def create_active_session(self, student_id: int, start_time: datetime) -> ActiveSession: ...

    async def update_active_session(self, session_id: str, **fields: Any) -> ActiveSession: ...

    async def finish_active_session(
        self, session_id: str, student_id: int, duration_seconds: int, session_date: str
    ) -> Optional[CompletedSession]:
        """Delete the row and append its duration atomically; None if the row was gone."""
        ...

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
        """Finish the row and open its continuation atomically; None if the row was gone."""
        ...

    async def delete_active_session(self, session_id: str) -> None: ...

    async def delete_active_sessions_for(self, student_id: int) -> int: ...

    async def append_completed_session(
        self, student_id: int, duration_seconds: int, session_date: str
    ) -> CompletedSession: ...

    async def sum_completed_sessions(self, student_id: int, session_date: str) -> int: ...
