from __future__ import annotations

import logging
from typing import Optional

from coachtrack.domain.stopwatch.ports import IdentityListener

logger = logging.getLogger(__name__)


class SessionIdentity:
    """
    Explicit identity holder handed to the stopwatch.
    Listeners are called with the new user id on sign-in and None on sign-out.
    """

    def __init__(self, user_id: Optional[int] = None) -> None:
        self._user_id = user_id
        self._listeners: list[IdentityListener] = []

    def current_user_id(self) -> Optional[int]:
        return self._user_id

    def subscribe(self, listener: IdentityListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: IdentityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def sign_in(self, user_id: int) -> None:
        if self._user_id == user_id:
            return
        self._user_id = user_id
        self._emit()

    def sign_out(self) -> None:
        if self._user_id is None:
            return
        logger.info("user %s signed out", self._user_id)
        self._user_id = None
        self._emit()

    def _emit(self) -> None:
        # copy: a listener may unsubscribe itself
        for listener in list(self._listeners):
            listener(self._user_id)
