from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Runs `func` every `interval_seconds` on the running loop.
    A run is awaited before the next sleep, so runs never overlap.
    Errors are logged and the loop keeps going; stop() ends scheduling.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        func: Callable[[], Awaitable[Any]],
        *,
        run_immediately: bool = False,
    ) -> None:
        self.name = name
        self._interval = interval_seconds
        self._func = func
        self._run_immediately = run_immediately
        self._stopped = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.create_task(self.run_forever(), name=self.name)

    async def run_once(self) -> None:
        try:
            await self._func()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("periodic task %s failed", self.name)

    async def run_forever(self) -> None:
        if self._run_immediately:
            await self.run_once()
        while not self._stopped:
            await asyncio.sleep(self._interval)
            if self._stopped:
                break
            await self.run_once()

    def stop(self) -> None:
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
