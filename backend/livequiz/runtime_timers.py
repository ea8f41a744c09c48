from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class SessionTimer:
    """Single timer slot for one session.

    Arming replaces whatever was pending, so a session never has more than one
    outstanding timer. The callback runs under the session lock; a timer that
    was replaced or cancelled while waiting for the lock does nothing.
    """

    def __init__(self, owner: str, lock: asyncio.Lock) -> None:
        self._owner = owner
        self._lock = lock
        self._task: asyncio.Task[None] | None = None
        self._key: str | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def key(self) -> str | None:
        return self._key if self.pending else None

    def cancel(self) -> bool:
        task = self._task
        self._task = None
        self._key = None
        if task is None or task.done() or task is asyncio.current_task():
            return False
        task.cancel()
        return True

    def arm(self, key: str, delay_ms: int, callback: TimerCallback) -> None:
        self.cancel()
        delay_s = max(0, delay_ms or 0) / 1000

        async def runner() -> None:
            try:
                await asyncio.sleep(delay_s)
            except asyncio.CancelledError:
                return
            async with self._lock:
                if self._task is not asyncio.current_task():
                    return
                self._task = None
                self._key = None
                try:
                    await callback()
                except Exception:
                    logger.exception("Timer %s failed for session %s", key, self._owner)

        self._key = key
        self._task = asyncio.create_task(runner(), name=f"{self._owner}:{key}")
