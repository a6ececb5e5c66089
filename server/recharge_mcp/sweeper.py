import asyncio
import contextlib

import structlog

from .session_store import SessionStore

logger = structlog.get_logger(__name__)


class SessionSweeper:
    """Background task that drops expired sessions on a fixed interval."""

    def __init__(self, store: SessionStore, interval_seconds: float) -> None:
        self._store = store
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if not self._task:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            removed = self._store.sweep_expired()
            logger.debug("session_sweep", removed=removed, **self._store.stats())
