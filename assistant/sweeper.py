"""
assistant/sweeper.py

Background task that expires idle sessions on a fixed interval, independent of request traffic.
Started and stopped by the application lifespan; tests call `SessionStore.sweep` directly.
"""

from __future__ import annotations

import asyncio
import logging

from assistant.session import SessionStore


logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 5 * 60


class SessionSweeper:
    def __init__(self, store: SessionStore, interval: float = SWEEP_INTERVAL_SECONDS):
        self.store = store
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="session-sweeper")
        logger.info("Session sweeper scheduled every %.0f seconds", self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Session sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.store.sweep()
            except Exception:
                logger.exception("Session sweep failed")
