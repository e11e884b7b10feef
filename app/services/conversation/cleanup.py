import asyncio
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional

from app.config import settings
from app.logging import log_exception, setup_logger
from app.services.conversation.pause_store import PauseStore
from app.services.conversation.session_store import SessionStore


class CleanupScheduler:
    """
    Background housekeeping: sweeps expired pauses and evicts stale sessions.

    Each loop survives its own failures; ``stop`` cancels both.
    """

    def __init__(
        self,
        pauses: PauseStore,
        sessions: SessionStore,
        pause_interval: Optional[float] = None,
        session_interval: Optional[float] = None,
        session_max_age: Optional[timedelta] = None,
    ):
        self.logger = setup_logger(__name__)
        self.pauses = pauses
        self.sessions = sessions
        if pause_interval is None:
            pause_interval = settings.PAUSE_SWEEP_INTERVAL_SECONDS
        if session_interval is None:
            session_interval = settings.SESSION_SWEEP_INTERVAL_SECONDS
        if session_max_age is None:
            session_max_age = timedelta(hours=settings.SESSION_MAX_AGE_HOURS)
        self.pause_interval = pause_interval
        self.session_interval = session_interval
        self.session_max_age = session_max_age
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(
                self._loop("pause sweep", self.pause_interval, self.run_pause_sweep)
            ),
            asyncio.create_task(
                self._loop(
                    "session eviction", self.session_interval, self.run_session_eviction
                )
            ),
        ]
        self.logger.info("Cleanup scheduler started")

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self.logger.info("Cleanup scheduler stopped")

    async def run_pause_sweep(self) -> int:
        removed = await self.pauses.sweep_expired()
        if removed:
            self.logger.info(f"Removed {removed} expired pauses")
        return removed

    async def run_session_eviction(self) -> int:
        removed = self.sessions.evict_stale(self.session_max_age)
        if removed:
            self.logger.info(f"Evicted {removed} stale sessions")
        return removed

    async def _loop(
        self, name: str, interval: float, job: Callable[[], Awaitable[int]]
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log_exception(self.logger, f"Cleanup job '{name}' failed", e)
