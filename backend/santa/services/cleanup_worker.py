"""Retention cleanup background worker.

asyncio background task started and stopped by the FastAPI lifespan.
Runs a cleanup pass on a configurable interval (hourly by default).
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from santa.models.base import utcnow
from santa.services.retention_cleanup import CleanupResult, run_all_cleanups

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60 * 60
DEFAULT_RETENTION = timedelta(days=365)


class CleanupWorker:
    """Background worker that periodically purges expired and old rows.

    Lifecycle:
    - start() creates an asyncio task that runs the cleanup loop.
    - stop() cancels the task and waits for graceful shutdown.
    - run_once() executes a single pass (for testing).

    Args:
        session_factory: Async session factory for DB access.
        interval_seconds: Seconds between cleanup passes.
        retention: Age after which games are deleted.
        clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._interval_seconds = interval_seconds
        self._retention = retention
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._last_run_at: datetime | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the background task is currently active."""
        return self._running and self._task is not None and not self._task.done()

    @property
    def last_run_at(self) -> datetime | None:
        """Timestamp of the most recent completed pass."""
        return self._last_run_at

    def start(self) -> None:
        """Start the background cleanup loop.

        Creates an asyncio task. No-op if already running.
        Must be called from an async context (running event loop).
        """
        if self.is_running:
            logger.warning("Cleanup worker already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Cleanup worker started (interval=%ds)", self._interval_seconds)

    async def stop(self) -> None:
        """Stop the background cleanup loop and wait for it to finish."""
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Cleanup worker stopped")

    async def run_once(self) -> CleanupResult:
        """Execute a single cleanup pass.

        Returns:
            CleanupResult with deletion counts.
        """
        async with self._session_factory() as db:
            result = await run_all_cleanups(
                db, now=self._clock(), retention=self._retention
            )
        self._last_run_at = result.finished_at
        return result

    async def _run_loop(self) -> None:
        """Background loop: run_once -> sleep -> repeat."""
        try:
            while self._running:
                try:
                    result = await self.run_once()
                    logger.info(
                        "Cleanup pass: %d verifications, %d sessions, %d games deleted",
                        result.expired_verifications,
                        result.expired_sessions,
                        result.old_games,
                    )
                except Exception:  # noqa: BLE001
                    logger.exception("Error in cleanup pass")
                await asyncio.sleep(self._interval_seconds)
        except asyncio.CancelledError:
            logger.debug("Cleanup loop cancelled")
            raise
