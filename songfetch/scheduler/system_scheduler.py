"""System scheduler for background maintenance tasks.

Runs the unclaimed-session sweep on a fixed interval for as long as the
application is up.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from songfetch.scheduler.session_sweep_task import session_sweep_task

if TYPE_CHECKING:
    from songfetch.config import SongfetchConfig
    from songfetch.sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)


class SystemScheduler:
    """Scheduler for system-level periodic tasks."""

    def __init__(
        self,
        config: "SongfetchConfig",
        registry: "SessionRegistry",
    ) -> None:
        """Initialize the system scheduler.

        Args:
            config: Application configuration.
            registry: Session registry to sweep.
        """
        self.config = config
        self.registry = registry
        self._running = False
        self._sweep_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

        logger.info("SystemScheduler initialized")

    async def start(self) -> None:
        """Start the periodic session sweep."""
        if self._running:
            logger.warning("SystemScheduler is already running")
            return

        self._running = True
        self._stop_event.clear()
        self._sweep_task = asyncio.create_task(self._run_sweep_loop())

        logger.info(
            "SystemScheduler started, session sweep every %.0f seconds",
            self.config.session_sweep_interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the system scheduler gracefully."""
        if not self._running:
            logger.warning("SystemScheduler is not running")
            return

        logger.info("Stopping SystemScheduler...")
        self._running = False
        self._stop_event.set()

        if self._sweep_task:
            try:
                await asyncio.wait_for(self._sweep_task, timeout=10.0)
            except asyncio.TimeoutError:
                logger.warning(
                    "SystemScheduler task did not stop gracefully, cancelling"
                )
                self._sweep_task.cancel()
                try:
                    await self._sweep_task
                except asyncio.CancelledError:
                    pass
            except asyncio.CancelledError:
                pass
            finally:
                self._sweep_task = None

        logger.info("SystemScheduler stopped")

    async def _run_sweep_loop(self) -> None:
        """Sweep, then wait for the interval or a stop signal."""
        logger.info("Session sweep loop started")

        while self._running:
            try:
                await session_sweep_task(self.registry, self.config)
            except Exception as e:
                logger.exception("Error in session sweep loop: %s", e)

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self.config.session_sweep_interval_seconds,
                )
                break
            except asyncio.TimeoutError:
                continue

        logger.info("Session sweep loop ended")

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is currently running."""
        return self._running
