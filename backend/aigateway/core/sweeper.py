"""
Session Sweeper - Periodically deletes sessions idle past the expiry window.
"""

import asyncio
import logging
from typing import Optional

from .session_manager import DEFAULT_EXPIRY_HOURS, SessionManager

logger = logging.getLogger(__name__)


class SessionSweeper:
    """
    Background task running SessionManager.expire_sweep on an interval.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        interval_seconds: float = 3600.0,
        expiry_hours: int = DEFAULT_EXPIRY_HOURS,
        enabled: bool = True,
    ):
        self.session_manager = session_manager
        self.interval_seconds = interval_seconds
        self.expiry_hours = expiry_hours
        self.enabled = enabled
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> int:
        """Run one sweep. Errors are logged, never raised."""
        try:
            return await self.session_manager.expire_sweep(self.expiry_hours)
        except Exception as e:
            logger.error(f"Session sweep failed: {e}", exc_info=True)
            return 0

    async def _sweep_loop(self) -> None:
        logger.debug("Starting session sweeper")

        while self._running:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

        logger.debug("Stopped session sweeper")

    async def start(self) -> None:
        """Start the background sweep loop."""
        if not self.enabled:
            logger.info("Session cleanup disabled")
            return

        if self._running:
            logger.warning("Session sweeper already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(
            f"Session sweeper started (every {self.interval_seconds}s, "
            f"expiry {self.expiry_hours}h)"
        )

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
