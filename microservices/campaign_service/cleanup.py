"""
Expired Draft Cleanup

Background loop that sweeps expired drafts on a fixed interval for the
lifetime of the service.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .models import CleanupResult

logger = logging.getLogger(__name__)


class DraftCleanupScheduler:
    """Runs CampaignService.cleanup_expired_drafts every interval_seconds"""

    def __init__(
        self,
        service,
        interval_seconds: float = 3600,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.service = service
        self.interval_seconds = interval_seconds
        self._sleep = sleep or asyncio.sleep
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Optional[CleanupResult]:
        """One sweep; failures are logged and the loop carries on"""
        try:
            result = await self.service.cleanup_expired_drafts()
            self.runs += 1
            return result
        except Exception as e:
            logger.error(f"Error in draft cleanup loop: {e}", exc_info=True)
            return None

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await self._sleep(self.interval_seconds)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Draft cleanup scheduled every {self.interval_seconds}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Draft cleanup stopped")


__all__ = ["DraftCleanupScheduler"]
