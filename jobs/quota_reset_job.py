"""
Monthly usage reset.

Runs on its own asyncio task, independent of request traffic. A failed run is
logged and waits for the next scheduled tick; it is never retried early.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from croniter import croniter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crud.usage_record import UsageRepository

logger = logging.getLogger(__name__)

# Midnight UTC on the first day of every month
DEFAULT_SCHEDULE = "0 0 1 * *"


class QuotaResetJob:

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], schedule: str = DEFAULT_SCHEDULE):
        if not croniter.is_valid(schedule):
            raise ValueError(f"Invalid cron expression '{schedule}'")
        self.session_factory = session_factory
        self.schedule = schedule
        self._task: Optional[asyncio.Task] = None

    def next_run(self, now: Optional[datetime] = None) -> datetime:
        now = now or datetime.now(timezone.utc)
        return croniter(self.schedule, now).get_next(datetime)

    async def run_once(self) -> Optional[int]:
        """
        Reset every usage counter to 0.

        Returns:
            Number of records reset, or None when the run failed
        """
        try:
            async with self.session_factory() as session:
                count = await UsageRepository(session).reset_all_usage()
        except Exception as e:
            logger.error(f"Error resetting usage counts: {e}", exc_info=True)
            return None
        logger.info(f"Usage counts have been reset ({count} records)")
        return count

    async def run_forever(self) -> None:
        while True:
            now = datetime.now(timezone.utc)
            next_run = self.next_run(now)
            logger.info(f"Next usage reset scheduled for {next_run.isoformat()}")
            await asyncio.sleep((next_run - now).total_seconds())
            await self.run_once()

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="quota-reset")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
