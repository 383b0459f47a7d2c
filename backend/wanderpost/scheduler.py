"""
Cron-driven trigger for the daily cycle.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

import structlog
from croniter import croniter

from wanderpost.core.cycle import CycleOutcome
from wanderpost.core.settings import Settings
from wanderpost.db import crud
from wanderpost.db.session import DatabaseManager

logger = structlog.get_logger(__name__)

SCHEDULE_KEY = "postGenerationSchedule"


async def resolve_schedule(db: DatabaseManager, settings: Settings) -> str:
    """Cron expression from the settings table when valid, else the environment value"""
    async with db.get_session() as session:
        stored = await crud.get_setting(session, SCHEDULE_KEY)
    if stored and croniter.is_valid(stored):
        return stored
    if stored:
        logger.warning("invalid_stored_schedule", value=stored, fallback=settings.POST_GENERATION_SCHEDULE)
    return settings.POST_GENERATION_SCHEDULE


class CycleScheduler:
    """
    Sleeps until the next fire time of the cron expression, runs one cycle, and
    repeats. Scheduled and manual runs share one lock, so at most one cycle is
    in flight at any time.
    """

    def __init__(
        self,
        runner: Callable[[], Awaitable[CycleOutcome]],
        schedule: str,
        timezone: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not croniter.is_valid(schedule):
            raise ValueError(f"Invalid cron expression: {schedule!r}")
        self.runner = runner
        self.schedule = schedule
        self.tz = ZoneInfo(timezone)
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self.last_outcome: Optional[CycleOutcome] = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_fire_time(self, now: Optional[datetime] = None) -> datetime:
        now = now or self._clock()
        return croniter(self.schedule, now).get_next(datetime)

    async def run_once(self) -> CycleOutcome:
        async with self._lock:
            outcome = await self.runner()
            self.last_outcome = outcome
            return outcome

    async def trigger(self) -> Optional[CycleOutcome]:
        """Run a cycle now unless one is already in flight (returns None then)"""
        if self.busy:
            logger.warning("cycle_trigger_rejected", reason="cycle already running")
            return None
        return await self.run_once()

    async def _loop(self) -> None:
        while True:
            now = self._clock()
            fire_at = self.next_fire_time(now)
            delay = max(0.0, (fire_at - now).total_seconds())
            logger.info("next_cycle_scheduled", fire_at=fire_at.isoformat(), delay_seconds=round(delay))
            await self._sleep(delay)
            try:
                await self.run_once()
            except Exception as e:
                logger.error("scheduled_cycle_crashed", error=str(e), exc_info=True)

    def start(self) -> None:
        if self.running:
            return
        logger.info("scheduler_started", schedule=self.schedule, timezone=str(self.tz))
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("scheduler_stopped")
