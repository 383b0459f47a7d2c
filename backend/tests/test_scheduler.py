import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from wanderpost.core.cycle import CycleOutcome
from wanderpost.db import crud
from wanderpost.scheduler import SCHEDULE_KEY, CycleScheduler, resolve_schedule

BELGRADE = ZoneInfo("Europe/Belgrade")


def outcome(kind="stayed"):
    return CycleOutcome(kind=kind, cycle_id="abc123")


class TestNextFireTime:
    def test_daily_schedule_before_and_after_fire_hour(self):
        scheduler = CycleScheduler(lambda: None, "0 8 * * *", "Europe/Belgrade")

        early = datetime(2024, 5, 8, 6, 30, tzinfo=BELGRADE)
        late = datetime(2024, 5, 8, 9, 0, tzinfo=BELGRADE)

        assert scheduler.next_fire_time(early) == datetime(2024, 5, 8, 8, 0, tzinfo=BELGRADE)
        assert scheduler.next_fire_time(late) == datetime(2024, 5, 9, 8, 0, tzinfo=BELGRADE)

    def test_invalid_schedule_is_rejected(self):
        with pytest.raises(ValueError):
            CycleScheduler(lambda: None, "at dawn")


class TestRuns:
    """Manual triggers and the single-flight lock."""

    @pytest.mark.asyncio
    async def test_run_once_records_outcome(self):
        async def runner():
            return outcome("moved")

        scheduler = CycleScheduler(runner, "0 8 * * *")

        result = await scheduler.run_once()

        assert result.kind == "moved"
        assert scheduler.last_outcome is result
        assert scheduler.busy is False

    @pytest.mark.asyncio
    async def test_trigger_is_rejected_while_cycle_in_flight(self):
        release = asyncio.Event()
        started = asyncio.Event()

        async def runner():
            started.set()
            await release.wait()
            return outcome()

        scheduler = CycleScheduler(runner, "0 8 * * *")
        first = asyncio.create_task(scheduler.trigger())
        await started.wait()

        assert scheduler.busy is True
        assert await scheduler.trigger() is None

        release.set()
        assert (await first).kind == "stayed"
        assert scheduler.busy is False

    @pytest.mark.asyncio
    async def test_loop_sleeps_until_fire_time_then_runs(self):
        runs = []
        delays = []
        now = datetime(2024, 5, 8, 7, 0, tzinfo=BELGRADE)

        async def runner():
            runs.append(True)
            return outcome()

        async def fake_sleep(seconds):
            delays.append(seconds)
            if len(delays) > 1:
                raise asyncio.CancelledError()

        scheduler = CycleScheduler(runner, "0 8 * * *", "Europe/Belgrade", clock=lambda: now, sleep=fake_sleep)
        scheduler.start()
        assert scheduler.running is True

        with pytest.raises(asyncio.CancelledError):
            await scheduler._task

        assert delays[0] == 3600
        assert len(runs) == 1

    @pytest.mark.asyncio
    async def test_loop_survives_a_crashing_cycle(self):
        calls = []

        async def runner():
            calls.append(True)
            raise RuntimeError("boom")

        async def fake_sleep(seconds):
            if len(calls) >= 2:
                raise asyncio.CancelledError()

        scheduler = CycleScheduler(runner, "* * * * *", sleep=fake_sleep)
        scheduler.start()

        with pytest.raises(asyncio.CancelledError):
            await scheduler._task

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_stop_cancels_the_loop(self):
        async def runner():
            return outcome()

        scheduler = CycleScheduler(runner, "0 8 * * *")
        scheduler.start()
        await asyncio.sleep(0)

        await scheduler.stop()

        assert scheduler.running is False


class TestStoredSchedule:
    """The cron expression kept in the settings table."""

    @pytest.mark.asyncio
    async def test_valid_stored_schedule_wins(self, db, settings):
        async with db.transaction() as session:
            await crud.set_setting(session, SCHEDULE_KEY, "30 7 * * *")

        assert await resolve_schedule(db, settings) == "30 7 * * *"

    @pytest.mark.asyncio
    async def test_invalid_stored_schedule_falls_back(self, db, settings):
        async with db.transaction() as session:
            await crud.set_setting(session, SCHEDULE_KEY, "every morning")

        assert await resolve_schedule(db, settings) == settings.POST_GENERATION_SCHEDULE

    @pytest.mark.asyncio
    async def test_missing_row_uses_environment(self, db, settings):
        custom = settings.model_copy(update={"POST_GENERATION_SCHEDULE": "0 9 * * 1-5"})

        assert await resolve_schedule(db, custom) == "0 9 * * 1-5"
