"""
Vistagram Backend — Scheduler Service Tests
=============================================

What:  Job registration, the overlap guard, and outcome reporting.
How:   A controllable seeding double stands in for the real job so each
       test decides when (and whether) a run finishes.

What we test:
    ✅ Disabled cron registers nothing; enabled registers exactly once
    ✅ A second run while one is in flight is skipped without work
    ✅ The in-flight flag is cleared after success and after failure
    ✅ Manual trigger propagates failures; scheduled runs report "failed"
    ✅ stop_job / stop_all_jobs
"""

import asyncio

import pytest

from vistagram.config import settings
from vistagram.services.scheduler_service import (
    COMPLETED,
    FAILED,
    POPULATE_JOB,
    SKIPPED,
    SchedulerService,
)
from vistagram.services.seeding_service import SeedReport


class GatedSeeding:
    """populate_database() blocks until release() is called."""

    def __init__(self, error=None):
        self.calls = 0
        self.error = error
        self.started = asyncio.Event()
        self._gate = asyncio.Event()

    def release(self):
        self._gate.set()

    async def populate_database(self):
        self.calls += 1
        self.started.set()
        await self._gate.wait()
        if self.error:
            raise self.error
        return SeedReport(users_created=1, posts_created=2, total_users=5, total_posts=10)


class TestOverlapGuard:

    @pytest.mark.asyncio
    async def test_concurrent_run_is_skipped(self):
        seeding = GatedSeeding()
        service = SchedulerService(seeding=seeding)

        first = asyncio.create_task(service.run_populate_database())
        await seeding.started.wait()
        assert service.is_running

        second = await service.run_populate_database()
        assert second == SKIPPED
        assert seeding.calls == 1

        seeding.release()
        assert await first == COMPLETED
        assert seeding.calls == 1
        assert service.is_running is False

    @pytest.mark.asyncio
    async def test_flag_cleared_after_failure(self):
        seeding = GatedSeeding(error=RuntimeError("db down"))
        seeding.release()
        service = SchedulerService(seeding=seeding)

        outcome = await service.run_populate_database()

        assert outcome == FAILED
        assert service.is_running is False

    @pytest.mark.asyncio
    async def test_manual_trigger_raises(self):
        seeding = GatedSeeding(error=RuntimeError("db down"))
        seeding.release()
        service = SchedulerService(seeding=seeding)

        with pytest.raises(RuntimeError, match="db down"):
            await service.trigger_populate_database()
        assert service.is_running is False

        # A later run is not blocked by the failed one
        seeding.error = None
        assert await service.trigger_populate_database() == COMPLETED

    @pytest.mark.asyncio
    async def test_real_seeding_run_completes(self, scheduler_service):
        assert await scheduler_service.run_populate_database() == COMPLETED


class TestRegistration:

    def test_disabled_registers_nothing(self, monkeypatch):
        scheduler_service = SchedulerService(seeding=GatedSeeding())
        monkeypatch.setattr(settings, "cron_enabled", False)

        assert scheduler_service.start_database_population() is False
        assert scheduler_service.jobs == {}
        assert scheduler_service.get_job_status() == {}

    @pytest.mark.asyncio
    async def test_enabled_registers_once(self, scheduler_service, monkeypatch):
        monkeypatch.setattr(settings, "cron_enabled", True)
        monkeypatch.setattr(settings, "cron_schedule", "0 12 * * *")

        assert scheduler_service.start_database_population() is True
        assert scheduler_service.start_database_population() is False

        assert list(scheduler_service.jobs) == [POPULATE_JOB]
        assert scheduler_service.get_job_status() == {
            POPULATE_JOB: {"running": False, "scheduled": True}
        }
        assert len(scheduler_service.scheduler.get_jobs()) == 1
        scheduler_service.stop_all_jobs()

    @pytest.mark.asyncio
    async def test_stop_job_unregisters(self, scheduler_service, monkeypatch):
        monkeypatch.setattr(settings, "cron_enabled", True)
        scheduler_service.start_database_population()

        scheduler_service.stop_job(POPULATE_JOB)
        scheduler_service.stop_job(POPULATE_JOB)

        assert scheduler_service.jobs == {}
        assert scheduler_service.scheduler.get_jobs() == []
        scheduler_service.stop_all_jobs()

    @pytest.mark.asyncio
    async def test_stop_all_allows_restart(self, scheduler_service, monkeypatch):
        monkeypatch.setattr(settings, "cron_enabled", True)
        scheduler_service.start_database_population()

        scheduler_service.stop_all_jobs()
        assert scheduler_service.jobs == {}

        assert scheduler_service.start_database_population() is True
        scheduler_service.stop_all_jobs()

    def test_invalid_schedule_raises(self, monkeypatch):
        scheduler_service = SchedulerService(seeding=GatedSeeding())
        monkeypatch.setattr(settings, "cron_enabled", True)
        monkeypatch.setattr(settings, "cron_schedule", "every day at noon")

        with pytest.raises(ValueError):
            scheduler_service.start_database_population()
        assert scheduler_service.jobs == {}
