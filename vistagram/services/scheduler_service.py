"""
Vistagram Backend — Scheduler Service
=======================================

What:  Owns the recurring database-population job and its overlap guard.
How:   APScheduler's AsyncIOScheduler fires a CronTrigger (UTC) on the app's
       event loop; the manual trigger endpoint calls the same entry point.
Who:   Built once by create_app() and stored on app.state.scheduler; the
       lifespan starts and stops it, routes/cron.py reads and triggers it.

State:
    jobs        name → APScheduler Job; key presence = "already scheduled"
    is_running  True while a population run is in flight

Overlap guard:
    run_populate_database() checks and sets is_running before its first
    await, so on a single event loop the check-and-set cannot interleave
    with another run. The flag is always cleared in `finally`.
"""

import logging
import time
from typing import Any, Dict, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from vistagram.config import Settings, settings as default_settings
from vistagram.services.seeding_service import SeedingService

logger = logging.getLogger(__name__)

POPULATE_JOB = "populate"

COMPLETED = "completed"
SKIPPED = "skipped"
FAILED = "failed"


class SchedulerService:
    """
    What:      Registers the populate cron job and runs population with an
               overlap guard.
    Lifecycle: Created by create_app(); start_database_population() on
               startup, stop_all_jobs() on shutdown.
    """

    def __init__(
        self,
        seeding: Optional[SeedingService] = None,
        config: Optional[Settings] = None,
    ):
        self.seeding = seeding or SeedingService()
        self.config = config or default_settings
        self.jobs: Dict[str, Any] = {}
        self.is_running = False
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def scheduler(self) -> AsyncIOScheduler:
        # Created lazily: AsyncIOScheduler binds to the running loop on start()
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone="UTC")
        return self._scheduler

    # ── Registration ──────────────────────────────────────────────────────

    def start_database_population(self) -> bool:
        """
        Register the cron job if enabled and not already registered.

        Returns:
            True when a job was registered by this call.

        Raises:
            ValueError: CRON_SCHEDULE is not a valid crontab expression
        """
        if not self.config.cron_enabled:
            logger.info("Cron jobs disabled via CRON_ENABLED")
            return False

        if POPULATE_JOB in self.jobs:
            logger.info("Database population cron job already scheduled")
            return False

        schedule = self.config.cron_schedule
        trigger = CronTrigger.from_crontab(schedule, timezone="UTC")

        logger.info("Starting database population cron job: %s (UTC)", schedule)
        job = self.scheduler.add_job(
            self.run_populate_database,
            trigger=trigger,
            id=POPULATE_JOB,
            name="Database population",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )
        if not self.scheduler.running:
            self.scheduler.start()

        self.jobs[POPULATE_JOB] = job
        logger.info("Database population cron job scheduled, next run at %s", job.next_run_time)
        return True

    # ── Execution ─────────────────────────────────────────────────────────

    async def run_populate_database(self, raise_errors: bool = False) -> str:
        """
        One guarded population run.

        Returns:
            "skipped" when a run is already in flight, "completed" on success,
            "failed" on error when raise_errors is False.

        Raises:
            Whatever the seeding job raised, when raise_errors is True.
        """
        if self.is_running:
            logger.warning("Database population already running, skipping")
            return SKIPPED

        self.is_running = True
        start = time.monotonic()
        try:
            logger.info("Starting database population run")
            report = await self.seeding.populate_database()
            logger.info(
                "Database population completed in %.0fms (users +%d, posts +%d)",
                (time.monotonic() - start) * 1000,
                report.users_created,
                report.posts_created,
            )
            return COMPLETED
        except Exception as e:
            logger.error(
                "Database population failed after %.0fms: %s",
                (time.monotonic() - start) * 1000,
                str(e),
                exc_info=True,
            )
            if raise_errors:
                raise
            return FAILED
        finally:
            self.is_running = False

    async def trigger_populate_database(self) -> str:
        """Manual run; failures propagate to the caller."""
        logger.info("Manually triggering database population")
        return await self.run_populate_database(raise_errors=True)

    # ── Introspection / teardown ──────────────────────────────────────────

    def get_job_status(self) -> Dict[str, Dict[str, bool]]:
        status = {}
        for name, job in self.jobs.items():
            status[name] = {
                "running": self.is_running if name == POPULATE_JOB else False,
                "scheduled": job.next_run_time is not None,
            }
        return status

    def stop_job(self, name: str) -> None:
        job = self.jobs.pop(name, None)
        if job is None:
            return
        try:
            job.remove()
        except JobLookupError:
            logger.debug("Job %s was already removed from the scheduler", name)
        logger.info("Stopped cron job: %s", name)

    def stop_all_jobs(self) -> None:
        for name in list(self.jobs):
            self.stop_job(name)
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler shut down")
        self._scheduler = None
