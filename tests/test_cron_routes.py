"""
Vistagram Backend — Cron Route Tests
======================================

What:  GET /api/cron/status and POST /api/cron/trigger through the app,
       with the scheduler from conftest (stubbed LLM and media).

What we test:
    ✅ Status reflects configuration and registered jobs
    ✅ Trigger runs population synchronously and reports success
    ✅ Trigger while a run is in flight reports "skipped"
    ✅ Trigger failure → 500 {"success": false, "message": ...}
    ✅ Optional X-Cron-Token guard
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from vistagram.config import settings
from vistagram.models.post import Post
from vistagram.models.user import User
from vistagram.routes.cron import ALREADY_RUNNING, TRIGGERED
from vistagram.services.seeding_service import SeedReport


class TestCronStatus:

    @pytest.mark.asyncio
    async def test_status_defaults(self, test_client):
        response = await test_client.get("/api/cron/status")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "jobs": {},
            "enabled": False,
            "schedule": "0 12 * * *",
            "populating": False,
        }

    @pytest.mark.asyncio
    async def test_status_lists_registered_job(self, test_client, scheduler_service, monkeypatch):
        monkeypatch.setattr(settings, "cron_enabled", True)
        scheduler_service.start_database_population()

        body = (await test_client.get("/api/cron/status")).json()
        scheduler_service.stop_all_jobs()

        assert body["enabled"] is True
        assert body["jobs"] == {"populate": {"running": False, "scheduled": True}}


class TestCronTrigger:

    @pytest.mark.asyncio
    async def test_trigger_populates(self, test_client, session_factory):
        response = await test_client.post("/api/cron/trigger")

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": TRIGGERED}
        async with session_factory() as db:
            assert (await db.execute(select(func.count()).select_from(User))).scalar_one() == 5
            assert (await db.execute(select(func.count()).select_from(Post))).scalar_one() == 10

    @pytest.mark.asyncio
    async def test_trigger_while_running_is_skipped(self, test_client, scheduler_service):
        gate = asyncio.Event()

        async def slow_populate():
            await gate.wait()
            return SeedReport()

        scheduler_service.seeding.populate_database = AsyncMock(side_effect=slow_populate)
        background = asyncio.create_task(scheduler_service.run_populate_database())
        await asyncio.sleep(0)
        assert scheduler_service.is_running

        response = await test_client.post("/api/cron/trigger")
        status = (await test_client.get("/api/cron/status")).json()

        gate.set()
        await background

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": ALREADY_RUNNING}
        assert status["populating"] is True
        assert scheduler_service.seeding.populate_database.await_count == 1

    @pytest.mark.asyncio
    async def test_trigger_failure_is_500(self, test_client, scheduler_service):
        scheduler_service.seeding.populate_database = AsyncMock(side_effect=RuntimeError("database unavailable"))

        response = await test_client.post("/api/cron/trigger")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "database unavailable"}
        assert scheduler_service.is_running is False


class TestCronToken:

    @pytest.mark.asyncio
    async def test_token_required_when_configured(self, test_client, scheduler_service, monkeypatch):
        monkeypatch.setattr(settings, "cron_trigger_token", "s3cret")
        scheduler_service.seeding.populate_database = AsyncMock(return_value=SeedReport())

        missing = await test_client.post("/api/cron/trigger")
        wrong = await test_client.post("/api/cron/trigger", headers={"X-Cron-Token": "nope"})
        right = await test_client.post("/api/cron/trigger", headers={"X-Cron-Token": "s3cret"})

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert wrong.json()["error"] == "Invalid cron token"
        assert right.status_code == 200
        assert scheduler_service.seeding.populate_database.await_count == 1

    @pytest.mark.asyncio
    async def test_status_never_needs_token(self, test_client, monkeypatch):
        monkeypatch.setattr(settings, "cron_trigger_token", "s3cret")

        response = await test_client.get("/api/cron/status")

        assert response.status_code == 200
