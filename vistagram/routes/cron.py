"""
Vistagram Backend — Cron Route Handlers
=========================================

What:  GET /api/cron/status and POST /api/cron/trigger.
How:   Both read the SchedulerService that create_app() put on app.state.

Trigger outcomes:
    ran            → 200 {"success": true,  "message": "...triggered successfully"}
    already busy   → 200 {"success": true,  "message": "...already running, skipped"}
    seeding raised → 500 {"success": false, "message": <error text>}

When CRON_TRIGGER_TOKEN is configured, the trigger additionally requires a
matching X-Cron-Token header; unset, the endpoint is open.
"""

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse

from vistagram.config import settings
from vistagram.exceptions import AuthenticationError
from vistagram.schemas.common import ErrorResponse
from vistagram.schemas.cron import CronStatusResponse, CronTriggerResponse, JobState
from vistagram.services.scheduler_service import SKIPPED, SchedulerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Cron"])

TRIGGERED = "Database population triggered successfully"
ALREADY_RUNNING = "Database population already running, skipped"


def get_scheduler(request: Request) -> SchedulerService:
    return request.app.state.scheduler


async def require_cron_token(x_cron_token: Optional[str] = Header(default=None)) -> None:
    expected = settings.cron_trigger_token
    if not expected:
        return
    if not x_cron_token or not hmac.compare_digest(x_cron_token.encode(), expected.encode()):
        logger.warning("Cron trigger rejected: bad or missing X-Cron-Token")
        raise AuthenticationError(message="Invalid cron token", reason="cron_token")


@router.get(
    "/cron/status",
    response_model=CronStatusResponse,
    summary="Scheduled job status",
)
async def cron_status(
    scheduler: SchedulerService = Depends(get_scheduler),
) -> CronStatusResponse:
    return CronStatusResponse(
        jobs={name: JobState(**state) for name, state in scheduler.get_job_status().items()},
        enabled=settings.cron_enabled,
        schedule=settings.cron_schedule,
        populating=scheduler.is_running,
    )


@router.post(
    "/cron/trigger",
    response_model=CronTriggerResponse,
    responses={
        401: {"description": "X-Cron-Token missing or wrong", "model": ErrorResponse},
        500: {"description": "Population failed", "model": CronTriggerResponse},
    },
    summary="Run database population now",
    description="Runs synchronously; the response is sent when the run has finished.",
    dependencies=[Depends(require_cron_token)],
)
async def cron_trigger(
    scheduler: SchedulerService = Depends(get_scheduler),
):
    logger.info("Manual cron trigger requested via API")
    try:
        outcome = await scheduler.trigger_populate_database()
    except Exception as e:
        logger.error("Manual cron trigger failed: %s", str(e))
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": str(e) or type(e).__name__},
        )

    message = ALREADY_RUNNING if outcome == SKIPPED else TRIGGERED
    return CronTriggerResponse(success=True, message=message)
