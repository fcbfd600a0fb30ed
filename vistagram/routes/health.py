"""
Vistagram Backend — Health Check Routes
=========================================

What:  GET / (welcome) and GET /health (dependency status).
How:   SELECT 1 against the database, Gemini circuit state / list_models,
       and the seeding scheduler state from app.state.

Status levels:
    healthy:   database reachable and Gemini available
    degraded:  database reachable, Gemini unavailable or circuit open
               (seeding falls back to placeholder usernames/captions)
    unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from vistagram import __version__
from vistagram.schemas.common import HealthResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/", response_model=MessageResponse, summary="Welcome message")
async def root() -> MessageResponse:
    return MessageResponse(message="Vistagram API is running!")


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check(request: Request):
    db_status = "connected"
    gemini_status = "available"
    overall = "healthy"

    # ── Database ──────────────────────────────────────────────────────────
    try:
        from vistagram.database import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Gemini ────────────────────────────────────────────────────────────
    try:
        from vistagram.services.gemini_service import gemini_service
        if gemini_service.circuit_breaker.state == "open":
            gemini_status = "circuit_open"
        elif not await gemini_service.health_check():
            gemini_status = "unavailable"
    except Exception as e:
        gemini_status = "unavailable"
        logger.warning("Health check: Gemini unreachable: %s", str(e))
    if gemini_status != "available" and overall != "unhealthy":
        overall = "degraded"

    # ── Scheduler ─────────────────────────────────────────────────────────
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        scheduler_status = "idle"
    elif scheduler.is_running:
        scheduler_status = "populating"
    elif scheduler.jobs:
        scheduler_status = "scheduled"
    else:
        scheduler_status = "idle"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        gemini=gemini_status,
        scheduler=scheduler_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
