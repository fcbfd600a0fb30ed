"""
Vistagram Backend — Cron Endpoint Schemas
===========================================

What:  Contracts for GET /api/cron/status and POST /api/cron/trigger.
"""

from typing import Dict

from pydantic import BaseModel


class JobState(BaseModel):
    running: bool
    scheduled: bool


class CronStatusResponse(BaseModel):
    """
    enabled/schedule echo configuration; jobs reflects what is actually
    registered; populating is True while a seeding run is in flight.
    """
    success: bool = True
    jobs: Dict[str, JobState]
    enabled: bool
    schedule: str
    populating: bool


class CronTriggerResponse(BaseModel):
    success: bool
    message: str
