"""
Vistagram Backend — Shared Pydantic Schemas
=============================================

What:  Base model and the response shapes shared by every router.
Why:   The web client expects camelCase JSON (accessToken, likesCount,
       createdAt) while Python code keeps snake_case attribute names.
How:   CamelModel sets a camelCase alias generator; FastAPI serializes
       response models by alias, and populate_by_name lets services build
       models with snake_case keyword arguments.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for API contracts: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    """Plain acknowledgement, e.g. {"message": "Logged out successfully"}."""
    message: str


class ErrorResponse(BaseModel):
    """
    What:  Error body produced by every exception handler.

    Fields:
        error: Human-readable message (what the web client displays)
        code: Machine-readable error code (e.g. "validation_error", "unauthorized")
        details: Optional extra context (e.g. which field failed validation)
        request_id: Correlation ID for tracing this error in server logs

    Example:
        {"error": "Invalid refresh token", "code": "unauthorized", "request_id": "1f2e3d4c"}
    """
    error: str = Field(description="Human-readable error description")
    code: str = Field(description="Machine-readable error code")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Returned by GET /health for monitoring and load balancer probes."""
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    gemini: str = Field(description="Gemini status: available, unavailable, circuit_open")
    scheduler: str = Field(description="Seeding scheduler: scheduled, idle, populating")
    uptime_seconds: float = Field(description="Seconds since service started")
