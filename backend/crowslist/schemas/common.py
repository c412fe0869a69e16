"""
Crowslist Backend — Shared Schemas
====================================

What:  Base classes and envelope models used by several route modules.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for models exchanged in camelCase.

    Accepts both `firstName` and `first_name` on input; FastAPI serializes
    responses by alias, so output keys are camelCase.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FormModel(CamelModel):
    """
    Base for request bodies coming from HTML forms.

    Forms submit untouched optional inputs as "" rather than omitting them.
    Blank strings are read as "not provided" so that an empty phone field
    stores NULL and an empty graduation year does not fail integer parsing.
    """

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class SuccessResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """
    What:  Error body returned by every global exception handler.

    Example:
        {
            "error": "not_found",
            "message": "Listing not found or unauthorized",
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    What:  Health check response for load balancers and monitoring.

    A backend that cannot reach its database cannot serve any page, so the
    database check decides healthy vs unhealthy.
    """
    status: str = Field(description="Overall service status: healthy or unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    backend: str = Field(description="Database backend in use: sqlite, postgresql")
    active_sessions: int = Field(description="Unexpired sessions held in the session store")
    uptime_seconds: float = Field(description="Seconds since service started")
