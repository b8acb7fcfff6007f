"""
Common Pydantic models shared by API responses.
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class StrictBaseModel(BaseModel):
    """Base model rejecting unknown fields."""

    model_config = ConfigDict(extra="forbid")


class ErrorDetail(StrictBaseModel):
    """Error payload."""

    code: str = Field(description="Machine readable error code")
    message: str = Field(description="Human readable message")
    details: dict[str, Any] | None = Field(default=None)
    path: str | None = Field(default=None, description="Request path")


class ErrorResponse(StrictBaseModel):
    """Error envelope returned by the API."""

    error: ErrorDetail


class HealthResponse(StrictBaseModel):
    """Health check response."""

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    disks: dict[str, str] = Field(
        default_factory=dict, description="Driver name per configured disk"
    )
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
