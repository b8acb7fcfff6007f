"""Pydantic models for API request/response schemas."""

from filedrive.models.common import (
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    StrictBaseModel,
)
from filedrive.models.files import MovedFile

__all__ = [
    # Common
    "StrictBaseModel",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    # Files
    "MovedFile",
]
