"""
Pydantic models for stored files.
"""

from typing import Literal

from pydantic import Field

from filedrive.models.common import StrictBaseModel


class MovedFile(StrictBaseModel):
    """Result of moving a staged upload onto a disk."""

    state: Literal["moved"] = "moved"
    file_path: str = Field(description="Absolute location of the file in the backend")
    file_name: str = Field(description="Disk key of the file, including its folder")
