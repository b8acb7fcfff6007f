"""
FastAPI dependencies.
"""

from typing import Annotated

from fastapi import Depends, Request

from filedrive.core.config import Settings
from filedrive.services.storage.factory import DriveManager


def get_drive(request: Request) -> DriveManager:
    """Get the drive manager attached to the application."""
    return request.app.state.drive


def get_app_settings(request: Request) -> Settings:
    """Get the settings the application was created with."""
    return request.app.state.settings


Drive = Annotated[DriveManager, Depends(get_drive)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
