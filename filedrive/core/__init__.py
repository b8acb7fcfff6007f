"""Core module - Configuration, logging, and exceptions."""

from filedrive.core.config import DiskConfig, Settings, get_settings
from filedrive.core.exceptions import (
    AuthenticationError,
    DiskNotConfiguredError,
    DriveError,
    FeatureDisabledError,
    FileNotFoundError,
    FileTooLargeError,
    InvalidPathError,
    InvalidSignatureError,
    StorageError,
    StreamConsumedError,
    ValidationError,
)

__all__ = [
    "DiskConfig",
    "Settings",
    "get_settings",
    "DriveError",
    "AuthenticationError",
    "InvalidSignatureError",
    "ValidationError",
    "InvalidPathError",
    "FileTooLargeError",
    "FeatureDisabledError",
    "DiskNotConfiguredError",
    "StorageError",
    "FileNotFoundError",
    "StreamConsumedError",
]
