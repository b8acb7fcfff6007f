"""
Custom exceptions for FileDrive.

All exceptions inherit from DriveError and include proper HTTP status codes
and error details for consistent API error responses.
"""

from errno import ENOENT
from typing import Any


class DriveError(Exception):
    """Base exception for all FileDrive errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        self.message = message or self.message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# Authentication Errors
# =============================================================================


class AuthenticationError(DriveError):
    """Raised when a request cannot be authenticated."""

    status_code = 401
    error_code = "AUTHENTICATION_ERROR"
    message = "Authentication required"


class InvalidSignatureError(AuthenticationError):
    """Raised when a signed URL is missing, malformed, tampered with or expired."""

    error_code = "INVALID_SIGNATURE"
    message = "Access denied"

    def __init__(self, reason: str, path: str | None = None) -> None:
        super().__init__(details={"reason": reason, "path": path})
        self.reason = reason


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(DriveError):
    """Raised when input validation fails."""

    status_code = 422
    error_code = "VALIDATION_ERROR"
    message = "Validation failed"


class InvalidPathError(ValidationError):
    """Raised when a path is malformed or escapes the disk root."""

    error_code = "INVALID_PATH"
    message = "Invalid file path"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(
            message=f"Invalid file path '{path}': {reason}",
            details={"path": path, "reason": reason},
        )
        self.path = path
        self.reason = reason


class FileTooLargeError(ValidationError):
    """Raised when an uploaded file exceeds the size limit."""

    status_code = 413
    error_code = "FILE_TOO_LARGE"
    message = "File size exceeds maximum allowed"

    def __init__(self, size_mb: float, max_size_mb: int) -> None:
        super().__init__(
            message=f"File size ({size_mb:.2f} MB) exceeds maximum ({max_size_mb} MB)",
            details={
                "file_size_mb": size_mb,
                "max_size_mb": max_size_mb,
            },
        )


# =============================================================================
# Configuration Errors
# =============================================================================


class FeatureDisabledError(DriveError):
    """Raised when using a feature that is turned off for a disk."""

    status_code = 400
    error_code = "FEATURE_DISABLED"
    message = "Feature is disabled"

    def __init__(self, feature: str, disk: str) -> None:
        super().__init__(
            message=f"Cannot use '{feature}': serve_assets is disabled for disk '{disk}'",
            details={"feature": feature, "disk": disk},
        )


class DiskNotConfiguredError(DriveError):
    """Raised when a disk name is not present in the configuration."""

    status_code = 404
    error_code = "DISK_NOT_CONFIGURED"
    message = "Disk is not configured"

    def __init__(self, disk: str) -> None:
        super().__init__(
            message=f"Disk '{disk}' is not configured",
            details={"disk": disk},
        )


# =============================================================================
# Storage Errors
# =============================================================================


class StorageError(DriveError):
    """Raised when a storage operation fails."""

    status_code = 500
    error_code = "STORAGE_ERROR"
    message = "Storage operation failed"


class FileNotFoundError(StorageError):
    """Raised when a file is not found in storage."""

    status_code = 404
    error_code = "FILE_NOT_FOUND"
    message = "File not found in storage"

    errno = ENOENT
    code = "ENOENT"

    def __init__(self, path: str, operation: str = "open") -> None:
        super().__init__(
            message=f"ENOENT: no such file or directory, {operation} '{path}'",
            details={"path": path, "operation": operation},
        )
        self.path = path
        self.operation = operation


class StreamConsumedError(StorageError):
    """Raised when a single-use stream is read a second time."""

    error_code = "STREAM_CONSUMED"
    message = "Stream has already been consumed"

    def __init__(self, path: str | None = None) -> None:
        super().__init__(details={"path": path})
