"""Storage disks backed by memory or the local filesystem."""

from filedrive.services.storage.base import (
    FileStats,
    FileStream,
    StorageDriver,
    UploadedFile,
)
from filedrive.services.storage.factory import (
    DriveManager,
    create_driver,
    get_drive_manager,
)
from filedrive.services.storage.local import LocalDriver
from filedrive.services.storage.memory import MemoryDriver
from filedrive.services.storage.paths import PathResolver
from filedrive.services.storage.signer import SignedURLToken, Signer

__all__ = [
    "StorageDriver",
    "FileStats",
    "FileStream",
    "UploadedFile",
    "MemoryDriver",
    "LocalDriver",
    "PathResolver",
    "Signer",
    "SignedURLToken",
    "DriveManager",
    "create_driver",
    "get_drive_manager",
]
