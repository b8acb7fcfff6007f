"""
Storage driver factory.

Creates and caches the driver of each configured disk.
"""

from typing import TYPE_CHECKING

from fastapi import APIRouter, FastAPI

from filedrive.core.config import DiskConfig, Settings, get_settings
from filedrive.core.exceptions import DiskNotConfiguredError
from filedrive.core.logging import get_logger
from filedrive.services.storage.base import StorageDriver
from filedrive.services.storage.local import LocalDriver
from filedrive.services.storage.memory import MemoryDriver
from filedrive.services.storage.signer import Signer

if TYPE_CHECKING:
    from filedrive.api.file_server import LocalFileServer

logger = get_logger(__name__)

DRIVERS: dict[str, type[StorageDriver]] = {
    "local": LocalDriver,
    "memory": MemoryDriver,
}


def create_driver(
    name: str,
    config: DiskConfig,
    secret: str,
    **kwargs: int,
) -> StorageDriver:
    """
    Create a driver for a disk with custom configuration.

    Useful for testing or for disks that are not part of the settings.

    Args:
        name: Disk name.
        config: Disk configuration.
        secret: Secret used to sign URLs of the disk.
        **kwargs: signed_url_expires_in and chunk_size overrides.

    Returns:
        Configured StorageDriver instance.
    """
    try:
        driver_class = DRIVERS[config.driver]
    except KeyError:
        raise ValueError(f"Unknown storage driver: {config.driver}") from None

    return driver_class(name, config, Signer(secret, name), **kwargs)


class DriveManager:
    """Resolves disks by name and wires their file servers."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._drivers: dict[str, StorageDriver] = {}
        self._servers: dict[str, "LocalFileServer"] = {}

    @property
    def disks(self) -> dict[str, DiskConfig]:
        """Get the configured disks."""
        return self.settings.drive_disks

    def use(self, name: str | None = None) -> StorageDriver:
        """
        Get the driver of a disk.

        Args:
            name: Disk name. Uses the default disk if None.

        Returns:
            The cached driver for the disk.

        Raises:
            DiskNotConfiguredError: If the disk is not configured.
        """
        name = name or self.settings.drive_default_disk

        if name in self._drivers:
            return self._drivers[name]

        config = self.disks.get(name)
        if config is None:
            raise DiskNotConfiguredError(name)

        driver = create_driver(
            name,
            config,
            self.settings.app_key,
            signed_url_expires_in=self.settings.drive_signed_url_expires_in,
            chunk_size=self.settings.drive_stream_chunk_size,
        )
        self._drivers[name] = driver
        logger.info("disk_initialized", disk=name, driver=config.driver)
        return driver

    def register_file_servers(self, router: APIRouter | FastAPI) -> list[str]:
        """
        Register the file serving route of every disk with serve_assets on.

        Calling this again is a no-op for disks that are already registered.

        Returns:
            Names of the disks being served.
        """
        from filedrive.api.file_server import LocalFileServer

        for name, config in self.disks.items():
            if not config.serve_assets or name in self._servers:
                continue
            server = LocalFileServer(name, config, self.use(name), router)
            server.register_route()
            self._servers[name] = server

        return list(self._servers)


# Singleton instance
_drive_manager: DriveManager | None = None


def get_drive_manager(settings: Settings | None = None) -> DriveManager:
    """
    Get the process wide drive manager.

    Args:
        settings: Application settings. Uses default if None.
    """
    global _drive_manager

    if _drive_manager is not None:
        return _drive_manager

    if settings is None:
        settings = get_settings()

    _drive_manager = DriveManager(settings)
    return _drive_manager


def reset_drive_manager() -> None:
    """Reset the drive manager singleton (for testing)."""
    global _drive_manager
    _drive_manager = None
