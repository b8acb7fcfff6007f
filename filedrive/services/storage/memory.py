"""
In-memory storage driver.

Implements StorageDriver on top of a dict. Contents live for the lifetime of
the process only; used for tests and ephemeral disks.
"""

import posixpath
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, timezone

import aiofiles
import aiofiles.os

from filedrive.core.exceptions import FileNotFoundError as StorageFileNotFoundError
from filedrive.core.exceptions import StorageError
from filedrive.core.logging import get_logger
from filedrive.models.files import MovedFile
from filedrive.services.storage.base import (
    FileStats,
    FileStream,
    StorageDriver,
    StreamSource,
    UploadedFile,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class _MemoryFile:
    content: bytes
    modified: datetime


class MemoryDriver(StorageDriver):
    """Volatile in-process storage implementation."""

    driver_name = "memory"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._files: dict[str, _MemoryFile] = {}

    def make_path(self, path: str) -> str:
        """Get the virtual absolute path of a key."""
        return posixpath.join(self.config.root or "/", self.normalize(path))

    def _entry(self, key: str, operation: str) -> _MemoryFile:
        entry = self._files.get(key)
        if entry is None:
            raise StorageFileNotFoundError(self.make_path(key), operation)
        return entry

    def _is_directory(self, key: str) -> bool:
        prefix = f"{key}/"
        return any(existing.startswith(prefix) for existing in self._files)

    def _check_writable(self, key: str) -> None:
        """Reject writes the local driver would reject too."""
        parent = posixpath.dirname(key)
        while parent:
            if parent in self._files:
                raise StorageError(
                    message=f"ENOTDIR: not a directory, open '{self.make_path(key)}'",
                    details={"key": key, "disk": self.name},
                )
            parent = posixpath.dirname(parent)

        if self._is_directory(key):
            raise StorageError(
                message=f"EISDIR: illegal operation on a directory, open '{self.make_path(key)}'",
                details={"key": key, "disk": self.name},
            )

    def _store(self, key: str, content: bytes) -> None:
        self._check_writable(key)
        self._files[key] = _MemoryFile(
            content=content, modified=datetime.now(timezone.utc)
        )

    async def exists(self, path: str) -> bool:
        """Check if a file exists."""
        return self.normalize(path) in self._files

    async def get(self, path: str) -> bytes:
        """Read file content."""
        return self._entry(self.normalize(path), "open").content

    async def get_stream(self, path: str) -> FileStream:
        """Stream a snapshot of the content at call time."""
        key = self.normalize(path)
        entry = self._entry(key, "open")
        return FileStream.from_bytes(entry.content, self.chunk_size, path=key)

    async def get_stats(self, path: str) -> FileStats:
        """Get file metadata."""
        entry = self._entry(self.normalize(path), "stat")
        return FileStats(size=len(entry.content), modified=entry.modified)

    async def put(self, path: str, content: bytes | str) -> None:
        """Write file content."""
        key = self.normalize(path)
        data = self._encode(content)
        self._store(key, data)
        logger.debug("file_written", disk=self.name, key=key, size=len(data))

    async def put_stream(self, path: str, source: StreamSource) -> None:
        """Buffer the whole stream, then publish it in one step."""
        key = self.normalize(path)
        stream = FileStream.wrap(source, self.chunk_size)
        data = await stream.read()
        self._store(key, data)
        logger.debug("stream_written", disk=self.name, key=key, size=len(data))

    async def put_file(
        self,
        file: UploadedFile,
        folder: str | None = None,
        name: str | None = None,
    ) -> MovedFile:
        """Load a staged upload into memory and remove the temporary file."""
        key = self._destination_key(file, folder, name)

        try:
            async with aiofiles.open(file.tmp_path, "rb") as f:
                data = await f.read()
        except FileNotFoundError as e:
            raise StorageFileNotFoundError(str(file.tmp_path), "open") from e
        except OSError as e:
            raise StorageError(
                message=f"Failed to read staged upload: {e}",
                details={"tmp_path": str(file.tmp_path), "disk": self.name},
            ) from e

        self._store(key, data)

        with suppress(FileNotFoundError):
            await aiofiles.os.remove(file.tmp_path)

        file.state = "moved"
        logger.info("upload_moved", disk=self.name, key=key, size=len(data))
        return MovedFile(file_path=self.make_path(key), file_name=key)

    async def copy(self, source: str, destination: str) -> None:
        """Copy a file within memory."""
        source_key = self.normalize(source)
        destination_key = self.normalize(destination)

        entry = self._entry(source_key, "copyfile")
        self._store(destination_key, entry.content)
        logger.debug(
            "file_copied",
            disk=self.name,
            source=source_key,
            destination=destination_key,
        )

    async def move(self, source: str, destination: str) -> None:
        """Move a file within memory."""
        source_key = self.normalize(source)
        destination_key = self.normalize(destination)

        entry = self._entry(source_key, "rename")
        if source_key == destination_key:
            return

        self._store(destination_key, entry.content)
        self._files.pop(source_key, None)
        logger.debug(
            "file_moved",
            disk=self.name,
            source=source_key,
            destination=destination_key,
        )

    async def delete(self, path: str) -> None:
        """Delete a file, ignoring missing ones."""
        key = self.normalize(path)

        if key not in self._files and self._is_directory(key):
            raise StorageError(
                message=f"EISDIR: illegal operation on a directory, unlink '{self.make_path(key)}'",
                details={"key": key, "disk": self.name},
            )

        if self._files.pop(key, None) is not None:
            logger.debug("file_deleted", disk=self.name, key=key)
