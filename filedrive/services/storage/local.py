"""
Local filesystem storage driver.

Implements StorageDriver for local file system storage.
Writes land in a sibling temporary file and are published with an atomic
replace, so readers never observe a partially written file.
"""

import asyncio
import errno
import shutil
import stat
import uuid
from collections.abc import AsyncIterator
from contextlib import suppress
from datetime import datetime, timezone
from pathlib import Path

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
from filedrive.services.storage.paths import PathResolver

logger = get_logger(__name__)

# Errors meaning "there is no file at this path" on read paths
_MISSING_ERRORS = (FileNotFoundError, NotADirectoryError, IsADirectoryError)


class LocalDriver(StorageDriver):
    """Disk-backed storage implementation."""

    driver_name = "local"

    def _create_resolver(self) -> PathResolver:
        root = Path(self.config.root or ".")
        # Ensure root exists before resolving it
        root.mkdir(parents=True, exist_ok=True)
        return PathResolver(root)

    @property
    def root(self) -> Path:
        """Get the resolved disk root."""
        assert self.resolver.root is not None
        return self.resolver.root

    def make_path(self, path: str) -> str:
        """Get the absolute filesystem path of a file."""
        return str(self.resolver.resolve(path))

    def _read_error(self, error: OSError, path: Path, operation: str) -> StorageError:
        if isinstance(error, _MISSING_ERRORS):
            return StorageFileNotFoundError(str(path), operation)
        return StorageError(
            message=f"Failed to {operation} file: {error.strerror or error}",
            details={"path": str(path), "disk": self.name},
        )

    def _write_error(self, error: OSError, path: Path, operation: str) -> StorageError:
        if isinstance(error, IsADirectoryError):
            return self._directory_error(path, operation)
        return StorageError(
            message=f"Failed to {operation} file: {error.strerror or error}",
            details={"path": str(path), "disk": self.name},
        )

    def _directory_error(self, path: Path, operation: str) -> StorageError:
        return StorageError(
            message=f"EISDIR: illegal operation on a directory, {operation} '{path}'",
            details={"path": str(path), "disk": self.name},
        )

    async def _stat_file(self, full_path: Path, operation: str) -> FileStats:
        try:
            result = await aiofiles.os.stat(full_path)
        except OSError as e:
            raise self._read_error(e, full_path, operation) from e

        if not stat.S_ISREG(result.st_mode):
            raise StorageFileNotFoundError(str(full_path), operation)

        return FileStats(
            size=result.st_size,
            modified=datetime.fromtimestamp(result.st_mtime, tz=timezone.utc),
        )

    @staticmethod
    def _temp_path(full_path: Path) -> Path:
        return full_path.with_name(f".{full_path.name}.{uuid.uuid4().hex[:12]}.tmp")

    async def _publish(self, chunks: AsyncIterator[bytes], full_path: Path) -> int:
        """Write chunks to a temp file next to the target, then swap it in."""
        temp_path = self._temp_path(full_path)
        written = 0
        published = False

        try:
            await aiofiles.os.makedirs(full_path.parent, exist_ok=True)
            async with aiofiles.open(temp_path, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
                    written += len(chunk)
            await aiofiles.os.replace(temp_path, full_path)
            published = True
        except OSError as e:
            raise self._write_error(e, full_path, "write") from e
        finally:
            if not published:
                with suppress(OSError):
                    await aiofiles.os.remove(temp_path)

        return written

    async def exists(self, path: str) -> bool:
        """Check if file exists."""
        full_path = self.resolver.resolve(path)
        return await aiofiles.os.path.isfile(full_path)

    async def get(self, path: str) -> bytes:
        """Read file from local storage."""
        full_path = self.resolver.resolve(path)

        try:
            async with aiofiles.open(full_path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise self._read_error(e, full_path, "open") from e

    async def get_stream(self, path: str) -> FileStream:
        """Stream file content in chunks."""
        full_path = self.resolver.resolve(path)
        await self._stat_file(full_path, "open")
        return FileStream(
            self._read_chunks(full_path), path=self.resolver.relative(full_path)
        )

    async def _read_chunks(self, full_path: Path) -> AsyncIterator[bytes]:
        try:
            async with aiofiles.open(full_path, "rb") as f:
                while chunk := await f.read(self.chunk_size):
                    yield chunk
        except OSError as e:
            raise self._read_error(e, full_path, "open") from e

    async def get_stats(self, path: str) -> FileStats:
        """Get file metadata."""
        return await self._stat_file(self.resolver.resolve(path), "stat")

    async def put(self, path: str, content: bytes | str) -> None:
        """Write file to local storage."""
        full_path = self.resolver.resolve(path, follow_symlinks=False)
        stream = FileStream.from_bytes(self._encode(content), self.chunk_size)

        size = await self._publish(aiter(stream), full_path)
        logger.debug("file_written", disk=self.name, path=str(full_path), size=size)

    async def put_stream(self, path: str, source: StreamSource) -> None:
        """Write a stream to local storage."""
        full_path = self.resolver.resolve(path, follow_symlinks=False)
        stream = FileStream.wrap(source, self.chunk_size)

        size = await self._publish(aiter(stream), full_path)
        logger.debug("stream_written", disk=self.name, path=str(full_path), size=size)

    async def put_file(
        self,
        file: UploadedFile,
        folder: str | None = None,
        name: str | None = None,
    ) -> MovedFile:
        """Move a staged upload under the disk root."""
        key = self._destination_key(file, folder, name)
        full_path = self.resolver.resolve(key, follow_symlinks=False)

        if await aiofiles.os.path.isdir(full_path):
            raise self._directory_error(full_path, "rename")

        try:
            await aiofiles.os.makedirs(full_path.parent, exist_ok=True)
            await aiofiles.os.replace(file.tmp_path, full_path)
        except FileNotFoundError as e:
            raise StorageFileNotFoundError(str(file.tmp_path), "rename") from e
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise self._write_error(e, full_path, "move") from e

            # Staging directory on another volume
            await self._copy_into(file.tmp_path, full_path)
            await self._unlink(file.tmp_path)

        file.state = "moved"
        logger.info("upload_moved", disk=self.name, key=key, path=str(full_path))
        return MovedFile(file_path=str(full_path), file_name=key)

    async def copy(self, source: str, destination: str) -> None:
        """Copy file within storage."""
        source_path = self.resolver.resolve(source)
        dest_path = self.resolver.resolve(destination, follow_symlinks=False)

        await self._stat_file(source_path, "copyfile")
        await self._copy_into(source_path, dest_path)
        logger.debug(
            "file_copied",
            disk=self.name,
            source=str(source_path),
            destination=str(dest_path),
        )

    async def _copy_into(self, source_path: Path, dest_path: Path) -> None:
        temp_path = self._temp_path(dest_path)
        published = False
        loop = asyncio.get_running_loop()

        try:
            await aiofiles.os.makedirs(dest_path.parent, exist_ok=True)
            await loop.run_in_executor(
                None, shutil.copy2, str(source_path), str(temp_path)
            )
            await aiofiles.os.replace(temp_path, dest_path)
            published = True
        except OSError as e:
            source_gone = not await aiofiles.os.path.exists(source_path)
            if isinstance(e, FileNotFoundError) and source_gone:
                raise StorageFileNotFoundError(str(source_path), "copyfile") from e
            raise self._write_error(e, dest_path, "copy") from e
        finally:
            if not published:
                with suppress(OSError):
                    await aiofiles.os.remove(temp_path)

    async def move(self, source: str, destination: str) -> None:
        """Move file within storage, preferring an atomic rename."""
        source_path = self.resolver.resolve(source, follow_symlinks=False)
        dest_path = self.resolver.resolve(destination, follow_symlinks=False)

        await self._stat_file(source_path, "rename")
        if source_path == dest_path:
            return

        try:
            await aiofiles.os.makedirs(dest_path.parent, exist_ok=True)
            await aiofiles.os.replace(source_path, dest_path)
        except OSError as e:
            if e.errno != errno.EXDEV:
                source_gone = not await aiofiles.os.path.exists(source_path)
                if isinstance(e, FileNotFoundError) and source_gone:
                    raise StorageFileNotFoundError(str(source_path), "rename") from e
                raise self._write_error(e, dest_path, "move") from e

            # Different volumes: the copy must land before the source goes
            await self._copy_into(source_path, dest_path)
            await self._unlink(source_path)

        logger.debug(
            "file_moved",
            disk=self.name,
            source=str(source_path),
            destination=str(dest_path),
        )

    async def _unlink(self, full_path: Path) -> bool:
        try:
            await aiofiles.os.remove(full_path)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            raise self._write_error(e, full_path, "unlink") from e
        return True

    async def delete(self, path: str) -> None:
        """Delete file from local storage, ignoring missing ones."""
        full_path = self.resolver.resolve(path, follow_symlinks=False)

        if await self._unlink(full_path):
            logger.debug("file_deleted", disk=self.name, path=str(full_path))
