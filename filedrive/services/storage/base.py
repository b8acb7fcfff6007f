"""
Abstract base class for storage drivers.

Provides a consistent interface for both in-memory and local filesystem disks.
Callers depend only on StorageDriver; URL generation is shared by all drivers.
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, AsyncIterable, AsyncIterator, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, BinaryIO, Literal, Union
from urllib.parse import quote

from filedrive.core.config import DiskConfig
from filedrive.core.exceptions import FeatureDisabledError, StreamConsumedError
from filedrive.models.files import MovedFile
from filedrive.services.storage.paths import PathResolver
from filedrive.services.storage.signer import Signer

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass
class FileStats:
    """Metadata about a stored file."""

    size: int  # Size in bytes
    modified: datetime  # Last modification time, timezone aware

    @property
    def modified_ms(self) -> int:
        """Get the modification time in whole milliseconds."""
        return int(self.modified.timestamp() * 1000)


@dataclass
class UploadedFile:
    """A temporary file staged by the multipart layer, waiting to be moved."""

    client_name: str  # Name sent by the client
    tmp_path: Path
    size: int = 0
    file_name: str | None = None  # Generated name, defaults to the tmp basename
    state: Literal["staged", "moved"] = field(default="staged")

    def __post_init__(self) -> None:
        self.tmp_path = Path(self.tmp_path)
        if not self.file_name:
            self.file_name = self.tmp_path.name


StreamSource = Union[
    "FileStream", bytes, str, AsyncIterable[bytes], Iterable[bytes], BinaryIO
]


class FileStream:
    """
    Single-use asynchronous byte stream.

    Iterating the stream consumes it; a second iteration raises
    StreamConsumedError instead of silently yielding nothing.
    """

    def __init__(self, chunks: AsyncIterator[bytes], path: str | None = None) -> None:
        self._chunks = chunks
        self.path = path
        self._consumed = False

    @property
    def readable(self) -> bool:
        """Check if the stream can still be read."""
        return not self._consumed

    def __aiter__(self) -> AsyncGenerator[bytes, None]:
        if self._consumed:
            raise StreamConsumedError(self.path)
        self._consumed = True
        return self._drain()

    async def _drain(self) -> AsyncGenerator[bytes, None]:
        try:
            async for chunk in self._chunks:
                yield chunk
        finally:
            await self._close_source()

    async def _close_source(self) -> None:
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    async def read(self) -> bytes:
        """Consume the stream and return its full content."""
        return b"".join([chunk async for chunk in self])

    async def aclose(self) -> None:
        """Mark the stream consumed and release the underlying source."""
        self._consumed = True
        await self._close_source()

    @classmethod
    def from_bytes(
        cls,
        content: bytes,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        path: str | None = None,
    ) -> "FileStream":
        """Create a stream over an immutable snapshot of bytes."""

        async def chunks() -> AsyncIterator[bytes]:
            for offset in range(0, len(content), chunk_size):
                yield content[offset : offset + chunk_size]

        return cls(chunks(), path=path)

    @classmethod
    def wrap(
        cls, source: StreamSource, chunk_size: int = DEFAULT_CHUNK_SIZE
    ) -> "FileStream":
        """
        Adapt a supported source into a FileStream.

        Args:
            source: FileStream, bytes, str, async iterable of bytes, file-like
                object (sync or async ``read``), or iterable of bytes.
            chunk_size: Read size for file-like sources.

        Returns:
            The source itself if it is already a FileStream.
        """
        if isinstance(source, FileStream):
            return source
        if isinstance(source, str):
            source = source.encode("utf-8")
        if isinstance(source, (bytes, bytearray, memoryview)):
            return cls.from_bytes(bytes(source), chunk_size)
        if hasattr(source, "__aiter__"):
            return cls(aiter(source))
        if hasattr(source, "read"):
            return cls(_read_file_object(source, chunk_size))
        if isinstance(source, Iterable):
            return cls(_iterate(source))
        raise TypeError(f"Unsupported stream source: {type(source).__name__}")


async def _read_file_object(file: Any, chunk_size: int) -> AsyncIterator[bytes]:
    """Read a sync or async file object to the end, then close it."""
    is_async = inspect.iscoroutinefunction(file.read)
    try:
        while True:
            chunk = await file.read(chunk_size) if is_async else file.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        result = file.close()
        if inspect.isawaitable(result):
            await result


async def _iterate(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class StorageDriver(ABC):
    """Abstract base class for storage drivers."""

    driver_name: str = "abstract"

    def __init__(
        self,
        name: str,
        config: DiskConfig,
        signer: Signer,
        *,
        signed_url_expires_in: int = 1800,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """
        Initialize the driver.

        Args:
            name: Disk name the driver is bound to.
            config: Disk configuration.
            signer: Signer bound to the same disk name.
            signed_url_expires_in: Default lifetime of signed URLs in seconds.
            chunk_size: Chunk size used when streaming.
        """
        self.name = name
        self.config = config
        self.signer = signer
        self.signed_url_expires_in = signed_url_expires_in
        self.chunk_size = chunk_size
        self.resolver = self._create_resolver()

    def _create_resolver(self) -> PathResolver:
        return PathResolver()

    def normalize(self, path: str) -> str:
        """Get the normalized disk key for a path."""
        return self.resolver.normalize(path)

    @abstractmethod
    def make_path(self, path: str) -> str:
        """
        Get the location a path maps to inside the backend.

        Args:
            path: Path relative to the disk root.

        Returns:
            Absolute backend location of the file.
        """
        ...

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """
        Check if a file exists on the disk.

        Args:
            path: Path relative to the disk root.

        Returns:
            True if a file is stored at the path.
        """
        ...

    @abstractmethod
    async def get(self, path: str) -> bytes:
        """
        Read a file's content.

        Args:
            path: Path relative to the disk root.

        Returns:
            File content as bytes.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            StorageError: If the read fails.
        """
        ...

    @abstractmethod
    async def get_stream(self, path: str) -> FileStream:
        """
        Open a single-use stream over a file's content.

        Raises:
            FileNotFoundError: If the file doesn't exist. Raised before any
                chunk is produced.
        """
        ...

    @abstractmethod
    async def get_stats(self, path: str) -> FileStats:
        """
        Get file metadata without reading content.

        Raises:
            FileNotFoundError: If the file doesn't exist.
        """
        ...

    @abstractmethod
    async def put(self, path: str, content: bytes | str) -> None:
        """
        Write a file, replacing any existing content.

        Missing parent directories are created implicitly. Strings are
        encoded as UTF-8.

        Args:
            path: Path relative to the disk root.
            content: File content.

        Raises:
            StorageError: If the write fails.
        """
        ...

    @abstractmethod
    async def put_stream(self, path: str, source: StreamSource) -> None:
        """
        Write a file from a stream.

        The source is consumed exactly once and is unusable afterwards. The
        call returns only once the destination is fully written; if the
        source fails midway the error propagates and the write is not
        reported as successful.

        Args:
            path: Path relative to the disk root.
            source: Stream source, see ``FileStream.wrap``.
        """
        ...

    @abstractmethod
    async def put_file(
        self,
        file: UploadedFile,
        folder: str | None = None,
        name: str | None = None,
    ) -> MovedFile:
        """
        Move a staged upload onto the disk.

        Args:
            file: Descriptor of the staged temporary file.
            folder: Optional destination folder.
            name: File name overriding the generated one.

        Returns:
            MovedFile describing where the upload landed.

        Raises:
            FileNotFoundError: If the staged file is gone.
        """
        ...

    @abstractmethod
    async def copy(self, source: str, destination: str) -> None:
        """
        Copy a file within the disk, overwriting the destination.

        Raises:
            FileNotFoundError: If the source doesn't exist.
        """
        ...

    @abstractmethod
    async def move(self, source: str, destination: str) -> None:
        """
        Move a file within the disk, overwriting the destination.

        The source is removed only after the destination is written.

        Raises:
            FileNotFoundError: If the source doesn't exist. No destination
                is created in that case.
        """
        ...

    @abstractmethod
    async def delete(self, path: str) -> None:
        """
        Delete a file.

        Deleting a missing file, or one whose parent is missing, is a no-op.

        Raises:
            StorageError: If the backend fails for any other reason.
        """
        ...

    async def get_visibility(self, path: str) -> Literal["public", "private"]:
        """Get the visibility of a file, which is the disk's visibility."""
        self.normalize(path)
        return self.config.visibility

    async def get_url(self, path: str) -> str:
        """
        Get the URL a file is served from.

        Returns:
            ``{base_path}/{key}`` with the key URL-quoted.

        Raises:
            FeatureDisabledError: If serve_assets is off for the disk.
        """
        return self._build_url(self._serving_key(path, "get_url"))

    async def get_signed_url(
        self,
        path: str,
        expires_in: int | timedelta | None = None,
    ) -> str:
        """
        Get a time limited URL that grants access to a private file.

        Args:
            path: Path relative to the disk root.
            expires_in: URL lifetime in seconds or as a timedelta. Defaults to
                the configured signed URL lifetime.

        Raises:
            FeatureDisabledError: If serve_assets is off for the disk.
        """
        key = self._serving_key(path, "get_signed_url")
        token = self.signer.make_token(
            key, expires_in if expires_in is not None else self.signed_url_expires_in
        )
        return f"{self._build_url(key)}?signature={quote(str(token), safe='')}"

    def _serving_key(self, path: str, feature: str) -> str:
        if not self.config.serve_assets:
            raise FeatureDisabledError(feature, self.name)
        return self.normalize(path)

    def _build_url(self, key: str) -> str:
        return f"{self.config.base_path}/{quote(key)}"

    @staticmethod
    def _encode(content: bytes | str) -> bytes:
        if isinstance(content, str):
            return content.encode("utf-8")
        return bytes(content)

    def _destination_key(
        self, file: UploadedFile, folder: str | None, name: str | None
    ) -> str:
        file_name = name or file.file_name or file.tmp_path.name
        if folder:
            return self.normalize(f"{folder.rstrip('/')}/{file_name}")
        return self.normalize(file_name)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} disk={self.name!r}>"
