"""
Adapter from FastAPI uploads to staged temporary files.

The multipart layer hands us an UploadFile; drivers consume UploadedFile
descriptors pointing at a temporary file with a generated name.
"""

import tempfile
import uuid
from contextlib import suppress
from pathlib import Path

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from filedrive.core.exceptions import FileTooLargeError
from filedrive.services.storage.base import UploadedFile

CHUNK_SIZE = 64 * 1024
MB = 1024 * 1024


def generate_file_name(client_name: str) -> str:
    """Generate a unique file name keeping the client file extension."""
    extension = Path(Path(client_name).name).suffix.lower()
    return f"{uuid.uuid4().hex}{extension}"


async def stage_upload(
    upload: UploadFile,
    tmp_dir: str | Path | None = None,
    max_size: int | None = None,
) -> UploadedFile:
    """
    Spool an upload into a temporary file.

    Args:
        upload: File received by a FastAPI endpoint.
        tmp_dir: Directory for the temporary file. Uses the system temp
            directory if None.
        max_size: Maximum size in bytes, unlimited if None.

    Returns:
        Descriptor of the staged file, ready for ``StorageDriver.put_file``.

    Raises:
        FileTooLargeError: If the upload exceeds max_size. Nothing is left
            behind in tmp_dir.
    """
    client_name = upload.filename or "upload"
    directory = Path(tmp_dir or tempfile.gettempdir())
    await aiofiles.os.makedirs(directory, exist_ok=True)
    tmp_path = directory / generate_file_name(client_name)

    size = 0
    too_large = False
    async with aiofiles.open(tmp_path, "wb") as f:
        while chunk := await upload.read(CHUNK_SIZE):
            size += len(chunk)
            if max_size is not None and size > max_size:
                too_large = True
                break
            await f.write(chunk)

    if too_large:
        await discard_upload(tmp_path)
        raise FileTooLargeError(size / MB, max_size // MB)

    return UploadedFile(client_name=client_name, tmp_path=tmp_path, size=size)


async def discard_upload(tmp_path: Path) -> None:
    """Remove a staged file that was not moved onto a disk."""
    with suppress(FileNotFoundError):
        await aiofiles.os.remove(tmp_path)
