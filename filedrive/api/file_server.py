"""
HTTP file server for a single disk.

Serves ``GET {base_path}/{path}`` with visibility checks, ETag based
conditional requests and streamed bodies.
"""

import asyncio
import mimetypes
from collections.abc import AsyncIterator

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from filedrive.core.config import DiskConfig
from filedrive.core.exceptions import FileNotFoundError as StorageFileNotFoundError
from filedrive.core.exceptions import (
    InvalidPathError,
    InvalidSignatureError,
    StorageError,
)
from filedrive.core.logging import get_logger
from filedrive.services.storage.base import FileStats, FileStream, StorageDriver

logger = get_logger(__name__)

DENIED_STATUS = status.HTTP_401_UNAUTHORIZED
DENIED_BODY = "Access denied"
NOT_FOUND_BODY = "File not found"


def compute_etag(stats: FileStats) -> str:
    """Build a weak ETag from file size and modification time."""
    return f'W/"{stats.size:x}-{stats.modified_ms:x}"'


def _opaque_tag(tag: str) -> str:
    tag = tag.strip()
    return tag[2:] if tag.startswith("W/") else tag


def is_fresh(if_none_match: str | None, etag: str) -> bool:
    """
    Check an If-None-Match header against the current ETag.

    Uses weak comparison and accepts lists of tags as well as ``*``.
    """
    if not if_none_match:
        return False
    if if_none_match.strip() == "*":
        return True

    current = _opaque_tag(etag)
    return any(_opaque_tag(tag) == current for tag in if_none_match.split(","))


def guess_content_type(key: str) -> str:
    """Guess content type from file extension."""
    content_type, _ = mimetypes.guess_type(key)
    return content_type or "application/octet-stream"


class LocalFileServer:
    """Serves the files of one disk through a FastAPI router."""

    def __init__(
        self,
        disk_name: str,
        config: DiskConfig,
        driver: StorageDriver,
        router: APIRouter | FastAPI,
    ) -> None:
        self.disk_name = disk_name
        self.config = config
        self.driver = driver
        self.router = router
        self.route_name = f"drive.{disk_name}.serve"
        self._registered = False

    @property
    def route_path(self) -> str:
        """Get the wildcard route path."""
        return f"{self.config.base_path}/{{path:path}}"

    def register_route(self) -> bool:
        """
        Register the GET route for the disk.

        Nothing is registered when serve_assets is off, or when the route
        is already present on the router.

        Returns:
            True if a route was added.
        """
        if not self.config.serve_assets:
            logger.debug("file_server_disabled", disk=self.disk_name)
            return False

        if self._registered or any(
            getattr(route, "name", None) == self.route_name
            for route in self.router.routes
        ):
            self._registered = True
            return False

        self.router.add_api_route(
            self.route_path,
            self.handle,
            methods=["GET"],
            name=self.route_name,
            include_in_schema=False,
        )
        self._registered = True
        logger.info(
            "file_server_registered",
            disk=self.disk_name,
            path=self.route_path,
            visibility=self.config.visibility,
        )
        return True

    def _authorize(self, path: str, signature: str | None) -> bool:
        if not self.config.is_private:
            return True

        try:
            key = self.driver.normalize(path)
            self.driver.signer.unsign(key, signature)
        except InvalidSignatureError as e:
            logger.info(
                "access_denied", disk=self.disk_name, path=path, reason=e.reason
            )
            return False
        except InvalidPathError:
            logger.info(
                "access_denied", disk=self.disk_name, path=path, reason="invalid path"
            )
            return False
        return True

    async def handle(self, request: Request) -> Response:
        """Serve a file of the disk."""
        path = request.path_params.get("path", "")

        if not self._authorize(path, request.query_params.get("signature")):
            return PlainTextResponse(DENIED_BODY, status_code=DENIED_STATUS)

        try:
            stats = await self.driver.get_stats(path)
        except (StorageFileNotFoundError, InvalidPathError):
            return PlainTextResponse(
                NOT_FOUND_BODY, status_code=status.HTTP_404_NOT_FOUND
            )
        except StorageError:
            logger.exception("file_stat_failed", disk=self.disk_name, path=path)
            return PlainTextResponse(
                "Internal Server Error",
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        etag = compute_etag(stats)
        if is_fresh(request.headers.get("if-none-match"), etag):
            return Response(
                status_code=status.HTTP_304_NOT_MODIFIED, headers={"ETag": etag}
            )

        try:
            stream = await self.driver.get_stream(path)
        except StorageFileNotFoundError:
            return PlainTextResponse(
                NOT_FOUND_BODY, status_code=status.HTTP_404_NOT_FOUND
            )

        return StreamingResponse(
            self._send(stream, path),
            status_code=status.HTTP_200_OK,
            media_type=guess_content_type(path),
            headers={"ETag": etag, "Content-Length": str(stats.size)},
        )

    async def _send(self, stream: FileStream, path: str) -> AsyncIterator[bytes]:
        chunks = aiter(stream)
        try:
            async for chunk in chunks:
                yield chunk
        except (asyncio.CancelledError, GeneratorExit):
            logger.info("file_stream_aborted", disk=self.disk_name, path=path)
            raise
        finally:
            await chunks.aclose()
