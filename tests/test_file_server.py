"""
Tests for serving disk files over HTTP.
"""

import re
from datetime import datetime, timezone

import pytest
from fastapi import FastAPI

from filedrive.api import file_server
from filedrive.api.file_server import LocalFileServer, compute_etag, is_fresh
from filedrive.services.storage.base import FileStats, FileStream


def signature_of(url: str) -> str:
    return re.search(r"signature=([^&]+)", url).group(1)


# =============================================================================
# ETags
# =============================================================================


def test_compute_etag_is_weak():
    stats = FileStats(size=11, modified=datetime.fromtimestamp(1.5, tz=timezone.utc))

    assert compute_etag(stats) == 'W/"b-5dc"'


@pytest.mark.parametrize(
    "header,fresh",
    [
        (None, False),
        ("", False),
        ('W/"b-5dc"', True),
        ('"b-5dc"', True),
        ('"other", W/"b-5dc"', True),
        ("*", True),
        ('W/"c-5dc"', False),
    ],
)
def test_is_fresh(header, fresh):
    assert is_fresh(header, 'W/"b-5dc"') is fresh


# =============================================================================
# Public disks
# =============================================================================


@pytest.mark.asyncio
async def test_serve_public_file(client, manager):
    """Public files are served without a signature."""
    await manager.use("public").put("foo.txt", "hello world")

    response = await client.get("/uploads/foo.txt")

    assert response.status_code == 200
    assert response.content == b"hello world"
    assert response.headers["content-length"] == "11"
    assert response.headers["content-type"] == "text/plain; charset=utf-8"
    assert response.headers["etag"].startswith('W/"b-')


@pytest.mark.asyncio
async def test_serve_nested_file(client, manager):
    await manager.use("public").put("docs/2024/report.json", '{"ok": true}')

    response = await client.get("/uploads/docs/2024/report.json")

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert response.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_serve_unknown_extension_as_binary(client, manager):
    await manager.use("public").put("blob", b"\x00\x01")

    response = await client.get("/uploads/blob")

    assert response.headers["content-type"] == "application/octet-stream"


@pytest.mark.asyncio
async def test_url_from_driver_is_served(client, manager):
    """URLs built by the driver route back to the file."""
    drive = manager.use("public")
    await drive.put("my docs/foo bar.txt", "hello world")

    response = await client.get(await drive.get_url("my docs/foo bar.txt"))

    assert response.status_code == 200
    assert response.content == b"hello world"


@pytest.mark.asyncio
async def test_not_modified(client, manager):
    """Matching If-None-Match returns 304 without a body."""
    await manager.use("public").put("foo.txt", "hello world")
    etag = (await client.get("/uploads/foo.txt")).headers["etag"]

    response = await client.get("/uploads/foo.txt", headers={"If-None-Match": etag})

    assert response.status_code == 304
    assert response.content == b""
    assert response.headers["etag"] == etag


@pytest.mark.asyncio
async def test_stale_etag_gets_full_response(client, manager):
    await manager.use("public").put("foo.txt", "hello world")

    response = await client.get(
        "/uploads/foo.txt", headers={"If-None-Match": 'W/"0-0"'}
    )

    assert response.status_code == 200
    assert response.content == b"hello world"


@pytest.mark.asyncio
async def test_etag_changes_with_content(client, manager):
    drive = manager.use("public")
    await drive.put("foo.txt", "hello world")
    first = (await client.get("/uploads/foo.txt")).headers["etag"]

    await drive.put("foo.txt", "hi")
    response = await client.get("/uploads/foo.txt", headers={"If-None-Match": first})

    assert response.status_code == 200
    assert response.headers["etag"] != first


@pytest.mark.asyncio
async def test_missing_file(client):
    response = await client.get("/uploads/missing.txt")

    assert response.status_code == 404
    assert response.text == "File not found"


@pytest.mark.asyncio
async def test_directory_is_not_served(client, manager):
    await manager.use("public").put("docs/foo.txt", "hello world")

    response = await client.get("/uploads/docs")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_escaping_path_is_not_found(client):
    response = await client.get("/uploads/..%2F..%2Fetc%2Fpasswd")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_large_file_is_streamed(client, manager):
    drive = manager.use("public")
    drive.chunk_size = 1024
    content = bytes(range(256)) * 64
    await drive.put("blob.bin", content)

    response = await client.get("/uploads/blob.bin")

    assert response.status_code == 200
    assert response.content == content
    assert response.headers["content-length"] == str(len(content))


@pytest.mark.asyncio
async def test_local_disk_is_served(client, manager, tmp_path):
    await manager.use("local").put("foo.txt", "hello world")

    response = await client.get("/files/foo.txt")

    assert response.status_code == 200
    assert response.content == b"hello world"
    assert (tmp_path / "disk" / "foo.txt").exists()


@pytest.mark.asyncio
async def test_disk_without_serve_assets_has_no_route(client, manager):
    await manager.use("hidden").put("foo.txt", "hello world")

    response = await client.get("/hidden/foo.txt")

    assert response.status_code == 404
    assert response.text != "hello world"


# =============================================================================
# Private disks
# =============================================================================


@pytest.mark.asyncio
async def test_private_file_requires_signature(client, manager):
    """Unsigned requests are denied."""
    await manager.use("private").put("foo.txt", "hello world")

    response = await client.get("/private/foo.txt")

    assert response.status_code == 401
    assert response.text == "Access denied"


@pytest.mark.asyncio
async def test_private_file_with_signed_url(client, manager):
    drive = manager.use("private")
    await drive.put("foo.txt", "hello world")

    response = await client.get(await drive.get_signed_url("foo.txt"))

    assert response.status_code == 200
    assert response.content == b"hello world"
    assert "etag" in response.headers


@pytest.mark.asyncio
async def test_private_signature_tied_to_path(client, manager):
    drive = manager.use("private")
    await drive.put("foo.txt", "hello world")
    await drive.put("bar.txt", "secret")
    signature = signature_of(await drive.get_signed_url("foo.txt"))

    response = await client.get(f"/private/bar.txt?signature={signature}")

    assert response.status_code == 401
    assert response.text == "Access denied"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "signature",
    ["garbage", "123.abc", "9999999999." + "0" * 64, "9" * 5000 + "." + "0" * 64],
)
async def test_private_invalid_signature(client, manager, signature):
    await manager.use("private").put("foo.txt", "hello world")

    response = await client.get(f"/private/foo.txt?signature={signature}")

    assert response.status_code == 401
    assert response.text == "Access denied"


@pytest.mark.asyncio
async def test_private_expired_signature(client, manager):
    drive = manager.use("private")
    await drive.put("foo.txt", "hello world")
    url = await drive.get_signed_url("foo.txt", 60)
    drive.signer._clock = lambda: 9_999_999_999

    response = await client.get(url)

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_private_denial_does_not_reveal_missing_files(client, manager):
    """Missing and existing files are denied alike without a signature."""
    await manager.use("private").put("foo.txt", "hello world")

    existing = await client.get("/private/foo.txt")
    missing = await client.get("/private/missing.txt")

    assert existing.status_code == missing.status_code == 401
    assert existing.text == missing.text


@pytest.mark.asyncio
async def test_private_denial_skips_storage(client, manager, monkeypatch):
    drive = manager.use("private")

    async def fail(*args, **kwargs):
        raise AssertionError("storage must not be touched")

    monkeypatch.setattr(drive, "get_stats", fail)
    monkeypatch.setattr(drive, "get_stream", fail)

    response = await client.get("/private/foo.txt")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_private_signed_missing_file(client, manager):
    drive = manager.use("private")

    response = await client.get(await drive.get_signed_url("missing.txt"))

    assert response.status_code == 404
    assert response.text == "File not found"


@pytest.mark.asyncio
async def test_private_not_modified(client, manager):
    drive = manager.use("private")
    await drive.put("foo.txt", "hello world")
    url = await drive.get_signed_url("foo.txt")
    etag = (await client.get(url)).headers["etag"]

    response = await client.get(url, headers={"If-None-Match": etag})

    assert response.status_code == 304


# =============================================================================
# Route registration
# =============================================================================


def test_register_route_is_idempotent(manager):
    app = FastAPI()
    config = manager.disks["public"]
    server = LocalFileServer("public", config, manager.use("public"), app)

    assert server.register_route() is True
    assert server.register_route() is False

    again = LocalFileServer("public", config, manager.use("public"), app)
    assert again.register_route() is False

    names = [getattr(route, "name", None) for route in app.routes]
    assert names.count("drive.public.serve") == 1


def test_register_route_skips_hidden_disk(manager):
    app = FastAPI()
    server = LocalFileServer(
        "hidden", manager.disks["hidden"], manager.use("hidden"), app
    )

    assert server.register_route() is False
    assert all(getattr(route, "name", None) != server.route_name for route in app.routes)


def test_register_file_servers_is_idempotent(manager):
    app = FastAPI()

    first = manager.register_file_servers(app)
    second = manager.register_file_servers(app)

    assert sorted(first) == ["local", "private", "public"]
    assert first == second
    names = [getattr(route, "name", None) for route in app.routes]
    assert len([name for name in names if name and name.startswith("drive.")]) == 3


# =============================================================================
# Client disconnects
# =============================================================================


class RecordingLogger:
    """Collects log events emitted by the file server."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def info(self, event: str, **kwargs) -> None:
        self.events.append((event, kwargs))

    debug = warning = exception = info


@pytest.mark.asyncio
async def test_disconnect_aborts_stream(manager, monkeypatch):
    """Closing the body midway releases the source and leaves the file intact."""
    recorder = RecordingLogger()
    monkeypatch.setattr(file_server, "logger", recorder)
    closed = []

    async def chunks():
        try:
            for _ in range(3):
                yield b"x" * 10
        finally:
            closed.append(True)

    drive = manager.use("public")
    await drive.put("foo.txt", b"x" * 30)
    server = LocalFileServer("public", manager.disks["public"], drive, FastAPI())
    stream = FileStream(chunks(), path="foo.txt")

    body = server._send(stream, "foo.txt")
    assert await body.__anext__() == b"x" * 10
    await body.aclose()

    assert closed == [True]
    assert not stream.readable
    assert ("file_stream_aborted", {"disk": "public", "path": "foo.txt"}) in recorder.events
    assert await drive.get("foo.txt") == b"x" * 30


@pytest.mark.asyncio
async def test_disconnect_releases_local_file(manager, monkeypatch, tmp_path):
    """An aborted local stream leaves the file readable and writable."""
    monkeypatch.setattr(file_server, "logger", RecordingLogger())
    drive = manager.use("local")
    drive.chunk_size = 4
    await drive.put("foo.txt", "hello world")
    server = LocalFileServer("local", manager.disks["local"], drive, FastAPI())

    stream = await drive.get_stream("foo.txt")
    reader = stream._chunks

    body = server._send(stream, "foo.txt")
    assert await body.__anext__() == b"hell"
    await body.aclose()

    # The chunk reader finished, so its file handle is closed
    assert reader.ag_frame is None
    assert not stream.readable
    assert await drive.get("foo.txt") == b"hello world"

    await drive.delete("foo.txt")
    assert not (tmp_path / "disk" / "foo.txt").exists()

