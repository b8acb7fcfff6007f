"""
Pytest configuration and fixtures.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from filedrive.api.main import create_app
from filedrive.core.config import DiskConfig, Settings
from filedrive.services.storage.base import StorageDriver
from filedrive.services.storage.factory import (
    DriveManager,
    create_driver,
    reset_drive_manager,
)

TEST_SECRET = "test-secret-key-for-testing-only"


def make_disk(driver: str, root: Path | None = None, **overrides) -> DiskConfig:
    """Build a disk config rooted in a test directory."""
    return DiskConfig(
        driver=driver,
        root=str(root) if root is not None else None,
        **overrides,
    )


def make_driver(
    driver: str,
    root: Path,
    name: str = "local",
    **overrides,
) -> StorageDriver:
    """Build a driver the same way the drive manager does."""
    return create_driver(name, make_disk(driver, root, **overrides), TEST_SECRET)


# Test settings
@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Create test settings with one disk per scenario."""
    return Settings(
        app_env="development",
        app_debug=True,
        app_key=TEST_SECRET,
        log_format="console",
        drive_default_disk="public",
        drive_uploads_enabled=True,
        drive_upload_tmp_dir=str(tmp_path / "staging"),
        drive_max_upload_size_mb=1,
        drive_disks={
            "public": make_disk("memory", serve_assets=True, base_path="/uploads"),
            "private": make_disk(
                "memory",
                visibility="private",
                serve_assets=True,
                base_path="/private",
            ),
            "local": make_disk(
                "local",
                tmp_path / "disk",
                serve_assets=True,
                base_path="/files",
            ),
            "hidden": make_disk("memory", base_path="/hidden"),
        },
    )


@pytest.fixture(autouse=True)
def _reset_singletons() -> None:
    """Start each test without a cached drive manager."""
    reset_drive_manager()


@pytest.fixture(params=["memory", "local"])
def driver(request: pytest.FixtureRequest, tmp_path: Path) -> StorageDriver:
    """Driver under test, run once per backend."""
    return make_driver(
        request.param,
        tmp_path / "disk",
        serve_assets=True,
        base_path="/uploads",
    )


@pytest.fixture
def memory_driver(tmp_path: Path) -> StorageDriver:
    """In-memory driver."""
    return make_driver("memory", tmp_path / "disk", serve_assets=True)


@pytest.fixture
def local_driver(tmp_path: Path) -> StorageDriver:
    """Local filesystem driver rooted in a temporary directory."""
    return make_driver("local", tmp_path / "disk", serve_assets=True)


@pytest.fixture
def manager(test_settings: Settings) -> DriveManager:
    """Drive manager over the test disks."""
    return DriveManager(test_settings)


@pytest.fixture
def app(test_settings: Settings, manager: DriveManager) -> FastAPI:
    """Application serving the test disks."""
    return create_app(test_settings, manager)


# Test client
@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def staged_file(tmp_path: Path):
    """Factory writing a temporary upload outside the disk root."""

    def _stage(content: bytes = b"hello world", name: str = "a1b2c3d4.txt") -> Path:
        tmp_dir = tmp_path / "uploads-tmp"
        tmp_dir.mkdir(exist_ok=True)
        tmp_file = tmp_dir / name
        tmp_file.write_bytes(content)
        return tmp_file

    return _stage
