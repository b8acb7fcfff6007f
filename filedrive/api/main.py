"""
FileDrive - Main FastAPI Application.

Serves the files of every disk configured with serve_assets.
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from filedrive.api.routers import files
from filedrive.core.config import Settings, get_settings
from filedrive.core.exceptions import DriveError
from filedrive.core.logging import configure_logging, get_logger
from filedrive.models.common import ErrorDetail, ErrorResponse, HealthResponse
from filedrive.services.storage.factory import DriveManager

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings

    logger.info("starting_application", env=settings.app_env)
    for name in app.state.drive.disks:
        app.state.drive.use(name)

    yield

    logger.info("shutting_down_application")


def create_app(
    settings: Settings | None = None,
    manager: DriveManager | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. Uses default if None.
        manager: Drive manager. Built from settings if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()
    if manager is None:
        manager = DriveManager(settings)

    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="File storage disks served over HTTP.",
        version=settings.app_version,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.drive = manager

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Exception handlers
    @app.exception_handler(DriveError)
    async def drive_error_handler(request: Request, exc: DriveError) -> JSONResponse:
        """Handle FileDrive errors."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
        )

    @app.exception_handler(Exception)
    async def general_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected errors."""
        logger.exception("unhandled_error", path=request.url.path)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="INTERNAL_ERROR",
                    message="An unexpected error occurred",
                    path=str(request.url.path),
                )
            ).model_dump(mode="json"),
        )

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Report the configured disks."""
        return HealthResponse(
            status="healthy",
            version=settings.app_version,
            disks={name: config.driver for name, config in manager.disks.items()},
        )

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "disks": sorted(manager.disks),
        }

    if settings.drive_uploads_enabled:
        app.include_router(files.router)

    # Wildcard file routes go last so they never shadow the routes above
    served = manager.register_file_servers(app)
    logger.info("file_servers_ready", disks=served)

    return app


def main() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "filedrive.api.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        workers=settings.app_workers,
        reload=settings.is_development,
    )


if __name__ == "__main__":
    main()
