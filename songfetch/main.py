"""Application entry point and bootstrap.

This module initializes all application components, wires dependencies,
and provides the main entry point for running the application.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from songfetch import __version__
from songfetch.config import SongfetchConfig
from songfetch.logging_filters import configure_logging, install_uvicorn_access_log_filters
from songfetch.middleware import TrustedOriginMiddleware
from songfetch.models.base import JsonModel
from songfetch.resources import ResourcePublisher, ResourceRouter
from songfetch.routers import (
    create_download_router,
    create_progress_router,
    create_resource_router,
)
from songfetch.scheduler import ResourceReaper, SystemScheduler
from songfetch.services import (
    Archiver,
    BatchJobRunner,
    Converter,
    FileService,
    YtDlpConverter,
    ZipArchiver,
)
from songfetch.sessions import SessionRegistry

logger = logging.getLogger(__name__)


class HealthResponse(JsonModel):
    """Response model for the health check."""

    status: str
    sessions: int
    resources: int
    pending_deletions: int
    active_batches: int


class Application:
    """Main application container.

    Owns the session registry, the resource route table and the reaper,
    builds every service once, and threads them into the routers.
    """

    def __init__(
        self,
        config: SongfetchConfig,
        *,
        converter: Converter | None = None,
        archiver: Archiver | None = None,
    ) -> None:
        """Initialize the application with configuration.

        Args:
            config: Application configuration.
            converter: Conversion collaborator; yt-dlp when omitted.
            archiver: Bundling collaborator; zip when omitted.
        """
        self.config = config
        self._converter = converter
        self._archiver = archiver

        # Core components (initialized in setup)
        self.fastapi_app: FastAPI | None = None
        self.file_service: FileService | None = None
        self.session_registry: SessionRegistry | None = None
        self.resource_router: ResourceRouter | None = None
        self.publisher: ResourcePublisher | None = None
        self.reaper: ResourceReaper | None = None
        self.job_runner: BatchJobRunner | None = None
        self.system_scheduler: SystemScheduler | None = None

    def setup(self) -> None:
        """Initialize all application components."""
        logger.info("Setting up application components...")

        self.file_service = FileService(self.config)
        self.session_registry = SessionRegistry()
        self.resource_router = ResourceRouter()
        self.publisher = ResourcePublisher(self.resource_router)
        self.reaper = ResourceReaper(
            default_delay=self.config.artifact_ttl_seconds,
            root=self.file_service.root,
        )

        converter = self._converter or YtDlpConverter.from_config(self.config)
        archiver = self._archiver or ZipArchiver()
        self.job_runner = BatchJobRunner(
            registry=self.session_registry,
            converter=converter,
            archiver=archiver,
            publisher=self.publisher,
            reaper=self.reaper,
            file_service=self.file_service,
            allowed_url_prefixes=self.config.allowed_url_prefixes,
            artifact_ttl_seconds=self.config.artifact_ttl_seconds,
        )
        self.system_scheduler = SystemScheduler(self.config, self.session_registry)

        logger.info(
            "Application setup complete (output dir %s, artifact ttl %.0fs)",
            self.file_service.root,
            self.config.artifact_ttl_seconds,
        )

    def create_fastapi_app(self) -> FastAPI:
        """Create and configure FastAPI application.

        Returns:
            Configured FastAPI application.
        """
        if self.job_runner is None:
            raise RuntimeError("setup() must run before create_fastapi_app()")

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
            """Manage application lifespan."""
            await self.start_background_services()
            yield
            await self.shutdown()

        self.fastapi_app = FastAPI(
            title="songfetch",
            description="Batch audio conversion with live progress streaming",
            version=__version__,
            lifespan=lifespan,
        )
        self.fastapi_app.add_middleware(
            TrustedOriginMiddleware,
            allowed_origin=self.config.allowed_origin,
        )

        self.fastapi_app.include_router(create_download_router(self.job_runner))
        self.fastapi_app.include_router(
            create_progress_router(
                self.session_registry,
                poll_seconds=self.config.stream_poll_seconds,
            )
        )
        self.fastapi_app.include_router(create_resource_router(self.resource_router))

        @self.fastapi_app.get("/health", response_model=HealthResponse)
        async def health_check() -> HealthResponse:
            """Health check endpoint."""
            return HealthResponse(
                status="healthy",
                sessions=len(self.session_registry),
                resources=len(self.resource_router),
                pending_deletions=len(self.reaper.pending),
                active_batches=self.job_runner.active_batches,
            )

        return self.fastapi_app

    async def start_background_services(self) -> None:
        """Start the periodic session sweep."""
        if self.system_scheduler:
            await self.system_scheduler.start()
            logger.info("System scheduler started")

    async def shutdown(self) -> None:
        """Gracefully shutdown all application components.

        Running batches are cancelled first so that their artifacts are
        handed to the reaper before it stops.
        """
        logger.info("Initiating graceful shutdown...")

        if self.system_scheduler and self.system_scheduler.is_running:
            await self.system_scheduler.stop()

        if self.job_runner:
            await self.job_runner.shutdown()

        if self.reaper:
            await self.reaper.shutdown(purge=self.config.purge_on_shutdown)

        logger.info("Graceful shutdown complete")


def create_app(
    config: SongfetchConfig | None = None,
    *,
    converter: Converter | None = None,
    archiver: Archiver | None = None,
) -> Application:
    """Create and setup the application.

    Args:
        config: Optional configuration. If not provided, loads from
                config.json with environment variable overrides.
        converter: Optional conversion collaborator override.
        archiver: Optional bundling collaborator override.

    Returns:
        Initialized Application with its FastAPI app created.
    """
    if config is None:
        config = SongfetchConfig.from_json_file()

    app = Application(config, converter=converter, archiver=archiver)
    app.setup()
    app.create_fastapi_app()
    return app


async def main() -> None:
    """Run the HTTP server until interrupted."""
    import uvicorn

    config = SongfetchConfig.from_json_file()
    configure_logging(config.log_level)
    logger.info("Starting songfetch...")

    app = create_app(config)

    uvicorn_config = uvicorn.Config(
        app.fastapi_app,
        host=config.api_host,
        port=config.api_port,
        log_level=config.log_level.lower(),
    )
    # Ensure Uvicorn logging is configured, then suppress noisy access logs.
    uvicorn_config.load()
    install_uvicorn_access_log_filters()

    logger.info("Server running at http://%s:%d", config.api_host, config.api_port)
    server = uvicorn.Server(uvicorn_config)
    await server.serve()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
