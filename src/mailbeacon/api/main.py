"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from mailbeacon.infrastructure import configure_logging, get_settings
from mailbeacon.service import MailMonitor, build_monitor


def create_app(monitor: MailMonitor | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Pass a prebuilt ``monitor`` to run against custom stores or adapters;
    otherwise one is built from settings at startup.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler for startup/shutdown."""
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        logger.info(f"Environment: {settings.environment}")

        app.state.monitor = monitor or build_monitor(settings)
        app.state.monitor.start()

        yield

        # Cleanup on shutdown
        logger.info("Shutting down...")
        await app.state.monitor.stop()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Watches IMAP/POP3 mailboxes and streams new-mail notifications",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["Origin", "Content-Type", "Accept"],
    )

    # Register routes
    from mailbeacon.api.routes import router
    from mailbeacon.api.ws import router as ws_router

    app.include_router(router)
    app.include_router(ws_router)

    return app


def run() -> None:
    """Entry point for ``mailbeacon-api``."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(), host=settings.api_host, port=settings.api_port)


# Create app instance
app = create_app()
