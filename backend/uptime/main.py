"""Main FastAPI application with server/worker mode switching."""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import settings, get_worker_api_keys
from .database import init_db, close_db
from .errors import register_exception_handlers
from .routers import monitors_router, checks_router
from .services.scheduler import scheduler_service
from .services.worker_client import worker_client

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info(f"Starting uptime tracker in {settings.mode.upper()} mode")

    if settings.mode == "server":
        await init_db()
        logger.info("Database initialized")
        if not get_worker_api_keys():
            logger.warning("WORKER_API_KEYS is empty - worker endpoints will reject every request")
        scheduler_service.start()

    elif settings.mode == "worker":
        # Worker mode: claim and check in the background, no local database
        asyncio.create_task(worker_client.run())
        logger.info("Worker client started")

    yield

    # Shutdown
    if settings.mode == "server":
        scheduler_service.stop()
        await close_db()
    elif settings.mode == "worker":
        worker_client.stop()

    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Uptime Tracker",
        description="Monitored URLs with a claim-based check protocol for workers",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    if settings.mode == "server":
        app.include_router(monitors_router)
        app.include_router(checks_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "mode": settings.mode,
        }

    return app


# Create the application instance
app = create_app()


def run():
    """Console entry point."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)


if __name__ == "__main__":
    run()
