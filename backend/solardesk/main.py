"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from solardesk import __version__
from solardesk.config import get_settings
from solardesk.database import close_db, init_db
from solardesk.routers import health_router, metrics_router, submissions_router
from solardesk.services.submissions import submission_service

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting SolarDesk...")

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down SolarDesk...")

    # Let in-flight status syncs finish before the pools go away
    await submission_service.dispatcher.stop()
    await close_db()

    logger.info("Shutdown complete")


app = FastAPI(
    title="SolarDesk",
    description="Daily solar generation submissions and their approval workflow",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(submissions_router)


@app.get("/")
async def root():
    """Service info."""
    return {
        "name": "SolarDesk",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics",
    }


def run() -> None:
    """Serve the API with uvicorn (the ``solardesk`` console script)."""
    import uvicorn

    uvicorn.run(
        "solardesk.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
