"""FastAPI application entry point for hnplus."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from hnplus.config import settings
from hnplus.models.database import async_session, init_db
from hnplus.api import catalog as catalog_api
from hnplus.catalog.run_state import RunStateStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    # Startup
    logger.info("Starting hnplus...")

    await init_db()
    logger.info(f"Database initialized at {settings.db_path}")

    # No catalog run survives a restart
    store = RunStateStore(async_session)
    if await store.is_running():
        logger.warning("Clearing stale catalog run flag")
        await store.set_running(False)

    if not settings.catalog_enabled:
        logger.info("Catalog generation disabled (HNPLUS_CATALOG_ENABLED=false)")

    yield

    # Shutdown
    logger.info("Shutting down hnplus...")
    await catalog_api.close_generator()


# Create FastAPI app
app = FastAPI(
    title="hnplus",
    description="HarnessNation pedigree sale catalog generator",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(catalog_api.router, prefix="/api/catalog", tags=["catalog"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hnplus.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
