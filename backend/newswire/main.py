"""
Main FastAPI application for the Newswire aggregator.
"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from newswire.api.routes import router, set_aggregator
from newswire.config import get_settings
from newswire.core.logging import configure_logging
from newswire.models.database import Database
from newswire.services.aggregation import AggregationScheduler, NewsAggregator
from newswire.services.seed import seed_defaults
from newswire.storage import SQLAlchemyNewsStore

settings = get_settings()
configure_logging(settings.log_level, secrets=[settings.newsapi_key])

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    settings = get_settings()

    # Initialize database
    logger.info("Initializing database", url=settings.database_url)
    database = Database(settings.database_url, echo=settings.debug)
    await database.create_tables()
    store = SQLAlchemyNewsStore(database)

    if settings.environment == "development":
        await seed_defaults(store)

    # Initialize aggregator and scheduler
    aggregator = NewsAggregator(store, settings=settings)
    scheduler = AggregationScheduler(
        aggregator,
        interval_minutes=settings.aggregation_interval_minutes,
    )
    scheduler.start(run_immediately=settings.environment == "development")
    set_aggregator(aggregator, scheduler)

    yield

    # Shutdown
    logger.info("Shutting down")
    scheduler.shutdown()
    await aggregator.shutdown()
    set_aggregator(None)
    await store.close()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Scheduled news aggregation with dedup and category resolution.",
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "newswire",
        "version": settings.app_version,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "newswire.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
