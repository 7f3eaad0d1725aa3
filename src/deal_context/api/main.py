"""FastAPI application for the deal context service."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from deal_context.clients.postgres_store import PostgresDocumentStore

from .config import get_settings
from .routes.coach import router as coach_router
from .routes.health import router as health_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the document store at startup, close it at shutdown."""
    settings = get_settings()

    store = PostgresDocumentStore(settings.DATABASE_URL)
    await store.connect()
    logger.info("lifespan.startup")

    if settings.SETUP_SCHEMA:
        await store.setup_schema()
        logger.info("lifespan.schema_ready")

    # Store on app.state for request handlers
    app.state.store = store

    logger.info("lifespan.ready")
    yield

    logger.info("lifespan.shutdown")
    await store.close()


app = FastAPI(
    title="deal-context",
    description="Aggregates deal context from the tenant document store and assembles coaching prompts",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(coach_router)
