"""
Inquiry Memory — Application Entry Point

FastAPI application for the semantic memory subsystem: related-session
lookups, concept search, cross-session synthesis, document indexing,
and the background metadata refresh job.

Start locally:
    uvicorn inquiry_memory.main:app --host 0.0.0.0 --port 8002 --reload
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from sqlalchemy import text

from inquiry_memory.api.v1.documents import router as documents_router
from inquiry_memory.api.v1.metadata import router as metadata_router
from inquiry_memory.api.v1.search import router as search_router
from inquiry_memory.api.v1.similarity import router as similarity_router
from inquiry_memory.api.v1.synthesis import router as synthesis_router
from inquiry_memory.core.config import settings
from inquiry_memory.core.container import build_services
from inquiry_memory.core.database import (
    create_tables,
    dispose_engine,
    get_engine,
    get_session_factory,
)
from inquiry_memory.core.logging import setup_logging
from inquiry_memory.services.embeddings import SentenceTransformerBackend

# Initialize logging before any log statements
setup_logging()
logger = logging.getLogger(__name__)


async def wait_for_db(retries: int = 10, delay: float = 1.0) -> bool:
    """
    Wait for the database to accept connections.

    Useful in containerized environments where the database may start
    after the application. Retries with a fixed delay.

    Returns:
        True if a connection was established, False if all retries failed.
    """
    engine = get_engine()
    for attempt in range(retries):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connection verified (%s)", engine.dialect.name)
            return True
        except Exception as e:
            logger.warning(
                "Waiting for database (%d/%d)... Error: %s", attempt + 1, retries, e
            )
            await asyncio.sleep(delay)
    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
        1. Validate database connectivity (blocks startup on failure).
        2. Create tables on SQLite installs (PostgreSQL uses Alembic).
        3. Build services, start the enrichment worker and the
           metadata refresh job.

    Shutdown:
        1. Stop the refresh job, then drain the enrichment queue.
        2. Release local embedding models and dispose the engine.
    """
    logger.info("Starting %s...", settings.PROJECT_NAME)
    logger.info("Log Level: %s", settings.LOG_LEVEL)

    if not await wait_for_db():
        logger.critical("Could not connect to the database. Shutting down.")
        raise RuntimeError("Database connection failed")

    engine = get_engine()
    if engine.dialect.name == "sqlite":
        await create_tables(engine)

    services = build_services(settings, get_session_factory())
    app.state.services = services

    services.queue.start()
    if settings.METADATA_REFRESH_ENABLED:
        services.scheduler.start()
    else:
        logger.info("Metadata refresh job disabled")

    yield

    logger.info("Shutting down %s...", settings.PROJECT_NAME)
    await services.scheduler.stop()
    await services.queue.stop()
    SentenceTransformerBackend.reset()
    await dispose_engine()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Semantic memory over past inquiry sessions: retrieval and synthesis.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(similarity_router, prefix="/api/v1/similarity", tags=["Similarity"])
app.include_router(search_router, prefix="/api/v1/search", tags=["Search"])
app.include_router(synthesis_router, prefix="/api/v1/synthesize", tags=["Synthesis"])
app.include_router(documents_router, prefix="/api/v1/documents", tags=["Documents"])
app.include_router(metadata_router, prefix="/api/v1/metadata", tags=["Metadata"])


@app.get("/health")
async def health_check(request: Request) -> dict:
    """Health check for load balancers and orchestrators."""
    services = getattr(request.app.state, "services", None)
    return {
        "status": "ok",
        "service": "inquiry-memory",
        "environment": settings.ENVIRONMENT,
        "metadata_refresh": bool(services and services.scheduler.running),
        "enrichment_pending": services.queue.pending if services else 0,
    }
