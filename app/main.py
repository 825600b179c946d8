"""
Royalty Portal Core - FastAPI Application

Royalty statement ingestion, quarterly reporting and artist withdrawals.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.config import settings
from app.core.database import engine, Base
from app.routers.imports import router as imports_router
from app.routers.royalties import router as royalties_router
from app.routers.exports import router as exports_router
from app.routers.payments import router as payments_router

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Create tables on startup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Create composite indexes if they don't exist
    async with engine.begin() as conn:
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_royalties_artist_date ON royalties(artist_id, broadcast_date)",
            "CREATE INDEX IF NOT EXISTS idx_payment_requests_artist_status ON payment_requests(artist_id, status)",
        ]
        for idx_sql in indexes:
            await conn.execute(text(idx_sql))

    logger.info("Database ready")
    yield
    # Cleanup on shutdown
    await engine.dispose()


app = FastAPI(
    title="Royalty Portal Core",
    description="Royalty CSV ingestion, quarterly aggregation and payment requests",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(imports_router)
app.include_router(royalties_router)
app.include_router(exports_router)
app.include_router(payments_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
