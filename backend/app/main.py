"""Main FastAPI application entry point."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.fixtures import router as fixtures_router
from app.api.routes import router
from app.config import get_settings
from app.db import close_pool, init_pool

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="FPL Transfer Recommendations",
    description="Ranked, roster-aware transfer, captain and differential suggestions for FPL",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)
app.include_router(fixtures_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.on_event("startup")
async def startup_event() -> None:
    """Log startup information and connect the recommendation store."""
    logger.info("Starting FPL Transfer Recommendations backend")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    logger.info(f"FPL API base: {settings.fpl_api_base_url}")

    if not settings.db_connection_string:
        logger.warning("DATABASE_URL not set; recommendation endpoints will return 503")
        return

    try:
        await init_pool()
    except Exception as e:
        logger.warning(f"Database unavailable, recommendation endpoints will return 503: {e}")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """Cleanup on shutdown."""
    logger.info("Shutting down FPL Transfer Recommendations backend")
    await close_pool()
