"""
Ledger Reports - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import async_session_factory, close_db, init_db
from app.routers import general_ledger
from app.services.report_job_service import create_report_job_service
from app.utils.error_handling import setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")
    logger.info(
        f"Tickets: {settings.ticket_store_backend} store, "
        f"{settings.report_dispatch_mode} dispatch, TTL {settings.ticket_ttl_hours}h"
    )

    # Create tables in development only
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")

    app.state.report_job_service = create_report_job_service(async_session_factory, settings)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await app.state.report_job_service.close()
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="General ledger and trial balance reports built as pollable background jobs",
    version="0.1.0",
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)


# ===========================================
# API ROUTES
# ===========================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "ticket_store": settings.ticket_store_backend,
    }


# ===========================================
# INCLUDE ROUTERS
# ===========================================

app.include_router(general_ledger.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=5120,
        reload=settings.is_development,
    )
