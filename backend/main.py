"""
FastAPI application entry point for the Sales Pulse API.

This module configures logging and CORS, registers the API routers under
/api, and starts the ASGI server when run directly.

Dependency injection keeps endpoint handlers free of client construction;
see backend/core/dependencies.py.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import __version__
from backend.api import api_router
from backend.core.config import get_settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup the effective source configuration is logged; missing
    credentials are reported but do not stop the server, since /health and
    /api/roster work without them.
    """
    settings = get_settings()
    logger.info("Sales Pulse API starting")
    if not settings.vendor_api_key:
        logger.warning("VENDOR_API_KEY is not set; metrics endpoints will fail")
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; /api/ai-query will fail")
    logger.info(
        f"Meeting source: {settings.meeting_feed_url or settings.meeting_workbook_path or 'none'}"
    )

    yield

    logger.info("Sales Pulse API shutting down")


# Create FastAPI application
app = FastAPI(
    title="Sales Pulse API",
    version=__version__,
    description=(
        "FastAPI backend for the Sales Pulse dashboard. "
        "Reconciles dialer funnel metrics with manually logged meetings "
        "and the team roster, and answers natural-language questions about them."
    ),
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routers
app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name and version
    """
    return {
        "name": "Sales Pulse API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
