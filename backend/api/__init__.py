"""
Backend API package initialization.

This package contains FastAPI router modules for the Sales Pulse dashboard:
- metrics: reconciled metrics table, active dialer users, roster summary
- ai_query: natural-language questions answered over the metrics table

All routers are mounted under /api.
"""

from fastapi import APIRouter

# Import router modules
from backend.api.metrics import router as metrics_router
from backend.api.ai_query import router as ai_query_router

# Create main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(metrics_router, tags=["metrics"])
api_router.include_router(ai_query_router, tags=["ai-query"])

# Export all routers for selective imports
__all__ = [
    "api_router",
    "metrics_router",
    "ai_query_router",
]
