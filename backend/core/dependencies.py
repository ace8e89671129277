"""
FastAPI dependency injection module for the Sales Pulse backend.

This module provides reusable FastAPI dependencies for configuration access
and the service objects used by the routers. Endpoint handlers never build
clients themselves; they declare one of the type aliases below and FastAPI
resolves it per request.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- get_source_cache: Process-wide SourceCache shared by all requests
- get_metrics_service: MetricsQueryService wired from settings
- get_analyst: LLM-backed MetricsAnalyst wired from settings
- SettingsDep / MetricsServiceDep / AnalystDep: Annotated aliases

Testing:
    Every factory can be replaced through FastAPI's override mechanism:

        app.dependency_overrides[get_metrics_service] = lambda: fake_service
        app.dependency_overrides[get_analyst] = lambda: fake_analyst

Usage Examples:
    @router.get("/metrics-data")
    async def get_metrics_data(
        service: MetricsServiceDep,
    ) -> MetricsResponse:
        date_range = service.resolve_date_range(days=7)
        return await service.get_metrics(date_range)

See Also:
    - backend/core/config.py: Settings management and environment variables
    - backend/api/*.py: Endpoint handlers using these dependencies
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from backend.core.config import Settings, get_settings
from backend.services.ai_query import MetricsAnalyst, OpenAIAnalyst
from backend.services.cache import SourceCache
from backend.services.meeting_sources import meeting_source_from_settings
from backend.services.metrics_query import MetricsQueryService
from backend.services.vendor_metrics import VendorMetricsClient


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so tests can override it:

        app.dependency_overrides[get_settings_dependency] = lambda: test_settings
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# Service Dependencies
# =============================================================================

@lru_cache()
def get_source_cache() -> SourceCache:
    """
    Return the process-wide SourceCache.

    Cached so meeting records and the roster survive across requests for
    the configured TTL.
    """
    return SourceCache(ttl_seconds=get_settings().source_cache_ttl_seconds)


def get_metrics_service(settings: SettingsDep) -> MetricsQueryService:
    """
    Build the MetricsQueryService for a request.

    The dialer client and meeting source are stateless and cheap to build;
    the cache they read through is shared.
    """
    return MetricsQueryService.from_settings(
        settings,
        vendor=VendorMetricsClient.from_settings(settings),
        meeting_source=meeting_source_from_settings(settings),
        cache=get_source_cache(),
    )


def get_analyst(settings: SettingsDep) -> MetricsAnalyst:
    """Build the LLM analyst used by the natural-language query endpoint."""
    return OpenAIAnalyst.from_settings(settings)


MetricsServiceDep = Annotated[MetricsQueryService, Depends(get_metrics_service)]

AnalystDep = Annotated[MetricsAnalyst, Depends(get_analyst)]
