"""
FastAPI router module for the metrics table.

Implements GET /api/metrics-data (reconciled funnel metrics per dialer user),
GET /api/users (active dialer users) and GET /api/roster (roster summary).

Date range parameters for /api/metrics-data:
- startDate & endDate: explicit inclusive range, YYYY-MM-DD
- days: lookback from today when no explicit range is given (default 1)

Error mapping:
- InvalidDateRangeError -> 400
- VendorAPIError -> 502 with the dialer's message
- anything else -> 500
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from backend.core.dependencies import MetricsServiceDep
from backend.models import MetricLabel, MetricsResponse, RosterSummary, UsersResponse
from backend.services.metrics_query import InvalidDateRangeError
from backend.services.vendor_metrics import VendorAPIError


# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/metrics-data", response_model=MetricsResponse)
async def get_metrics_data(
    service: MetricsServiceDep,
    startDate: Optional[str] = Query(default=None, description="Start date (YYYY-MM-DD)"),
    endDate: Optional[str] = Query(default=None, description="End date (YYYY-MM-DD)"),
    days: Optional[int] = Query(default=None, ge=0, description="Lookback in days when no range is given"),
    sortBy: Optional[MetricLabel] = Query(default=None, description="Metric to sort rows by (default from settings)"),
) -> MetricsResponse:
    """
    Get reconciled metrics for every active dialer user.

    Args:
        startDate: Inclusive start date
        endDate: Inclusive end date
        days: Lookback in days, used only when no explicit range is given
        sortBy: Metric rows are ordered by, descending

    Returns:
        MetricsResponse with rows, the resolved date range and external
        source statistics
    """
    try:
        date_range = service.resolve_date_range(startDate, endDate, days)
        return await service.get_metrics(date_range, primary_metric=sortBy)

    except InvalidDateRangeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except VendorAPIError as e:
        logger.error(f"Dialer error while building metrics: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Error getting metrics data: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to get metrics data: {str(e)}"
        )


@router.get("/users", response_model=UsersResponse)
async def get_users(service: MetricsServiceDep) -> UsersResponse:
    """Get active dialer users (can dial and team is active)."""
    try:
        return await service.get_users()

    except VendorAPIError as e:
        logger.error(f"Dialer error while fetching users: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Error fetching users: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch users: {str(e)}"
        )


@router.get("/roster", response_model=RosterSummary)
async def get_roster(service: MetricsServiceDep) -> RosterSummary:
    """Get roster size and team distribution."""
    try:
        return await service.get_roster_summary()

    except Exception as e:
        logger.error(f"Error loading roster: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to load roster: {str(e)}"
        )
