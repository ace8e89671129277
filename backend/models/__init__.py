"""
Package initialization file for backend models.

This module exports all Pydantic schemas and enumerations from schemas.py and
enums.py, making them importable from backend.models directly.

Usage:
    from backend.models import (
        MetricLabel,
        MetricRow,
        MetricsResponse,
        # ... etc
    )
"""

# =============================================================================
# Enums
# =============================================================================

from backend.models.enums import (
    MetricLabel,
    SessionStage,
    FilterOperator,
    BackendTable,
    MeetingSource,
    MatchPolicy,
)


# =============================================================================
# Schemas
# =============================================================================

from backend.models.schemas import (
    # Dialer API
    VendorUser,
    UsersResponse,
    # Reconciled metrics
    MeetingDetail,
    MeetingCounts,
    MetricRow,
    DateRange,
    ExternalSourceStats,
    MetricsResponse,
    # Natural-language query
    AIQueryRequest,
    DateExtraction,
    AIQueryResponse,
    # Roster
    RosterSummary,
)


__all__ = [
    # Enums
    'MetricLabel',
    'SessionStage',
    'FilterOperator',
    'BackendTable',
    'MeetingSource',
    'MatchPolicy',
    # Schemas
    'VendorUser',
    'UsersResponse',
    'MeetingDetail',
    'MeetingCounts',
    'MetricRow',
    'DateRange',
    'ExternalSourceStats',
    'MetricsResponse',
    'AIQueryRequest',
    'DateExtraction',
    'AIQueryResponse',
    'RosterSummary',
]
