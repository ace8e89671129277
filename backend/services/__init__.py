"""
Backend Services Module

Business logic of the Sales Pulse backend. Nothing in here knows about
FastAPI; the API layer (backend/api/) calls into these services and
translates their exceptions into HTTP responses.

Services:
- name_matching: name normalization and fuzzy person matching
- vendor_metrics: dialer API client and funnel stage definitions
- meeting_sources: spreadsheet / feed adapters for manually logged meetings
- roster: person -> team lookup
- cache: read-through TTL cache for the meeting source and roster
- reconciliation: joins the three sources into metric rows
- metrics_query: date range resolution and query orchestration
- ai_query: natural-language questions answered by an LLM
"""

# =============================================================================
# Name Matching
# =============================================================================

from backend.services.name_matching import (
    normalize_name,
    names_match,
    names_match_containment,
    get_matcher,
)

# =============================================================================
# Source Adapters
# =============================================================================

from backend.services.vendor_metrics import (
    VendorAPIError,
    VendorConfigurationError,
    VendorMetricsClient,
    VendorSnapshot,
    DEFAULT_STAGE_CONFIG,
    build_metric_select,
    process_metric_data,
)

from backend.services.meeting_sources import (
    MeetingSourceError,
    MeetingRecord,
    MeetingGroup,
    MeetingSourceBase,
    WorkbookMeetingSource,
    RemoteMeetingSource,
    load_meeting_records,
    group_meetings_by_name,
    meeting_source_from_settings,
)

from backend.services.roster import (
    RosterError,
    Roster,
    load_roster,
)

from backend.services.cache import SourceCache

# =============================================================================
# Reconciliation and Orchestration
# =============================================================================

from backend.services.reconciliation import (
    ReconciliationResult,
    reconcile,
    sort_rows,
)

from backend.services.metrics_query import (
    InvalidDateRangeError,
    MetricsQueryService,
)

from backend.services.ai_query import (
    LLMResponseError,
    LLMServiceError,
    MetricsAnalyst,
    OpenAIAnalyst,
    answer_query,
)


__all__ = [
    # name_matching
    'normalize_name',
    'names_match',
    'names_match_containment',
    'get_matcher',
    # vendor_metrics
    'VendorAPIError',
    'VendorConfigurationError',
    'VendorMetricsClient',
    'VendorSnapshot',
    'DEFAULT_STAGE_CONFIG',
    'build_metric_select',
    'process_metric_data',
    # meeting_sources
    'MeetingSourceError',
    'MeetingRecord',
    'MeetingGroup',
    'MeetingSourceBase',
    'WorkbookMeetingSource',
    'RemoteMeetingSource',
    'load_meeting_records',
    'group_meetings_by_name',
    'meeting_source_from_settings',
    # roster
    'RosterError',
    'Roster',
    'load_roster',
    # cache
    'SourceCache',
    # reconciliation
    'ReconciliationResult',
    'reconcile',
    'sort_rows',
    # metrics_query
    'InvalidDateRangeError',
    'MetricsQueryService',
    # ai_query
    'LLMResponseError',
    'LLMServiceError',
    'MetricsAnalyst',
    'OpenAIAnalyst',
    'answer_query',
]
