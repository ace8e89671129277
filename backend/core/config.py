"""
Settings and environment management module for the Sales Pulse backend.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for development
- Singleton pattern via @lru_cache for efficient access
- Optional credentials for the dialer API and the OpenAI completion service
- Reconciliation defaults (excluded lead source, primary sort metric, cache TTL)

Environment Variables:
- VENDOR_API_KEY: Dialer API key (required for any metrics query)
- VENDOR_HOSTNAME: Dialer API host (default: api.trellus.ai)
- VENDOR_TEAM_ID: Optional team scope for every dialer request
- MEETING_WORKBOOK_PATH: Path to the "meetings booked" workbook (.xlsx or .csv)
- MEETING_FEED_URL: Remote JSON feed of meeting rows (used when no workbook is set)
- ROSTER_PATH: Roster file (JSON object or CSV); packaged roster when unset
- OPENAI_API_KEY: OpenAI API key (for the natural-language query endpoint)

Usage:
    from backend.core.config import get_settings

    settings = get_settings()
    ttl = settings.source_cache_ttl_seconds
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from backend.models.enums import MatchPolicy, MetricLabel


# Lead source whose meetings never count toward totals
DEFAULT_EXCLUDED_LEAD_SOURCE: str = 'Cold Calls (Clay + Trellus)'


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        vendor_api_key: Dialer API key. Queries fail fast when it is missing.
        vendor_hostname: Dialer API hostname (HTTPS is always used).
        vendor_team_id: Optional team id forwarded with every dialer request.
        vendor_timeout_seconds: Per-request timeout for dialer calls.
        vendor_cumulative_stages: When True every stage filter is ANDed with the
            filters of all earlier stages (see DESIGN.md for the policy).
        meeting_workbook_path: Spreadsheet of manually logged meetings.
        meeting_sheet_name: Sheet to read; the first sheet when unset.
        meeting_feed_url: Remote JSON feed returning ``{"data": [...]}`` rows.
        meeting_source_timeout_seconds: Upper bound on the external meeting fetch.
        roster_path: Roster file; the packaged ``data/roster.json`` when unset.
        roster_match_policy: Fuzzy policy used by the roster lookup.
        excluded_lead_sources: Lead sources that never count toward Meeting.
        source_cache_ttl_seconds: TTL of the spreadsheet/roster read-through cache.
        primary_sort_metric: Metric label rows are sorted by (descending).
        default_lookback_days: Lookback used when no explicit range is given.
        openai_api_key: OpenAI API key for the natural-language query box.
        openai_model: Chat model used for extraction and summaries.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Dialer (vendor metrics) API
    # =========================================================================

    vendor_api_key: Optional[str] = None
    vendor_hostname: str = 'api.trellus.ai'
    vendor_team_id: Optional[str] = None
    vendor_timeout_seconds: float = 30.0

    # Meeting = BOOKED sessions only unless this is switched on
    vendor_cumulative_stages: bool = False

    # =========================================================================
    # External meeting source (spreadsheet or remote feed)
    # =========================================================================

    meeting_workbook_path: Optional[str] = None
    meeting_sheet_name: Optional[str] = None
    meeting_feed_url: Optional[str] = None
    meeting_source_timeout_seconds: float = 10.0

    # =========================================================================
    # Roster
    # =========================================================================

    roster_path: Optional[str] = None
    roster_match_policy: MatchPolicy = MatchPolicy.TOKEN_OVERLAP

    # =========================================================================
    # Reconciliation defaults
    # =========================================================================

    excluded_lead_sources: List[str] = [DEFAULT_EXCLUDED_LEAD_SOURCE]
    source_cache_ttl_seconds: float = 300.0
    primary_sort_metric: MetricLabel = MetricLabel.DIAL
    default_lookback_days: int = 1

    # =========================================================================
    # OpenAI (natural-language query box)
    # =========================================================================

    openai_api_key: Optional[str] = None
    openai_model: str = 'gpt-4o'
    openai_extraction_temperature: float = 0.1
    openai_summary_temperature: float = 0.3

    # =========================================================================
    # HTTP server
    # =========================================================================

    cors_allow_origins: List[str] = [
        'http://localhost:3000',
        'http://localhost:5173',
    ]


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The cached settings instance.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
