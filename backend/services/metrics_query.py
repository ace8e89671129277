"""
Metrics query orchestration.

MetricsQueryService is the single entry point used by the API layer. For one
query it:

    1. Resolves the requested date range (explicit ISO dates or a lookback
       in days).
    2. Fetches the dialer snapshot and the external meeting records
       concurrently. Meeting records and the roster come from a TTL cache.
    3. Runs the reconciliation engine.

Failure semantics:
    - Dialer failure (VendorAPIError) propagates and aborts the query.
    - Meeting source failure or timeout is logged and the response carries
      dialer-only rows with ``externalSource.available = False``.
    - Roster failure is logged and every row gets team 'NA'.
"""

import asyncio
import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from backend.core.config import Settings
from backend.models import (
    DateRange,
    MatchPolicy,
    MetricLabel,
    MetricsResponse,
    RosterSummary,
    UsersResponse,
)
from backend.services.cache import SourceCache
from backend.services.meeting_sources import (
    MeetingLoad,
    MeetingSourceBase,
    MeetingSourceError,
    group_meetings_by_name,
)
from backend.services.reconciliation import reconcile
from backend.services.roster import Roster, RosterError, load_roster
from backend.services.vendor_metrics import VendorMetricsClient

logger = logging.getLogger(__name__)

ROSTER_CACHE_KEY = 'roster'


class InvalidDateRangeError(ValueError):
    """The requested date range is incomplete, unparseable or inverted."""
    pass


class MetricsQueryService:
    """
    Orchestrates one metrics query across the dialer, meeting source and roster.

    Args:
        vendor: Dialer client.
        meeting_source: External meeting source, or None for dialer-only.
        cache: Shared cache for meeting records and the roster.
        roster_path: Roster file; None uses the packaged default.
        roster_policy: Fuzzy matching policy for roster lookups.
        excluded_sources: Lead sources never counted as external meetings.
        meeting_timeout: Seconds to wait for the meeting source.
        default_lookback_days: Lookback used when no range is requested.
        primary_metric: Default metric rows are sorted by.
    """

    def __init__(
        self,
        vendor: VendorMetricsClient,
        meeting_source: Optional[MeetingSourceBase],
        cache: SourceCache,
        roster_path: Optional[str] = None,
        roster_policy: MatchPolicy = MatchPolicy.TOKEN_OVERLAP,
        excluded_sources: Iterable[str] = (),
        meeting_timeout: float = 10.0,
        default_lookback_days: int = 1,
        primary_metric: MetricLabel = MetricLabel.DIAL,
    ):
        self.vendor = vendor
        self.meeting_source = meeting_source
        self.cache = cache
        self.roster_path = roster_path
        self.roster_policy = roster_policy
        self.excluded_sources = list(excluded_sources)
        self.meeting_timeout = meeting_timeout
        self.default_lookback_days = default_lookback_days
        self.primary_metric = primary_metric

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        vendor: VendorMetricsClient,
        meeting_source: Optional[MeetingSourceBase],
        cache: SourceCache,
    ) -> 'MetricsQueryService':
        return cls(
            vendor=vendor,
            meeting_source=meeting_source,
            cache=cache,
            roster_path=settings.roster_path,
            roster_policy=settings.roster_match_policy,
            excluded_sources=settings.excluded_lead_sources,
            meeting_timeout=settings.meeting_source_timeout_seconds,
            default_lookback_days=settings.default_lookback_days,
            primary_metric=settings.primary_sort_metric,
        )

    # =========================================================================
    # Date ranges
    # =========================================================================

    def resolve_date_range(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> DateRange:
        """
        Turn query parameters into an inclusive DateRange.

        An explicit ISO start/end pair wins. Otherwise the range is
        [today - days, today], with ``days`` defaulting to the configured
        lookback.

        Raises:
            InvalidDateRangeError: If only one bound is given, a bound is not
                an ISO date, ``days`` is negative, or start > end.

        Example:
            >>> service.resolve_date_range(days=7, today=date(2025, 10, 26))
            DateRange(start=datetime.date(2025, 10, 19), end=datetime.date(2025, 10, 26))
        """
        today = today or date.today()

        if start_date or end_date:
            if not (start_date and end_date):
                raise InvalidDateRangeError("Both startDate and endDate are required")
            try:
                start = date.fromisoformat(start_date)
                end = date.fromisoformat(end_date)
            except ValueError:
                raise InvalidDateRangeError(
                    f"Dates must be YYYY-MM-DD, got startDate={start_date!r} endDate={end_date!r}"
                )
            if start > end:
                raise InvalidDateRangeError(f"startDate {start} is after endDate {end}")
            return DateRange(start=start, end=end)

        lookback = self.default_lookback_days if days is None else days
        if lookback < 0:
            raise InvalidDateRangeError(f"days must be >= 0, got {lookback}")
        return DateRange(start=today - timedelta(days=lookback), end=today)

    # =========================================================================
    # Sources
    # =========================================================================

    async def _load_meetings(self) -> Optional[MeetingLoad]:
        """Load meeting records through the cache, or None when degraded."""
        if self.meeting_source is None:
            return None

        try:
            return await asyncio.wait_for(
                self.cache.get_or_refresh(self.meeting_source.cache_key, self.meeting_source.load),
                timeout=self.meeting_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Meeting source timed out after {self.meeting_timeout}s; using dialer-only data"
            )
        except MeetingSourceError as e:
            logger.warning(f"Meeting source unavailable, using dialer-only data: {e}")
        except Exception as e:
            logger.warning(
                f"Meeting source failed unexpectedly, using dialer-only data: {e}", exc_info=True
            )
        return None

    async def _load_roster(self) -> Optional[Roster]:
        async def loader() -> Roster:
            return await asyncio.to_thread(load_roster, self.roster_path, self.roster_policy)

        key = f"{ROSTER_CACHE_KEY}:{self.roster_path or 'default'}"
        try:
            return await self.cache.get_or_refresh(key, loader)
        except RosterError as e:
            logger.warning(f"Roster unavailable, teams will be 'NA': {e}")
            return None

    # =========================================================================
    # Operations
    # =========================================================================

    async def get_metrics(
        self,
        date_range: DateRange,
        primary_metric: Optional[MetricLabel] = None,
    ) -> MetricsResponse:
        """
        Build the reconciled metrics table for a date range.

        Raises:
            InvalidDateRangeError: If the range is inverted.
            VendorAPIError: If the dialer fails.
        """
        if date_range.is_inverted:
            raise InvalidDateRangeError(f"startDate {date_range.start} is after endDate {date_range.end}")

        primary_metric = primary_metric or self.primary_metric

        logger.info(f"Fetching metrics for {date_range.start} to {date_range.end}")

        snapshot, meetings, roster = await asyncio.gather(
            self.vendor.fetch_snapshot(date_range),
            self._load_meetings(),
            self._load_roster(),
        )

        groups = group_meetings_by_name(meetings.records) if meetings is not None else None

        result = reconcile(
            vendor_users=snapshot.users,
            vendor_values=snapshot.values,
            meeting_groups=groups,
            roster=roster,
            date_range=date_range,
            excluded_sources=self.excluded_sources,
            primary_metric=primary_metric,
        )

        if meetings is not None:
            result.stats.recordsLoaded = len(meetings.records)
            result.stats.recordsDropped = meetings.dropped

        logger.info(
            f"Built {len(result.rows)} metric rows "
            f"(external source available={result.stats.available}, "
            f"{result.stats.groupsMatched} groups matched)"
        )

        return MetricsResponse(
            rows=result.rows,
            dateRange=date_range,
            sortedBy=primary_metric,
            externalSource=result.stats,
        )

    async def get_users(self) -> UsersResponse:
        """Active dialer users and the dialer's team payload."""
        return await self.vendor.fetch_users()

    async def get_roster_summary(self) -> RosterSummary:
        roster = await self._load_roster()
        if roster is None:
            return RosterSummary()
        return roster.summary()


__all__ = [
    'InvalidDateRangeError',
    'MetricsQueryService',
]
