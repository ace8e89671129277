"""
Reconciliation engine: joins dialer users with spreadsheet meetings and the roster.

For every active dialer user this produces one MetricRow:

    1. Funnel counts come from the dialer, looked up by user id (missing -> 0).
    2. Every meeting group whose name fuzzy-matches the user's display name
       contributes its records that
         - have a parseable timestamp,
         - fall inside the date range (inclusive, by calendar day), and
         - do not come from an excluded lead source.
    3. Meeting = dialer BOOKED count + contributed records.
    4. Team comes from the roster ('NA' when absent).
    5. Meeting details are sorted newest first.

Rows are then sorted by the primary metric, descending. The sort is stable,
so users with equal values keep the dialer's order.

A group may match several dialer users (two reps sharing a first and last
name); its records then count for each of them.

The engine is a pure function of its inputs and does no IO.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from backend.models import (
    DateRange,
    ExternalSourceStats,
    MeetingCounts,
    MetricLabel,
    MetricRow,
    VendorUser,
)
from backend.services.meeting_sources import MeetingGroup, MeetingRecord
from backend.services.name_matching import names_match
from backend.services.roster import UNASSIGNED_TEAM, Roster

logger = logging.getLogger(__name__)


@dataclass
class RangeFilterResult:
    """Records of one group split by date-range eligibility."""
    in_range: List[MeetingRecord] = field(default_factory=list)
    out_of_range: int = 0
    unparseable: int = 0


@dataclass
class ReconciliationResult:
    rows: List[MetricRow]
    stats: ExternalSourceStats


def _source_key(source: str) -> str:
    return source.strip().casefold()


def filter_records_for_range(records: Iterable[MeetingRecord], date_range: DateRange) -> RangeFilterResult:
    """
    Split records into those inside ``date_range`` and the rest.

    Bounds are inclusive at day granularity. Records without a parsed
    timestamp are never in range and are logged.
    """
    result = RangeFilterResult()
    for record in records:
        if record.timestamp is None:
            logger.warning(
                f"Row {record.row_number}: meeting for {record.name!r} has no parseable timestamp; excluded"
            )
            result.unparseable += 1
            continue
        if date_range.start <= record.timestamp.date() <= date_range.end:
            result.in_range.append(record)
        else:
            result.out_of_range += 1
    return result


def sort_rows(rows: Sequence[MetricRow], primary_metric: MetricLabel = MetricLabel.DIAL) -> List[MetricRow]:
    """Sort rows by ``primary_metric`` descending, keeping input order on ties."""
    label = MetricLabel(primary_metric).value
    return sorted(rows, key=lambda row: row.values.get(label, 0), reverse=True)


def _eligible_records(
    group: MeetingGroup,
    date_range: DateRange,
    excluded: set,
    stats: ExternalSourceStats,
) -> List[MeetingRecord]:
    split = filter_records_for_range(group.records, date_range)
    stats.recordsUnparseable += split.unparseable

    eligible = []
    for record in split.in_range:
        stats.recordsInRange += 1
        if _source_key(record.source_of_lead) in excluded:
            stats.recordsExcludedBySource += 1
            continue
        eligible.append(record)
    return eligible


def reconcile(
    vendor_users: Sequence[VendorUser],
    vendor_values: Dict[str, Dict[str, int]],
    meeting_groups: Optional[Dict[str, MeetingGroup]],
    roster: Optional[Roster],
    date_range: DateRange,
    excluded_sources: Iterable[str] = (),
    primary_metric: MetricLabel = MetricLabel.DIAL,
    labels: Sequence[MetricLabel] = tuple(MetricLabel),
) -> ReconciliationResult:
    """
    Build the metrics table from the three sources.

    Args:
        vendor_users: Active dialer users, in dialer order.
        vendor_values: Metric label value -> (user id -> count).
        meeting_groups: Spreadsheet groups keyed by normalized name, or None
            when the external source is unavailable (dialer-only rows).
        roster: Team lookup; None assigns 'NA' to everyone.
        date_range: Inclusive day range of the query.
        excluded_sources: Lead sources whose meetings never count (already
            counted by the dialer).
        primary_metric: Metric used to order rows.
        labels: Metrics reported on every row.

    Returns:
        ReconciliationResult with sorted rows and external source stats.
        ``recordsLoaded``/``recordsDropped`` are left for the caller, which
        knows how the source was read.
    """
    stats = ExternalSourceStats(available=meeting_groups is not None)
    groups = meeting_groups or {}
    excluded = {_source_key(source) for source in excluded_sources if source}

    if groups and date_range.is_inverted:
        logger.warning(
            f"Inverted date range {date_range.start} > {date_range.end}; no external meetings counted"
        )

    # Which users each group matched, in group order
    matched_users: Dict[str, List[int]] = {key: [] for key in groups}
    for index, user in enumerate(vendor_users):
        for key in groups:
            if names_match(user.user_name, key):
                matched_users[key].append(index)

    contributions: Dict[int, List[MeetingRecord]] = {}
    for key, group in groups.items():
        if not matched_users[key]:
            stats.groupsUnmatched += 1
            stats.unmatchedNames.append(group.display_name)
            continue
        stats.groupsMatched += 1
        if date_range.is_inverted:
            continue
        eligible = _eligible_records(group, date_range, excluded, stats)
        for index in matched_users[key]:
            contributions.setdefault(index, []).extend(eligible)

    if stats.unmatchedNames:
        logger.info(f"{len(stats.unmatchedNames)} meeting names matched no dialer user: {stats.unmatchedNames}")

    meeting_label = MetricLabel.MEETING.value
    rows: List[MetricRow] = []
    for index, user in enumerate(vendor_users):
        values = {
            label.value: vendor_values.get(label.value, {}).get(user.user_id, 0)
            for label in labels
        }
        records = contributions.get(index, [])
        vendor_meetings = values.get(meeting_label, 0)
        external_meetings = len(records)
        values[meeting_label] = vendor_meetings + external_meetings

        details = sorted(
            (record.to_detail() for record in records),
            key=lambda detail: detail.timestamp,
            reverse=True,
        )

        rows.append(MetricRow(
            userId=user.user_id,
            userName=user.user_name,
            values=values,
            team=roster.team_for(user.user_name) if roster is not None else UNASSIGNED_TEAM,
            meetingCounts=MeetingCounts(
                vendor=vendor_meetings,
                external=external_meetings,
                total=vendor_meetings + external_meetings,
            ),
            meetingDetails=details,
        ))

    return ReconciliationResult(rows=sort_rows(rows, primary_metric), stats=stats)


__all__ = [
    'RangeFilterResult',
    'ReconciliationResult',
    'filter_records_for_range',
    'sort_rows',
    'reconcile',
]
