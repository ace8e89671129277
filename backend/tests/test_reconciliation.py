"""
Test suite for the reconciliation engine.

The tests verify:
1. Meeting = dialer BOOKED count + matched, in-range, non-excluded records
2. Date filtering is inclusive by calendar day; unparseable timestamps are excluded
3. Excluded lead sources never count
4. Meeting details are sorted newest first
5. Rows are sorted by the primary metric, stable on ties
6. Roster teams, missing vendor values and external source statistics
7. Dialer-only rows when the external source is unavailable
"""

from datetime import date, datetime

import pytest

from backend.models import DateRange, MetricLabel, MetricRow, VendorUser
from backend.services.meeting_sources import (
    MeetingRecord,
    group_meetings_by_name,
    load_meeting_records,
)
from backend.services.reconciliation import (
    filter_records_for_range,
    reconcile,
    sort_rows,
)
from backend.services.roster import Roster

from backend.tests.conftest import EXCLUDED_SOURCE


@pytest.fixture
def meeting_groups(meeting_rows):
    return group_meetings_by_name(load_meeting_records(meeting_rows).records)


@pytest.fixture
def roster() -> Roster:
    return Roster({'Aashima Soni': 'Botzilla', 'HARSH RAJ': 'Botzilla'})


def run(vendor_users, vendor_values, groups, date_range, roster=None, **kwargs):
    kwargs.setdefault('excluded_sources', [EXCLUDED_SOURCE])
    return reconcile(
        vendor_users=vendor_users,
        vendor_values=vendor_values,
        meeting_groups=groups,
        roster=roster,
        date_range=date_range,
        **kwargs,
    )


def row_for(result, user_id) -> MetricRow:
    return next(row for row in result.rows if row.userId == user_id)


class TestMeetingTotals:
    """Meeting totals combine dialer and spreadsheet meetings."""

    def test_end_to_end_meeting_total(self, vendor_users, vendor_values, meeting_groups, october_range, roster):
        result = run(vendor_users, vendor_values, meeting_groups, october_range, roster)

        aashima = row_for(result, 'u1')
        # 2 dialer meetings + 2 spreadsheet meetings (excluded source and
        # September record do not count)
        assert aashima.values['Meeting'] == 4
        assert aashima.meetingCounts.vendor == 2
        assert aashima.meetingCounts.external == 2
        assert aashima.meetingCounts.total == 4
        assert aashima.team == 'Botzilla'

    def test_other_metrics_untouched(self, vendor_users, vendor_values, meeting_groups, october_range):
        result = run(vendor_users, vendor_values, meeting_groups, october_range)

        aashima = row_for(result, 'u1')
        assert aashima.values['Dial'] == 120
        assert aashima.values['Connect'] == 40
        assert aashima.values['Pitch'] == 12
        assert aashima.values['Conversation'] == 6

    def test_fuzzy_match_across_spelling(self, vendor_users, vendor_values, meeting_groups, october_range):
        # Dialer says "HARSH RAJ", sheet says "Harsh Raj"
        result = run(vendor_users, vendor_values, meeting_groups, october_range)

        harsh = row_for(result, 'u2')
        assert harsh.values['Meeting'] == 2
        assert harsh.meetingCounts.external == 1

    def test_no_matching_group(self, vendor_users, vendor_values, meeting_groups, october_range):
        result = run(vendor_users, vendor_values, meeting_groups, october_range)

        jessica = row_for(result, 'u3')
        assert jessica.meetingDetails == []
        assert jessica.meetingCounts.external == 0
        assert jessica.values['Meeting'] == 0

    def test_missing_vendor_values_are_zero(self, vendor_users, vendor_values, meeting_groups, october_range):
        result = run(vendor_users, vendor_values, meeting_groups, october_range)

        assert row_for(result, 'u3').values['Pitch'] == 0

    def test_excluded_source_never_counts(self, vendor_users, october_range):
        records = [
            MeetingRecord(name='Aashima Soni', timestamp=datetime(2025, 10, 5), source_of_lead=EXCLUDED_SOURCE),
            MeetingRecord(name='Aashima Soni', timestamp=datetime(2025, 10, 6), source_of_lead=' cold calls (clay + trellus) '),
        ]
        result = run(vendor_users, {}, group_meetings_by_name(records), october_range)

        assert row_for(result, 'u1').values['Meeting'] == 0
        assert result.stats.recordsExcludedBySource == 2

    def test_no_exclusions_configured(self, vendor_users, vendor_values, meeting_groups, october_range):
        result = run(vendor_users, vendor_values, meeting_groups, october_range, excluded_sources=[])

        assert row_for(result, 'u1').meetingCounts.external == 3

    def test_group_matching_two_users_counts_for_both(self, october_range):
        users = [
            VendorUser(user_id='a', user_name='Rohit Sharma', can_dial=True, team_is_active=True),
            VendorUser(user_id='b', user_name='rohit sharma', can_dial=True, team_is_active=True),
        ]
        records = [MeetingRecord(name='Rohit Sharma', timestamp=datetime(2025, 10, 3))]

        result = run(users, {}, group_meetings_by_name(records), october_range)

        assert [row.meetingCounts.external for row in result.rows] == [1, 1]


class TestDateFiltering:
    """Date bounds are inclusive at day granularity."""

    def test_bounds_inclusive(self):
        date_range = DateRange(start=date(2025, 10, 1), end=date(2025, 10, 26))
        records = [
            MeetingRecord(name='A', timestamp=datetime(2025, 10, 1, 0, 0)),
            MeetingRecord(name='A', timestamp=datetime(2025, 10, 26, 23, 59, 59)),
            MeetingRecord(name='A', timestamp=datetime(2025, 9, 30, 23, 59, 59)),
            MeetingRecord(name='A', timestamp=datetime(2025, 10, 27, 0, 0)),
        ]

        split = filter_records_for_range(records, date_range)

        assert len(split.in_range) == 2
        assert split.out_of_range == 2

    def test_single_day_range(self):
        day = DateRange(start=date(2025, 10, 14), end=date(2025, 10, 14))
        records = [MeetingRecord(name='A', timestamp=datetime(2025, 10, 14, 18, 0))]

        assert len(filter_records_for_range(records, day).in_range) == 1

    def test_unparseable_timestamps_excluded(self, vendor_users, october_range, caplog):
        records = [
            MeetingRecord(name='Aashima Soni', timestamp=None, row_number=7),
            MeetingRecord(name='Aashima Soni', timestamp=datetime(2025, 10, 2)),
        ]

        with caplog.at_level('WARNING'):
            result = run(vendor_users, {}, group_meetings_by_name(records), october_range)

        assert row_for(result, 'u1').meetingCounts.external == 1
        assert result.stats.recordsUnparseable == 1
        assert 'Row 7' in caplog.text

    def test_inverted_range_counts_nothing(self, vendor_users, vendor_values, meeting_groups, caplog):
        inverted = DateRange(start=date(2025, 10, 26), end=date(2025, 10, 1))

        with caplog.at_level('WARNING'):
            result = run(vendor_users, vendor_values, meeting_groups, inverted)

        assert all(row.meetingCounts.external == 0 for row in result.rows)
        assert row_for(result, 'u1').values['Meeting'] == 2
        assert 'Inverted date range' in caplog.text


class TestOrdering:
    """Detail and row ordering."""

    def test_details_newest_first(self, vendor_users, vendor_values, meeting_groups, october_range):
        result = run(vendor_users, vendor_values, meeting_groups, october_range)

        details = row_for(result, 'u1').meetingDetails
        assert [d.timestamp for d in details] == [
            datetime(2025, 10, 20, 9, 5),
            datetime(2025, 10, 14, 14, 22, 23),
        ]
        assert details[1].companyName == 'Acme Corp'

    def test_rows_sorted_by_dial_stable_on_ties(self, vendor_users, vendor_values, meeting_groups, october_range):
        result = run(vendor_users, vendor_values, meeting_groups, october_range)

        # u1 and u3 both have 120 dials; dialer order is kept
        assert [row.userId for row in result.rows] == ['u1', 'u3', 'u2']

    def test_rows_sorted_by_other_metric(self, vendor_users, vendor_values, meeting_groups, october_range):
        result = run(vendor_users, vendor_values, meeting_groups, october_range,
                     primary_metric=MetricLabel.MEETING)

        assert [row.userId for row in result.rows] == ['u1', 'u2', 'u3']

    def test_sort_rows_helper(self):
        rows = [
            MetricRow(userId='a', userName='A', values={'Dial': 1}),
            MetricRow(userId='b', userName='B', values={'Dial': 5}),
            MetricRow(userId='c', userName='C', values={}),
        ]
        assert [r.userId for r in sort_rows(rows)] == ['b', 'a', 'c']


class TestSourceStats:
    """External source statistics and degraded mode."""

    def test_stats(self, vendor_users, vendor_values, meeting_groups, october_range):
        result = run(vendor_users, vendor_values, meeting_groups, october_range)
        stats = result.stats

        assert stats.available is True
        assert stats.groupsMatched == 2
        assert stats.groupsUnmatched == 1
        assert stats.unmatchedNames == ['Unknown Rep']
        # Aashima: 3 in range (one excluded); Harsh: 1 in range
        assert stats.recordsInRange == 4
        assert stats.recordsExcludedBySource == 1

    def test_unavailable_source_gives_dialer_only_rows(self, vendor_users, vendor_values, october_range, roster):
        result = run(vendor_users, vendor_values, None, october_range, roster)

        assert result.stats.available is False
        assert row_for(result, 'u1').values['Meeting'] == 2
        assert row_for(result, 'u1').meetingCounts.external == 0
        assert row_for(result, 'u1').team == 'Botzilla'

    def test_no_roster_gives_na(self, vendor_users, vendor_values, meeting_groups, october_range):
        result = run(vendor_users, vendor_values, meeting_groups, october_range, roster=None)

        assert {row.team for row in result.rows} == {'NA'}

    def test_no_users(self, meeting_groups, october_range):
        result = run([], {}, meeting_groups, october_range)

        assert result.rows == []
        assert result.stats.groupsUnmatched == 3
