"""
Pytest Configuration and Shared Fixtures for Sales Pulse Backend Tests.

This module provides fixtures and fakes for all backend tests, supporting:
- Async test execution with pytest-asyncio
- Sample dialer users and per-stage metric values
- Sample spreadsheet meeting rows (the form's real column headers)
- Fake collaborators for the dialer, the meeting source and the LLM analyst
- Settings built without reading the developer's .env file

HTTP-level tests use httpx.MockTransport directly in the test modules; the
fakes here sit one layer higher, at the service seams.
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

import pytest

from backend.core.config import Settings
from backend.models import (
    DateExtraction,
    DateRange,
    MetricsResponse,
    UsersResponse,
    VendorUser,
)
from backend.services.meeting_sources import MeetingSourceBase, MeetingSourceError
from backend.services.vendor_metrics import VendorAPIError, VendorSnapshot


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - integration: tests that would need real dialer / OpenAI credentials
    """
    config.addinivalue_line(
        'markers',
        'integration: marks tests requiring external service connectivity'
    )


# ============================================================
# SHARED CONSTANTS
# ============================================================

TODAY = date(2025, 10, 26)

EXCLUDED_SOURCE = 'Cold Calls (Clay + Trellus)'


# ============================================================
# DIALER FIXTURES
# ============================================================

@pytest.fixture
def vendor_users() -> List[VendorUser]:
    """Three active dialer users, in dialer order."""
    return [
        VendorUser(user_id='u1', user_name='Aashima Soni', can_dial=True, team_is_active=True),
        VendorUser(user_id='u2', user_name='HARSH RAJ', can_dial=True, team_is_active=True),
        VendorUser(user_id='u3', user_name='Jessica Aaron', can_dial=True, team_is_active=True),
    ]


@pytest.fixture
def vendor_values() -> Dict[str, Dict[str, int]]:
    """Per-stage counts keyed by metric label, then user id."""
    return {
        'Dial': {'u1': 120, 'u2': 80, 'u3': 120},
        'Connect': {'u1': 40, 'u2': 30, 'u3': 35},
        'Pitch': {'u1': 12, 'u2': 9},
        'Conversation': {'u1': 6, 'u2': 4, 'u3': 2},
        'Meeting': {'u1': 2, 'u2': 1},
    }


@pytest.fixture
def october_range() -> DateRange:
    return DateRange(start=date(2025, 10, 1), end=date(2025, 10, 26))


# ============================================================
# SPREADSHEET FIXTURES
# ============================================================

@pytest.fixture
def meeting_rows() -> List[Dict[str, Any]]:
    """
    Rows as they come out of the meetings form export.

    Aashima has three in-range meetings (one from the excluded source) and
    one from September; HARSH RAJ has one; "Unknown Rep" matches nobody.
    """
    return [
        {
            'Name': 'aashima soni',
            'Timestamp': '10/14/2025 14:22:23',
            'Source of Lead': 'LinkedIn',
            'Lead Name (individual you were speaking to)': 'Priya Menon',
            'Company Name': 'Acme Corp',
            'Current Stage': 'Discovery',
            'Meeting Booked (date of the cold call conversion)': '10/14/2025',
        },
        {
            'Name': 'Aashima  Soni',
            'Timestamp': '10/20/2025 09:05:00',
            'Source of Lead': 'Referral',
            'Company Name': 'Globex',
        },
        {
            'Name': 'Aashima Soni',
            'Timestamp': '10/21/2025 11:00:00',
            'Source of Lead': EXCLUDED_SOURCE,
        },
        {
            'Name': 'Aashima Soni',
            'Timestamp': '09/28/2025 10:00:00',
            'Source of Lead': 'LinkedIn',
        },
        {
            'Name': 'Harsh Raj',
            'Timestamp': '2025-10-02T08:30:00',
            'Source of Lead': 'Inbound',
        },
        {
            'Name': 'Unknown Rep',
            'Timestamp': '10/15/2025 12:00:00',
            'Source of Lead': 'LinkedIn',
        },
    ]


# ============================================================
# FAKE COLLABORATORS
# ============================================================

class FakeVendor:
    """Stands in for VendorMetricsClient at the service seam."""

    def __init__(
        self,
        users: List[VendorUser],
        values: Dict[str, Dict[str, int]],
        error: Optional[Exception] = None,
    ):
        self.users = users
        self.values = values
        self.error = error
        self.snapshot_calls: List[DateRange] = []

    async def fetch_users(self) -> UsersResponse:
        if self.error:
            raise self.error
        return UsersResponse(users=self.users, team={'name': 'SDR'})

    async def fetch_snapshot(self, date_range: DateRange) -> VendorSnapshot:
        self.snapshot_calls.append(date_range)
        if self.error:
            raise self.error
        return VendorSnapshot(users=list(self.users), values=self.values)


class FakeMeetingSource(MeetingSourceBase):
    """Meeting source returning fixed rows, an error, or hanging."""

    cache_key = 'meetings:fake'

    def __init__(
        self,
        rows: Optional[List[Mapping[str, Any]]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.rows = rows or []
        self.error = error
        self.delay = delay
        self.calls = 0

    async def fetch_rows(self) -> List[Mapping[str, Any]]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.rows


class FakeAnalyst:
    """MetricsAnalyst returning canned extractions and answers."""

    def __init__(
        self,
        extraction: Optional[DateExtraction] = None,
        answer: str = '**Aashima Soni** leads with **120 dials**.',
        error: Optional[Exception] = None,
    ):
        self.extraction = extraction or DateExtraction(
            startDate=date(2025, 10, 1),
            endDate=date(2025, 10, 26),
            intent='Find the person with the highest number of dials',
        )
        self.answer = answer
        self.error = error
        self.summarized: List[MetricsResponse] = []

    async def extract_date_range(self, query: str, today: date) -> DateExtraction:
        if self.error:
            raise self.error
        return self.extraction

    async def summarize(self, query: str, extraction: DateExtraction, metrics: MetricsResponse) -> str:
        self.summarized.append(metrics)
        return self.answer


@pytest.fixture
def fake_vendor(vendor_users, vendor_values) -> FakeVendor:
    return FakeVendor(vendor_users, vendor_values)


@pytest.fixture
def failing_vendor(vendor_users, vendor_values) -> FakeVendor:
    return FakeVendor(vendor_users, vendor_values, error=VendorAPIError('HTTP 401: invalid api key'))


@pytest.fixture
def fake_meeting_source(meeting_rows) -> FakeMeetingSource:
    return FakeMeetingSource(rows=meeting_rows)


@pytest.fixture
def failing_meeting_source() -> FakeMeetingSource:
    return FakeMeetingSource(error=MeetingSourceError('Meeting feed returned HTTP 503'))


@pytest.fixture
def fake_analyst() -> FakeAnalyst:
    return FakeAnalyst()


# ============================================================
# SETTINGS
# ============================================================

@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        vendor_api_key='test-key',
        vendor_hostname='dialer.test',
        openai_api_key='sk-test',
        source_cache_ttl_seconds=300.0,
    )
