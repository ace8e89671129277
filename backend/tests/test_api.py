"""
API contract tests for the Sales Pulse endpoints.

Uses FastAPI's TestClient with dependency overrides so no dialer, meeting
feed or OpenAI credentials are needed.

The tests verify:
1. /api/metrics-data response shape, date range parameters and sorting
2. Error mapping: 400 for bad ranges, 502 for dialer failures
3. /api/ai-query response shape and the {error, aiResponse} failure body
4. /api/users, /api/roster, /health and /
"""

import pytest
from fastapi.testclient import TestClient

from backend.core.dependencies import get_analyst, get_metrics_service
from backend.main import app
from backend.services.ai_query import LLMResponseError, LLMServiceError
from backend.services.cache import SourceCache
from backend.services.metrics_query import MetricsQueryService

from backend.tests.conftest import EXCLUDED_SOURCE, FakeAnalyst


def build_service(vendor, meeting_source=None) -> MetricsQueryService:
    return MetricsQueryService(
        vendor=vendor,
        meeting_source=meeting_source,
        cache=SourceCache(ttl_seconds=300),
        excluded_sources=[EXCLUDED_SOURCE],
    )


@pytest.fixture
def client_factory():
    """Return a function that builds a TestClient with the given fakes."""
    def make(vendor, meeting_source=None, analyst=None) -> TestClient:
        service = build_service(vendor, meeting_source)
        app.dependency_overrides[get_metrics_service] = lambda: service
        app.dependency_overrides[get_analyst] = lambda: analyst or FakeAnalyst()
        return TestClient(app)

    yield make
    app.dependency_overrides.clear()


class TestMetricsDataEndpoint:
    """Tests for GET /api/metrics-data."""

    def test_explicit_range(self, client_factory, fake_vendor, fake_meeting_source):
        client = client_factory(fake_vendor, fake_meeting_source)

        response = client.get('/api/metrics-data', params={'startDate': '2025-10-01', 'endDate': '2025-10-26'})

        assert response.status_code == 200
        body = response.json()
        assert body['dateRange'] == {'start': '2025-10-01', 'end': '2025-10-26'}
        assert body['sortedBy'] == 'Dial'
        assert [row['userId'] for row in body['rows']] == ['u1', 'u3', 'u2']

        first = body['rows'][0]
        assert first['userName'] == 'Aashima Soni'
        assert first['team'] == 'Botzilla'
        assert first['values'] == {'Dial': 120, 'Connect': 40, 'Pitch': 12, 'Conversation': 6, 'Meeting': 4}
        assert first['meetingCounts'] == {'vendor': 2, 'external': 2, 'total': 4}
        assert first['meetingDetails'][0]['source'] == 'spreadsheet'
        assert body['externalSource']['available'] is True

    def test_days_parameter(self, client_factory, fake_vendor):
        client = client_factory(fake_vendor)

        response = client.get('/api/metrics-data', params={'days': 7})

        assert response.status_code == 200
        range_ = fake_vendor.snapshot_calls[0]
        assert (range_.end - range_.start).days == 7

    def test_sort_by(self, client_factory, fake_vendor, fake_meeting_source):
        client = client_factory(fake_vendor, fake_meeting_source)

        response = client.get('/api/metrics-data', params={
            'startDate': '2025-10-01', 'endDate': '2025-10-26', 'sortBy': 'Meeting',
        })

        assert [row['userId'] for row in response.json()['rows']] == ['u1', 'u2', 'u3']

    def test_invalid_sort_by(self, client_factory, fake_vendor):
        response = client_factory(fake_vendor).get('/api/metrics-data', params={'sortBy': 'Revenue'})
        assert response.status_code == 422

    def test_inverted_range(self, client_factory, fake_vendor):
        response = client_factory(fake_vendor).get(
            '/api/metrics-data', params={'startDate': '2025-10-26', 'endDate': '2025-10-01'}
        )
        assert response.status_code == 400

    def test_half_range(self, client_factory, fake_vendor):
        response = client_factory(fake_vendor).get('/api/metrics-data', params={'startDate': '2025-10-01'})
        assert response.status_code == 400

    def test_dialer_failure(self, client_factory, failing_vendor):
        response = client_factory(failing_vendor).get('/api/metrics-data', params={'days': 1})

        assert response.status_code == 502
        assert 'HTTP 401' in response.json()['detail']

    def test_meeting_source_failure_still_200(self, client_factory, fake_vendor, failing_meeting_source):
        client = client_factory(fake_vendor, failing_meeting_source)

        response = client.get('/api/metrics-data', params={'days': 1})

        assert response.status_code == 200
        assert response.json()['externalSource']['available'] is False


class TestAIQueryEndpoint:
    """Tests for POST /api/ai-query."""

    def test_answer(self, client_factory, fake_vendor, fake_meeting_source):
        client = client_factory(fake_vendor, fake_meeting_source)

        response = client.post('/api/ai-query', json={'query': 'Who dialed most?'})

        assert response.status_code == 200
        body = response.json()
        assert set(body) == {'query', 'dateRange', 'intent', 'answer', 'dataUsed'}
        assert body['dateRange'] == {'start': '2025-10-01', 'end': '2025-10-26'}
        assert body['dataUsed']['rows'][0]['values']['Meeting'] == 4

    def test_empty_query(self, client_factory, fake_vendor):
        response = client_factory(fake_vendor).post('/api/ai-query', json={'query': '   '})
        assert response.status_code == 422

    def test_unparseable_extraction(self, client_factory, fake_vendor):
        analyst = FakeAnalyst(error=LLMResponseError('Failed to parse date information from AI', 'not json'))

        response = client_factory(fake_vendor, analyst=analyst).post('/api/ai-query', json={'query': 'hm'})

        assert response.status_code == 500
        assert response.json() == {
            'error': 'Failed to parse date information from AI',
            'aiResponse': 'not json',
        }

    def test_provider_failure(self, client_factory, fake_vendor):
        analyst = FakeAnalyst(error=LLMServiceError('OPENAI_API_KEY is not configured'))

        response = client_factory(fake_vendor, analyst=analyst).post('/api/ai-query', json={'query': 'hm'})

        assert response.status_code == 502

    def test_dialer_failure(self, client_factory, failing_vendor):
        response = client_factory(failing_vendor).post('/api/ai-query', json={'query': 'Who dialed most?'})
        assert response.status_code == 502


class TestOtherEndpoints:
    """Tests for /api/users, /api/roster, /health and /."""

    def test_users(self, client_factory, fake_vendor):
        response = client_factory(fake_vendor).get('/api/users')

        assert response.status_code == 200
        body = response.json()
        assert [u['user_id'] for u in body['users']] == ['u1', 'u2', 'u3']
        assert body['team'] == {'name': 'SDR'}

    def test_users_dialer_failure(self, client_factory, failing_vendor):
        assert client_factory(failing_vendor).get('/api/users').status_code == 502

    def test_roster(self, client_factory, fake_vendor):
        response = client_factory(fake_vendor).get('/api/roster')

        assert response.status_code == 200
        assert response.json()['members'] > 0

    def test_health(self, client_factory, fake_vendor):
        assert client_factory(fake_vendor).get('/health').json() == {'status': 'healthy'}

    def test_root(self, client_factory, fake_vendor):
        body = client_factory(fake_vendor).get('/').json()
        assert body['name'] == 'Sales Pulse API'
        assert body['docs'] == '/docs'
