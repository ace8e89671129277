'''
Sales Pulse Backend Test Suite

Test Modules:
-------------
- test_name_matching.py: normalization, token-overlap and containment policies
- test_meeting_sources.py: column probing, timestamp parsing, workbook and feed sources
- test_vendor_metrics.py: metric adapter, stage selects, dialer client over MockTransport
- test_roster.py: team lookup and roster file loading
- test_reconciliation.py: meeting totals, date filtering, ordering, source stats
- test_cache.py: read-through TTL cache
- test_metrics_query.py: date range resolution, degradation, caching
- test_ai_query.py: JSON extraction, prompts, OpenAI analyst, answer_query
- test_api.py: endpoint contracts through TestClient

Running Tests:
--------------
    pip install -e ".[test]"
    pytest -v

Configuration:
--------------
See conftest.py for shared fixtures and fakes.
'''

__all__ = []
