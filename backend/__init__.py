"""
Sales Pulse Backend Package.

FastAPI service layer for the sales-metrics dashboard. Pulls funnel metrics
from the dialer API, reconciles them with manually logged meetings and the
team roster, and answers natural-language questions about the result.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration and dependencies
    - models: Pydantic schemas and enums
    - services: Business logic services
    - data: Packaged default roster
"""

__version__ = "1.0.0"
