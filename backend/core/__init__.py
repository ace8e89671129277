"""
Core infrastructure package for the FastAPI backend.

Provides:
- Configuration management via pydantic-settings (config module)
- FastAPI dependency injection utilities (dependencies module)

Only configuration is re-exported here. The dependencies module wires the
service layer, which itself imports configuration, so it is imported from
its full path:

    from backend.core import get_settings
    from backend.core.dependencies import MetricsServiceDep, SettingsDep

Usage Examples:
    from backend.core import get_settings
    settings = get_settings()
    print(settings.vendor_hostname)
    print(settings.source_cache_ttl_seconds)
"""

# =============================================================================
# Re-exports from backend.core.config
# =============================================================================
from backend.core.config import DEFAULT_EXCLUDED_LEAD_SOURCE, Settings, get_settings

__all__ = [
    'DEFAULT_EXCLUDED_LEAD_SOURCE',
    'Settings',
    'get_settings',
]
