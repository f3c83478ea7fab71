"""Read-side services behind the dashboard HTTP surface.

- fallback_query: live -> historical -> synthetic read resolution
- mock_data: deterministic synthetic fixtures
- service_health: dependency checks for the services health endpoint
"""

from omnidash.services import mock_data
from omnidash.services.fallback_query import (
    EnumDataSource,
    FallbackQueryService,
    PerformanceSnapshot,
    TieredResult,
)
from omnidash.services.service_health import (
    EnumServiceStatus,
    ServiceHealthCheck,
    check_all_services,
)

__all__ = [
    "EnumDataSource",
    "EnumServiceStatus",
    "FallbackQueryService",
    "PerformanceSnapshot",
    "ServiceHealthCheck",
    "TieredResult",
    "check_all_services",
    "mock_data",
]
