"""
Engine contract test fixtures.
"""
import pytest
from datetime import datetime, timezone


@pytest.fixture
def check_time():
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def camel_case_report(check_time):
    """Status report as a JavaScript-style manager would send it."""
    return {
        "isHealthy": False,
        "status": "degraded",
        "errors": ["Page crashed"],
        "lastCheck": check_time.isoformat().replace("+00:00", "Z"),
        "activeTasks": 4,
        "performance": {
            "successRate": 0.75,
            "averageGenerationTime": 2400,
            "memoryUsage": 268435456,
        },
    }
