"""
Integration test fixtures.

Fixtures that wire the full monitoring stack together.
"""
import pytest

from render_monitor.monitoring import EngineMonitoringService, create_app


@pytest.fixture
async def running_service(engine_manager, fast_config):
    """Monitoring service with live periodic tasks."""
    service = EngineMonitoringService(engine_manager, config=fast_config)
    await service.start()

    yield service

    await service.stop()


@pytest.fixture
def dashboard_client(running_service):
    """Flask test client bound to the running service."""
    return create_app(running_service, testing=True).test_client()
