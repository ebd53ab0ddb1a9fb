"""
Monitoring layer test fixtures.

Tests the metrics store, alerting, thresholds, scheduling, the service
façade and dashboard endpoints against a mocked engine manager.
"""
import pytest
from datetime import datetime, timezone, timedelta
from unittest.mock import MagicMock, AsyncMock

from render_monitor.engines.types import EngineHealthStatus, EnginePerformance
from render_monitor.monitoring.alerting import AlertRegistry, TelegramNotifier
from render_monitor.monitoring.config import AlertThresholds, MonitorConfig
from render_monitor.monitoring.dashboard import create_app
from render_monitor.monitoring.metrics_store import MetricsStore
from render_monitor.monitoring.models import (
    AlertCandidate,
    AlertKind,
    AlertSeverity,
    MetricsSnapshot,
    PerformanceStats,
    ResourceUsage,
)
from render_monitor.monitoring.service import EngineMonitoringService
from render_monitor.monitoring.thresholds import ThresholdEvaluator


# =============================================================================
# Engine Status Fixtures
# =============================================================================

@pytest.fixture
def healthy_status():
    """Healthy engine with nominal performance."""
    return EngineHealthStatus(
        engine_name="chrome-headless",
        is_healthy=True,
        status="healthy",
        last_check=datetime.now(timezone.utc),
        performance=EnginePerformance(
            success_rate=0.95,
            average_generation_time=1200,
            memory_usage=100 * 1024 * 1024,
        ),
    )


@pytest.fixture
def unhealthy_status():
    """Unhealthy engine reporting errors."""
    return EngineHealthStatus(
        engine_name="puppeteer",
        is_healthy=False,
        status="unhealthy",
        errors=("Browser crashed", "Launch timeout"),
        last_check=datetime.now(timezone.utc),
    )


@pytest.fixture
def slow_status():
    """Engine whose generation time is above the latency threshold."""
    return EngineHealthStatus(
        engine_name="chrome-headless",
        is_healthy=True,
        status="healthy",
        last_check=datetime.now(timezone.utc),
        performance=EnginePerformance(
            success_rate=0.95,
            average_generation_time=6000,
            memory_usage=100 * 1024 * 1024,
        ),
    )


# =============================================================================
# Engine Manager Fixtures
# =============================================================================

@pytest.fixture
def mock_engine_manager(healthy_status):
    """Mock engine manager with one healthy engine."""
    manager = MagicMock()
    manager.get_engine_status = MagicMock(return_value={
        "chrome-headless": healthy_status,
    })
    manager.get_available_engines = MagicMock(return_value=["chrome-headless"])
    manager.force_health_check = AsyncMock(return_value=None)
    manager.get_engine_metrics = MagicMock(return_value={
        "chrome-headless": {
            "total_tasks": 100,
            "successful_tasks": 95,
            "failed_tasks": 5,
            "average_time": 1500,
        },
    })
    return manager


@pytest.fixture
def mock_engine_manager_unhealthy(healthy_status, unhealthy_status):
    """Mock engine manager with a healthy and an unhealthy engine."""
    manager = MagicMock()
    manager.get_engine_status = MagicMock(return_value={
        "chrome-headless": healthy_status,
        "puppeteer": unhealthy_status,
    })
    manager.get_available_engines = MagicMock(return_value=["chrome-headless", "puppeteer"])
    manager.force_health_check = AsyncMock(return_value=None)
    manager.get_engine_metrics = MagicMock(return_value={})
    return manager


# =============================================================================
# Config Fixtures
# =============================================================================

@pytest.fixture
def thresholds():
    """Default alert thresholds (5000ms latency, 10% failure rate)."""
    return AlertThresholds()


@pytest.fixture
def fast_config():
    """Short intervals for tests that let the scheduler run."""
    return MonitorConfig(
        health_check_interval_seconds=0.05,
        performance_metrics_interval_seconds=0.05,
        stop_timeout_seconds=1.0,
    )


@pytest.fixture
def slow_config():
    """Intervals long enough that no tick runs during a test."""
    return MonitorConfig(
        health_check_interval_seconds=3600,
        performance_metrics_interval_seconds=3600,
    )


# =============================================================================
# Component Fixtures
# =============================================================================

@pytest.fixture
def store():
    """MetricsStore with a 24 hour retention window."""
    return MetricsStore(retention_seconds=24 * 60 * 60)


@pytest.fixture
def registry():
    return AlertRegistry()


@pytest.fixture
def evaluator(thresholds):
    return ThresholdEvaluator(thresholds)


@pytest.fixture
def service(mock_engine_manager, slow_config):
    """Monitoring service whose scheduler never fires during a test."""
    return EngineMonitoringService(mock_engine_manager, config=slow_config)


@pytest.fixture
def unhealthy_service(mock_engine_manager_unhealthy, slow_config):
    return EngineMonitoringService(mock_engine_manager_unhealthy, config=slow_config)


# =============================================================================
# Model Fixtures
# =============================================================================

@pytest.fixture
def make_snapshot():
    """Factory for snapshots."""
    def _make(
        engine_name="chrome-headless",
        timestamp=None,
        is_healthy=True,
        memory_usage=104857600,
        active_tasks=2,
        total=100,
        successful=95,
        failed=5,
        average_response_time=1500,
        errors=("e1", "e2"),
    ):
        return MetricsSnapshot(
            engine_name=engine_name,
            timestamp=timestamp or datetime.now(timezone.utc),
            is_healthy=is_healthy,
            resource_usage=ResourceUsage(memory_usage=memory_usage, active_tasks=active_tasks),
            performance=PerformanceStats(
                total_requests=total,
                successful_requests=successful,
                failed_requests=failed,
                average_response_time=average_response_time,
            ),
            errors=tuple(errors),
        )
    return _make


@pytest.fixture
def warning_candidate():
    return AlertCandidate(
        kind=AlertKind.LATENCY,
        engine_name="chrome-headless",
        severity=AlertSeverity.WARNING,
        message="Slow response time for chrome-headless: 6000ms",
    )


@pytest.fixture
def critical_candidate():
    return AlertCandidate(
        kind=AlertKind.FAILURE_RATE,
        engine_name="chrome-headless",
        severity=AlertSeverity.CRITICAL,
        message="High failure rate for chrome-headless: 60.0%",
    )


# =============================================================================
# Alerting Fixtures
# =============================================================================

@pytest.fixture
def mock_telegram_api():
    """Mock Telegram Bot API."""
    api = MagicMock()
    api.send_message = MagicMock(return_value={"ok": True})
    return api


@pytest.fixture
def notifier(mock_telegram_api):
    """TelegramNotifier with mocked Telegram."""
    return TelegramNotifier(
        bot_token="test_token",
        chat_id="test_chat",
        _telegram_api=mock_telegram_api,
    )


# =============================================================================
# Dashboard Fixtures
# =============================================================================

@pytest.fixture
def app(unhealthy_service):
    """Flask test app."""
    return create_app(unhealthy_service, testing=True)


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()
