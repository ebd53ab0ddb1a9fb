"""
Shared test fixtures for integration tests.

This file provides fixtures that span multiple components,
unlike component-specific fixtures in src/render_monitor/{component}/tests/conftest.py
"""
from datetime import datetime, timezone
from typing import Dict, List

import pytest

from render_monitor.engines.types import EngineHealthStatus, EngineMetrics, EnginePerformance
from render_monitor.monitoring.config import MonitorConfig


class FakeEngineManager:
    """
    In-memory engine manager.

    Tests flip engines between healthy and failing and adjust their
    performance; the manager reports whatever the current state is.
    """

    def __init__(self, engines: List[str]) -> None:
        self._healthy: Dict[str, bool] = {name: True for name in engines}
        self._errors: Dict[str, List[str]] = {name: [] for name in engines}
        self._performance: Dict[str, EnginePerformance] = {
            name: EnginePerformance(success_rate=1.0, average_generation_time=800, memory_usage=64 * 1024 * 1024)
            for name in engines
        }
        self._completed: Dict[str, int] = {name: 0 for name in engines}
        self.forced_checks = 0

    def fail(self, engine: str, error: str) -> None:
        self._healthy[engine] = False
        self._errors[engine].append(error)

    def recover(self, engine: str) -> None:
        self._healthy[engine] = True
        self._errors[engine] = []

    def set_performance(self, engine: str, **kwargs) -> None:
        current = self._performance[engine]
        self._performance[engine] = EnginePerformance(
            success_rate=kwargs.get("success_rate", current.success_rate),
            average_generation_time=kwargs.get(
                "average_generation_time", current.average_generation_time
            ),
            memory_usage=kwargs.get("memory_usage", current.memory_usage),
        )

    def complete_tasks(self, engine: str, count: int) -> None:
        self._completed[engine] += count

    def get_engine_status(self) -> Dict[str, EngineHealthStatus]:
        now = datetime.now(timezone.utc)
        return {
            name: EngineHealthStatus(
                engine_name=name,
                is_healthy=healthy,
                status="healthy" if healthy else "unhealthy",
                errors=tuple(self._errors[name]),
                last_check=now,
                performance=self._performance[name],
            )
            for name, healthy in self._healthy.items()
        }

    def get_available_engines(self) -> List[str]:
        return [name for name, healthy in self._healthy.items() if healthy]

    async def force_health_check(self) -> None:
        self.forced_checks += 1

    def get_engine_metrics(self) -> Dict[str, EngineMetrics]:
        return {
            name: EngineMetrics(
                total_tasks=count,
                successful_tasks=count,
                failed_tasks=0,
                average_time=self._performance[name].average_generation_time,
            )
            for name, count in self._completed.items()
        }


@pytest.fixture
def engine_manager():
    """Fake manager with two engines."""
    return FakeEngineManager(["chrome-headless", "puppeteer"])


@pytest.fixture
def fast_config():
    """Config whose ticks fire every 50ms."""
    return MonitorConfig(
        health_check_interval_seconds=0.05,
        performance_metrics_interval_seconds=0.05,
        stop_timeout_seconds=1.0,
        force_health_check_on_tick=True,
    )
