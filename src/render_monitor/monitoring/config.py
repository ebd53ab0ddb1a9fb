"""
Monitoring configuration.

Values are accepted as given. Negative intervals or odd thresholds are not
rejected here; the scheduler clamps what it must and everything else simply
behaves degenerately instead of crashing the process.
"""
from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, str(default)).lower() == "true"


class AlertThresholds(BaseModel):
    """Thresholds that turn engine readings into alerts."""

    model_config = ConfigDict(frozen=True)

    failure_rate: float = 10.0  # percent (0-100)
    critical_failure_rate: float = 50.0  # percent, escalates to critical
    average_response_time_ms: float = 5000.0
    memory_usage_bytes: int = 512 * 1024 * 1024
    consecutive_failures: int = 3


class MonitorConfig(BaseModel):
    """Engine monitoring service configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True

    # Periodic tasks
    health_check_interval_seconds: float = 30.0
    performance_metrics_interval_seconds: float = 60.0

    alert_thresholds: AlertThresholds = Field(default_factory=AlertThresholds)

    # History retention
    retention_period_seconds: float = 24 * 60 * 60
    max_snapshots_per_engine: Optional[int] = None

    # Alerting
    enable_alerting: bool = True

    # Lifecycle
    stop_timeout_seconds: float = 5.0
    force_health_check_on_tick: bool = False

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """Load configuration from environment variables."""
        max_snapshots = os.environ.get("MONITOR_MAX_SNAPSHOTS_PER_ENGINE")

        thresholds = AlertThresholds(
            failure_rate=float(os.environ.get("MONITOR_FAILURE_RATE_THRESHOLD", "10")),
            critical_failure_rate=float(
                os.environ.get("MONITOR_CRITICAL_FAILURE_RATE_THRESHOLD", "50")
            ),
            average_response_time_ms=float(
                os.environ.get("MONITOR_RESPONSE_TIME_THRESHOLD_MS", "5000")
            ),
            memory_usage_bytes=int(
                os.environ.get("MONITOR_MEMORY_THRESHOLD_BYTES", str(512 * 1024 * 1024))
            ),
            consecutive_failures=int(
                os.environ.get("MONITOR_CONSECUTIVE_FAILURES_THRESHOLD", "3")
            ),
        )

        return cls(
            enabled=_env_bool("MONITOR_ENABLED", True),
            health_check_interval_seconds=float(
                os.environ.get("MONITOR_HEALTH_CHECK_INTERVAL_SECONDS", "30")
            ),
            performance_metrics_interval_seconds=float(
                os.environ.get("MONITOR_METRICS_INTERVAL_SECONDS", "60")
            ),
            alert_thresholds=thresholds,
            retention_period_seconds=float(
                os.environ.get("MONITOR_RETENTION_PERIOD_SECONDS", str(24 * 60 * 60))
            ),
            max_snapshots_per_engine=int(max_snapshots) if max_snapshots else None,
            enable_alerting=_env_bool("MONITOR_ENABLE_ALERTING", True),
            stop_timeout_seconds=float(os.environ.get("MONITOR_STOP_TIMEOUT_SECONDS", "5")),
            force_health_check_on_tick=_env_bool("MONITOR_FORCE_HEALTH_CHECK", False),
        )
