"""
Threshold evaluation for engine readings.

Turns engine health reports and metric snapshots into alert candidates.
Apart from the per-engine failure streak, evaluation is pure: the same
inputs always produce the same candidates.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from render_monitor.engines.types import EngineHealthStatus

from .config import AlertThresholds
from .models import AlertCandidate, AlertKind, AlertSeverity, MetricsSnapshot


@dataclass(frozen=True)
class PerformanceReading:
    """Values the performance rules look at. None means not reported."""

    failure_rate: Optional[float] = None  # percent
    average_response_time: Optional[float] = None  # ms
    memory_usage: Optional[int] = None  # bytes


def performance_reading(
    status: Optional[EngineHealthStatus],
    snapshot: Optional[MetricsSnapshot] = None,
) -> PerformanceReading:
    """
    Combine a health report and a snapshot into one reading.

    The engine's own performance block wins. Snapshot counters fill in
    whatever the block doesn't provide.
    """
    failure_rate = None
    response_time = None
    memory = None

    perf = status.performance if status is not None else None
    if perf is not None:
        # Rounded so 0.95 reads as 5.0, not 5.000000000000004
        failure_rate = round((1.0 - perf.success_rate) * 100, 6)
        response_time = perf.average_generation_time
        memory = perf.memory_usage

    if snapshot is not None:
        counters = snapshot.performance
        if failure_rate is None and counters.total_requests > 0:
            failure_rate = round(counters.failed_requests / counters.total_requests * 100, 6)
        if response_time is None and counters.total_requests > 0:
            response_time = counters.average_response_time
        if memory is None and snapshot.resource_usage.memory_usage > 0:
            memory = snapshot.resource_usage.memory_usage

    return PerformanceReading(
        failure_rate=failure_rate,
        average_response_time=response_time,
        memory_usage=memory,
    )


class ThresholdEvaluator:
    """
    Evaluates engine readings against configured thresholds.

    Rules are independent; one reading can produce several candidates.

    Health rules (run from the health-check task):
    - Unhealthy engine or reported errors -> warning
    - N consecutive unhealthy checks -> critical (once per streak)

    Performance rules (run from the metrics task):
    - Failure rate above threshold -> warning, above critical cutoff -> critical
    - Average response time above threshold -> warning
    - Memory usage above threshold -> warning

    Usage:
        evaluator = ThresholdEvaluator(config.alert_thresholds)

        candidates = evaluator.evaluate_health("chrome", status)
        candidates += evaluator.evaluate_performance("chrome", status, snapshot)
    """

    def __init__(self, thresholds: AlertThresholds) -> None:
        self._thresholds = thresholds
        self._failure_streaks: Dict[str, int] = {}

    @property
    def thresholds(self) -> AlertThresholds:
        return self._thresholds

    def failure_streak(self, engine_name: str) -> int:
        """Consecutive unhealthy health checks for an engine."""
        return self._failure_streaks.get(engine_name, 0)

    def reset(self, engine_name: Optional[str] = None) -> None:
        """Reset failure streaks for one engine, or all of them."""
        if engine_name is None:
            self._failure_streaks.clear()
        else:
            self._failure_streaks.pop(engine_name, None)

    def evaluate_health(
        self,
        engine_name: str,
        status: EngineHealthStatus,
    ) -> List[AlertCandidate]:
        """
        Evaluate a health report.

        Updates the engine's failure streak as a side effect.

        Returns:
            Alert candidates (possibly empty)
        """
        candidates: List[AlertCandidate] = []

        if not status.is_healthy:
            streak = self._failure_streaks.get(engine_name, 0) + 1
            self._failure_streaks[engine_name] = streak
        else:
            streak = 0
            self._failure_streaks.pop(engine_name, None)

        if not status.is_healthy or status.errors:
            details = ", ".join(status.errors) if status.errors else status.status
            candidates.append(AlertCandidate(
                kind=AlertKind.HEALTH,
                engine_name=engine_name,
                severity=AlertSeverity.WARNING,
                message=f"Engine {engine_name} is unhealthy: {details}",
                metadata={
                    "errors": list(status.errors),
                    "status": status.status,
                    "last_check": status.last_check.isoformat() if status.last_check else None,
                },
            ))

        required = max(self._thresholds.consecutive_failures, 1)
        if streak == required:
            candidates.append(AlertCandidate(
                kind=AlertKind.CONSECUTIVE_FAILURES,
                engine_name=engine_name,
                severity=AlertSeverity.CRITICAL,
                message=(
                    f"Engine {engine_name} failed {streak} consecutive health checks"
                ),
                metadata={
                    "consecutive_failures": streak,
                    "threshold": self._thresholds.consecutive_failures,
                },
            ))

        return candidates

    def evaluate_performance(
        self,
        engine_name: str,
        status: Optional[EngineHealthStatus],
        snapshot: Optional[MetricsSnapshot] = None,
    ) -> List[AlertCandidate]:
        """
        Evaluate failure rate, latency and memory.

        Args:
            engine_name: Engine being evaluated
            status: Latest health report (its performance block is preferred)
            snapshot: Snapshot built from the same tick, used as fallback

        Returns:
            Alert candidates (possibly empty)
        """
        reading = performance_reading(status, snapshot)
        thresholds = self._thresholds
        candidates: List[AlertCandidate] = []

        if reading.failure_rate is not None and reading.failure_rate > thresholds.failure_rate:
            critical = reading.failure_rate > thresholds.critical_failure_rate
            candidates.append(AlertCandidate(
                kind=AlertKind.FAILURE_RATE,
                engine_name=engine_name,
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                message=f"High failure rate for {engine_name}: {reading.failure_rate:.1f}%",
                metadata={
                    "failure_rate": reading.failure_rate,
                    "threshold": (
                        thresholds.critical_failure_rate if critical else thresholds.failure_rate
                    ),
                },
            ))

        if (
            reading.average_response_time is not None
            and reading.average_response_time > thresholds.average_response_time_ms
        ):
            candidates.append(AlertCandidate(
                kind=AlertKind.LATENCY,
                engine_name=engine_name,
                severity=AlertSeverity.WARNING,
                message=(
                    f"Slow response time for {engine_name}: "
                    f"{reading.average_response_time:.0f}ms"
                ),
                metadata={
                    "average_response_time": reading.average_response_time,
                    "threshold": thresholds.average_response_time_ms,
                },
            ))

        if reading.memory_usage is not None and reading.memory_usage > thresholds.memory_usage_bytes:
            candidates.append(AlertCandidate(
                kind=AlertKind.MEMORY,
                engine_name=engine_name,
                severity=AlertSeverity.WARNING,
                message=(
                    f"High memory usage for {engine_name}: "
                    f"{reading.memory_usage / 1024 / 1024:.1f}MB"
                ),
                metadata={
                    "memory_usage": reading.memory_usage,
                    "threshold": thresholds.memory_usage_bytes,
                },
            ))

        return candidates
