"""
Data models for the monitoring layer.

These models represent:
- Metric snapshots (one per engine per collection tick)
- Alerts and their lifecycle
- Alert candidates produced by threshold evaluation

Snapshots are frozen once built. Alerts are mutated in place only by the
alert registry when acknowledged.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class AlertSeverity(str, Enum):
    """Severity of an alert."""
    WARNING = "warning"
    CRITICAL = "critical"


class AlertKind(str, Enum):
    """Which rule raised an alert."""
    HEALTH = "health"
    FAILURE_RATE = "failure_rate"
    LATENCY = "latency"
    MEMORY = "memory"
    CONSECUTIVE_FAILURES = "consecutive_failures"


@dataclass(frozen=True)
class ResourceUsage:
    """Resource usage of an engine at snapshot time."""
    memory_usage: int = 0  # bytes
    active_tasks: int = 0


@dataclass(frozen=True)
class PerformanceStats:
    """Request counters of an engine at snapshot time."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: float = 0.0  # ms


@dataclass(frozen=True)
class MetricsSnapshot:
    """
    Point-in-time health and performance record for one engine.

    Attributes:
        engine_name: Engine the snapshot belongs to
        timestamp: Collection time (UTC)
        is_healthy: Health flag reported by the engine manager
        resource_usage: Memory and in-flight task counts
        performance: Request counters and average response time
        errors: Errors reported alongside the status
    """
    engine_name: str
    timestamp: datetime
    is_healthy: bool
    resource_usage: ResourceUsage = field(default_factory=ResourceUsage)
    performance: PerformanceStats = field(default_factory=PerformanceStats)
    errors: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the exported (camelCase) field names."""
        return {
            "engineName": self.engine_name,
            "timestamp": self.timestamp.isoformat(),
            "isHealthy": self.is_healthy,
            "resourceUsage": {
                "memoryUsage": self.resource_usage.memory_usage,
                "activeTasks": self.resource_usage.active_tasks,
            },
            "performance": {
                "totalRequests": self.performance.total_requests,
                "successfulRequests": self.performance.successful_requests,
                "failedRequests": self.performance.failed_requests,
                "averageResponseTime": self.performance.average_response_time,
            },
            "errors": list(self.errors),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricsSnapshot":
        """Parse the shape produced by to_dict()."""
        timestamp = datetime.fromisoformat(data["timestamp"].replace("Z", "+00:00"))
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)

        resources = data.get("resourceUsage") or {}
        performance = data.get("performance") or {}

        return cls(
            engine_name=data["engineName"],
            timestamp=timestamp,
            is_healthy=bool(data["isHealthy"]),
            resource_usage=ResourceUsage(
                memory_usage=resources.get("memoryUsage", 0),
                active_tasks=resources.get("activeTasks", 0),
            ),
            performance=PerformanceStats(
                total_requests=performance.get("totalRequests", 0),
                successful_requests=performance.get("successfulRequests", 0),
                failed_requests=performance.get("failedRequests", 0),
                average_response_time=performance.get("averageResponseTime", 0.0),
            ),
            errors=tuple(data.get("errors") or ()),
        )


@dataclass(frozen=True)
class AlertCandidate:
    """An alert the threshold evaluator wants raised."""
    kind: AlertKind
    engine_name: str
    severity: AlertSeverity
    message: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def dedup_key(self) -> str:
        return f"{self.engine_name}:{self.kind.value}:{self.severity.value}"


@dataclass
class Alert:
    """
    A raised threshold breach.

    resolved and resolved_at always move together: an alert is resolved
    exactly when resolved_at is set.
    """
    id: str
    engine_name: str
    kind: AlertKind
    severity: AlertSeverity
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def dedup_key(self) -> str:
        return f"{self.engine_name}:{self.kind.value}:{self.severity.value}"

    def resolve(self, at: Optional[datetime] = None) -> None:
        """Mark resolved. Resolving twice keeps the first resolution time."""
        if self.resolved:
            return
        self.resolved_at = at or datetime.now(timezone.utc)
        self.resolved = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "engineName": self.engine_name,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "resolved": self.resolved,
            "resolvedAt": self.resolved_at.isoformat() if self.resolved_at else None,
            "metadata": self.metadata,
        }
