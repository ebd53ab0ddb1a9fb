"""
Engine manager contract and report normalization.

The engine manager is an external collaborator. Reports may arrive as our
own dataclasses, as plain dicts (snake_case or camelCase keys), or as
arbitrary objects with matching attributes. Everything is normalized into
frozen dataclasses before the monitor looks at it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import (
    Any,
    Awaitable,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Union,
    runtime_checkable,
)


@dataclass(frozen=True)
class EnginePerformance:
    """Performance block of an engine health report."""

    success_rate: float = 1.0  # 0..1
    average_generation_time: float = 0.0  # ms
    memory_usage: int = 0  # bytes


@dataclass(frozen=True)
class EngineHealthStatus:
    """
    Health report for a single engine.

    Attributes:
        engine_name: Engine the report belongs to
        is_healthy: Whether the engine considers itself healthy
        status: Free-form status label reported by the manager
        errors: Errors collected since the last check
        last_check: When the manager last checked the engine
        performance: Optional performance block
        active_tasks: Rendering jobs currently in flight, if reported
    """

    engine_name: str
    is_healthy: bool
    status: str = "unknown"
    errors: Tuple[str, ...] = field(default_factory=tuple)
    last_check: Optional[datetime] = None
    performance: Optional[EnginePerformance] = None
    active_tasks: int = 0


@dataclass(frozen=True)
class EngineMetrics:
    """Per-engine task counters from the manager."""

    total_tasks: int = 0
    successful_tasks: int = 0
    failed_tasks: int = 0
    average_time: float = 0.0  # ms


StatusReport = Union[EngineHealthStatus, Mapping[str, Any], Any]


@runtime_checkable
class EngineManager(Protocol):
    """
    What the monitor needs from the engine manager.

    get_engine_metrics() is optional; managers that don't track task
    counters can omit it. Methods may return plain values or awaitables.
    """

    def get_engine_status(self) -> Union[Mapping[str, StatusReport], Awaitable[Mapping[str, StatusReport]]]:
        ...

    def get_available_engines(self) -> List[str]:
        ...

    def force_health_check(self) -> Optional[Awaitable[None]]:
        ...


_MISSING = object()


def _read(raw: Any, *names: str, default: Any = None) -> Any:
    """Read the first present key/attribute out of names."""
    for name in names:
        if isinstance(raw, Mapping):
            value = raw.get(name, _MISSING)
        else:
            value = getattr(raw, name, _MISSING)
        if value is not _MISSING:
            return value
    return default


def _to_datetime(value: Any) -> Optional[datetime]:
    """Normalize timestamps to aware UTC datetimes."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, (int, float)):
        ts = float(value)
        # Epoch milliseconds
        if ts > 4102444800:
            ts = ts / 1000
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    raise TypeError(f"Unsupported timestamp value: {value!r}")


def coerce_performance(raw: Any) -> Optional[EnginePerformance]:
    """Normalize a performance block, or None when absent."""
    if raw is None:
        return None
    if isinstance(raw, EnginePerformance):
        return raw

    return EnginePerformance(
        success_rate=float(_read(raw, "success_rate", "successRate", default=1.0)),
        average_generation_time=float(
            _read(raw, "average_generation_time", "averageGenerationTime", default=0.0)
        ),
        memory_usage=int(_read(raw, "memory_usage", "memoryUsage", default=0)),
    )


def coerce_status(engine_name: str, raw: StatusReport) -> EngineHealthStatus:
    """
    Normalize one entry of get_engine_status() into EngineHealthStatus.

    Args:
        engine_name: Key the entry was reported under
        raw: Dataclass, mapping or attribute object

    Returns:
        EngineHealthStatus
    """
    if isinstance(raw, EngineHealthStatus):
        return raw

    status = _read(raw, "status", default=None)
    is_healthy = _read(raw, "is_healthy", "isHealthy", default=None)
    if is_healthy is None:
        # Some managers only report a status label
        is_healthy = str(status).lower() == "healthy"

    errors = _read(raw, "errors", default=None) or ()

    return EngineHealthStatus(
        engine_name=engine_name,
        is_healthy=bool(is_healthy),
        status=str(status) if status is not None else ("healthy" if is_healthy else "unhealthy"),
        errors=tuple(str(e) for e in errors),
        last_check=_to_datetime(_read(raw, "last_check", "lastCheck", default=None)),
        performance=coerce_performance(_read(raw, "performance", default=None)),
        active_tasks=int(_read(raw, "active_tasks", "activeTasks", default=0) or 0),
    )


def coerce_metrics(raw: Any) -> Optional[EngineMetrics]:
    """Normalize one entry of get_engine_metrics(), or None when absent."""
    if raw is None:
        return None
    if isinstance(raw, EngineMetrics):
        return raw

    return EngineMetrics(
        total_tasks=int(_read(raw, "total_tasks", "totalTasks", default=0)),
        successful_tasks=int(_read(raw, "successful_tasks", "successfulTasks", default=0)),
        failed_tasks=int(_read(raw, "failed_tasks", "failedTasks", default=0)),
        average_time=float(_read(raw, "average_time", "averageTime", default=0.0)),
    )
