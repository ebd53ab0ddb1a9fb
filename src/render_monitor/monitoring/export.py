"""
Metrics export serializers.

JSON keeps the full snapshot shape; CSV flattens it to one row per snapshot
and reports only the number of errors.
"""
from __future__ import annotations

import csv
import io
import json
from typing import Iterable, List

from .models import MetricsSnapshot

SUPPORTED_FORMATS = ("json", "csv")

CSV_HEADERS = [
    "timestamp",
    "engineName",
    "isHealthy",
    "memoryUsage",
    "activeTasks",
    "totalRequests",
    "successfulRequests",
    "failedRequests",
    "averageResponseTime",
    "errorsCount",
]


def _format_number(value: float) -> str:
    # 1500.0 -> "1500"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def snapshots_to_json(snapshots: Iterable[MetricsSnapshot]) -> str:
    """Serialize snapshots as an indented JSON array."""
    return json.dumps([s.to_dict() for s in snapshots], indent=2)


def snapshots_to_csv(snapshots: Iterable[MetricsSnapshot]) -> str:
    """
    Serialize snapshots as CSV.

    Returns an empty string (no header) when there are no snapshots.
    """
    rows: List[List[str]] = [
        [
            s.timestamp.isoformat(),
            s.engine_name,
            "true" if s.is_healthy else "false",
            str(s.resource_usage.memory_usage),
            str(s.resource_usage.active_tasks),
            str(s.performance.total_requests),
            str(s.performance.successful_requests),
            str(s.performance.failed_requests),
            _format_number(s.performance.average_response_time),
            str(len(s.errors)),
        ]
        for s in snapshots
    ]

    if not rows:
        return ""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    writer.writerows(rows)
    return buffer.getvalue().rstrip("\n")


def serialize_snapshots(snapshots: Iterable[MetricsSnapshot], fmt: str) -> str:
    """
    Serialize snapshots in the requested format.

    Raises:
        ValueError: If fmt isn't "json" or "csv"
    """
    fmt = fmt.lower()
    if fmt == "json":
        return snapshots_to_json(snapshots)
    if fmt == "csv":
        return snapshots_to_csv(snapshots)
    raise ValueError(f"Unsupported export format: {fmt!r} (expected one of {SUPPORTED_FORMATS})")
