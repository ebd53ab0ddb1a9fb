"""
Engines Layer - Boundary to the rendering engine manager.

This module provides:
    - EngineManager: Protocol the monitor consumes (status, metrics, force check)
    - EngineHealthStatus: Normalized health report for one engine
    - EnginePerformance: Optional performance block of a health report
    - EngineMetrics: Optional per-engine task counters
    - coerce_status / coerce_metrics: Accept dicts or attribute objects

The engines themselves (and selection/failover between them) live outside
this package. The monitor only reads what the manager reports.
"""

from .types import (
    EngineHealthStatus,
    EngineManager,
    EngineMetrics,
    EnginePerformance,
    coerce_metrics,
    coerce_status,
)

__all__ = [
    "EngineManager",
    "EngineHealthStatus",
    "EnginePerformance",
    "EngineMetrics",
    "coerce_status",
    "coerce_metrics",
]
