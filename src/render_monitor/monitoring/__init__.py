"""
Monitoring Layer - Engine health checks, metrics history, alerting and export.

This module provides:
    - EngineMonitoringService: Façade owning store, registry, evaluator, scheduler
    - MonitorConfig / AlertThresholds: Immutable configuration
    - MetricsStore: Per-engine bounded snapshot history with retention
    - AlertRegistry: Alert lifecycle (active -> resolved via acknowledgment)
    - AlertNotFoundError: Raised when acknowledging an unknown alert
    - TelegramNotifier: External delivery of raised alerts
    - ThresholdEvaluator: Health, failure-rate, latency, memory and streak rules
    - PeriodicScheduler / PeriodicTask: Cancellable asyncio periodic loops
    - MetricsSnapshot, Alert, AlertCandidate, AlertKind, AlertSeverity: Data models
    - create_app: Flask dashboard factory

Data Flow:
    1. Scheduler tick fires
    2. Service asks the engine manager for status (and task counters)
    3. ThresholdEvaluator turns readings into alert candidates
    4. AlertRegistry creates new alerts, leaves open ones alone
    5. MetricsStore receives a snapshot per engine, stale history is evicted

Alert Deduplication:
    - An open alert blocks new ones with the same engine, kind and severity
    - Alerts only resolve through explicit acknowledgment
"""

from .alerting import AlertNotFoundError, AlertRegistry, TelegramNotifier
from .config import AlertThresholds, MonitorConfig
from .dashboard import Dashboard, create_app
from .export import serialize_snapshots, snapshots_to_csv, snapshots_to_json
from .metrics_store import MetricsStore
from .models import (
    Alert,
    AlertCandidate,
    AlertKind,
    AlertSeverity,
    MetricsSnapshot,
    PerformanceStats,
    ResourceUsage,
)
from .scheduler import PeriodicScheduler, PeriodicTask
from .service import EngineMonitoringService
from .thresholds import ThresholdEvaluator

__all__ = [
    # Service
    "EngineMonitoringService",
    "MonitorConfig",
    "AlertThresholds",
    # Storage
    "MetricsStore",
    # Alerting
    "AlertRegistry",
    "AlertNotFoundError",
    "TelegramNotifier",
    "ThresholdEvaluator",
    # Scheduling
    "PeriodicScheduler",
    "PeriodicTask",
    # Models
    "MetricsSnapshot",
    "ResourceUsage",
    "PerformanceStats",
    "Alert",
    "AlertCandidate",
    "AlertKind",
    "AlertSeverity",
    # Export
    "serialize_snapshots",
    "snapshots_to_json",
    "snapshots_to_csv",
    # Dashboard
    "Dashboard",
    "create_app",
]
