"""
EngineMonitoringService - Health and performance monitoring for render engines.

Owns the metrics store, the alert registry, the threshold evaluator and the
scheduler. It is the only component that talks to the engine manager.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from render_monitor.engines.types import (
    EngineHealthStatus,
    EngineManager,
    EngineMetrics,
    coerce_metrics,
    coerce_status,
)

from .alerting import AlertRegistry, TelegramNotifier
from .config import MonitorConfig
from .export import serialize_snapshots
from .metrics_store import MetricsStore
from .models import (
    Alert,
    AlertCandidate,
    MetricsSnapshot,
    PerformanceStats,
    ResourceUsage,
)
from .scheduler import PeriodicScheduler, PeriodicTask
from .thresholds import ThresholdEvaluator

logger = logging.getLogger(__name__)


async def _resolve(value: Any) -> Any:
    """Await value if the collaborator handed back an awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


class EngineMonitoringService:
    """
    Monitors a pool of rendering engines.

    Two periodic tasks run once started:
    - Health checks: inspect each engine's health report, raise health
      and consecutive-failure alerts
    - Performance metrics: store one snapshot per engine, evict stale
      history, raise failure-rate, latency and memory alerts

    Queries read the store and the registry only, except
    get_engine_health_summary(), which asks the engine manager directly.

    Usage:
        service = EngineMonitoringService(engine_manager, MonitorConfig())
        await service.start()

        service.get_metrics_snapshot("chrome-headless")
        service.get_active_alert_count()
        csv_text = service.export_metrics("csv", period_seconds=3600)

        await service.stop()
    """

    def __init__(
        self,
        engine_manager: EngineManager,
        config: Optional[MonitorConfig] = None,
        notifier: Optional[TelegramNotifier] = None,
    ) -> None:
        """
        Initialize the monitoring service.

        Args:
            engine_manager: Engine manager to poll
            config: Monitoring configuration (defaults if None)
            notifier: Optional external delivery for newly raised alerts
        """
        self._engine_manager = engine_manager
        self._config = config or MonitorConfig()
        self._notifier = notifier

        self._store = MetricsStore(
            retention_seconds=self._config.retention_period_seconds,
            max_snapshots_per_engine=self._config.max_snapshots_per_engine,
        )
        self._alerts = AlertRegistry()
        self._evaluator = ThresholdEvaluator(self._config.alert_thresholds)
        self._scheduler = PeriodicScheduler(
            stop_timeout=self._config.stop_timeout_seconds,
        )

        self._running = False

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        """Whether the periodic tasks are scheduled."""
        return self._running

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """
        Start the periodic health-check and metrics tasks.

        Does nothing (apart from one info log) when monitoring is disabled,
        and nothing at all when already running.
        """
        if self._running:
            return

        if not self._config.enabled:
            logger.info("Engine monitoring is disabled")
            return

        self._running = True
        await self._scheduler.start([
            PeriodicTask(
                name="engine_health_check",
                interval_seconds=self._config.health_check_interval_seconds,
                tick=self.perform_health_checks,
            ),
            PeriodicTask(
                name="engine_performance_metrics",
                interval_seconds=self._config.performance_metrics_interval_seconds,
                tick=self.collect_performance_metrics,
            ),
        ])

        logger.info(
            f"Engine monitoring started "
            f"(health={self._config.health_check_interval_seconds}s, "
            f"metrics={self._config.performance_metrics_interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the periodic tasks. Safe to call when not running."""
        if not self._running:
            return

        await self._scheduler.stop()
        self._running = False
        logger.info("Engine monitoring stopped")

    # =========================================================================
    # Ticks
    # =========================================================================

    async def perform_health_checks(self) -> None:
        """
        One health-check tick.

        Errors talking to the engine manager are logged and end the tick;
        an error on one engine doesn't affect the others.
        """
        try:
            if self._config.force_health_check_on_tick:
                await _resolve(self._engine_manager.force_health_check())
            statuses = await self._fetch_statuses()
        except Exception as e:
            logger.error(f"Error during engine health checks: {e}")
            return

        for engine_name, report in statuses.items():
            try:
                status = coerce_status(engine_name, report)
                candidates = self._evaluator.evaluate_health(engine_name, status)
                await self._register(engine_name, candidates)
            except Exception as e:
                logger.error(f"Error during health check for engine {engine_name}: {e}")

    async def collect_performance_metrics(self) -> None:
        """
        One metrics tick.

        Stores one snapshot per reported engine, evicts stale history and
        evaluates the performance thresholds.
        """
        try:
            statuses = await self._fetch_statuses()
            metrics = await self._fetch_metrics()
        except Exception as e:
            logger.error(f"Error collecting engine performance metrics: {e}")
            return

        now = datetime.now(timezone.utc)

        for engine_name, report in statuses.items():
            try:
                status = coerce_status(engine_name, report)
                snapshot = self._build_snapshot(
                    engine_name, status, metrics.get(engine_name), now
                )
                self._store.append(snapshot)

                candidates = self._evaluator.evaluate_performance(
                    engine_name, status, snapshot
                )
                await self._register(engine_name, candidates)
            except Exception as e:
                logger.error(f"Error collecting metrics for engine {engine_name}: {e}")

        self.clean_old_metrics(now)

    def clean_old_metrics(self, now: Optional[datetime] = None) -> int:
        """
        Evict snapshots and resolved alerts older than the retention period.

        Returns:
            Number of snapshots removed
        """
        now = now or datetime.now(timezone.utc)
        removed = self._store.clean_old_metrics(now)
        cutoff = now - timedelta(seconds=self._config.retention_period_seconds)
        self._alerts.prune_resolved(cutoff)
        return removed

    async def _fetch_statuses(self) -> Mapping[str, Any]:
        """Raw status reports; each is normalized per engine by the caller."""
        raw = await _resolve(self._engine_manager.get_engine_status())
        return raw or {}

    async def _fetch_metrics(self) -> Dict[str, EngineMetrics]:
        getter = getattr(self._engine_manager, "get_engine_metrics", None)
        if getter is None:
            return {}

        raw: Optional[Mapping[str, Any]] = await _resolve(getter())
        result: Dict[str, EngineMetrics] = {}
        for name, entry in (raw or {}).items():
            metrics = coerce_metrics(entry)
            if metrics is not None:
                result[name] = metrics
        return result

    def _build_snapshot(
        self,
        engine_name: str,
        status: EngineHealthStatus,
        metrics: Optional[EngineMetrics],
        now: datetime,
    ) -> MetricsSnapshot:
        memory = status.performance.memory_usage if status.performance else 0

        if metrics is not None:
            performance = PerformanceStats(
                total_requests=metrics.total_tasks,
                successful_requests=metrics.successful_tasks,
                failed_requests=metrics.failed_tasks,
                average_response_time=metrics.average_time,
            )
        else:
            performance = PerformanceStats()

        return MetricsSnapshot(
            engine_name=engine_name,
            timestamp=now,
            is_healthy=status.is_healthy,
            resource_usage=ResourceUsage(
                memory_usage=memory,
                active_tasks=status.active_tasks,
            ),
            performance=performance,
            errors=status.errors,
        )

    async def _register(self, engine_name: str, candidates: List[AlertCandidate]) -> None:
        """Turn evaluator output into alerts, unless alerting is off."""
        if not candidates:
            return

        if not self._config.enable_alerting:
            logger.debug(
                f"Alerting disabled, discarded {len(candidates)} alert(s) for engine "
                f"{engine_name}: {[c.kind.value for c in candidates]}"
            )
            return

        for candidate in candidates:
            alert = self._alerts.raise_alert(candidate)
            if alert is None:
                continue

            logger.warning(
                f"Engine alert [{alert.severity.value}] {alert.engine_name}: "
                f"{alert.message} (id={alert.id}, kind={alert.kind.value})"
            )

            if self._notifier is not None:
                # notify() makes a blocking HTTP call
                await asyncio.to_thread(self._notifier.notify, alert)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_metrics_snapshot(self, engine_name: str) -> Optional[MetricsSnapshot]:
        """Latest snapshot for an engine, or None if none was collected yet."""
        return self._store.latest(engine_name)

    def get_all_metrics_snapshots(self) -> Dict[str, MetricsSnapshot]:
        """Latest snapshot per engine."""
        return self._store.latest_all()

    def get_recent_alerts(self, since: Optional[datetime] = None) -> List[Alert]:
        """
        Tracked alerts, active and resolved, in creation order.

        Args:
            since: Only alerts created at or after this time
        """
        return self._alerts.alerts(since=since)

    def acknowledge_alert(self, alert_id: str) -> Alert:
        """
        Resolve an alert.

        Raises:
            AlertNotFoundError: If alert_id isn't tracked
        """
        alert = self._alerts.acknowledge(alert_id)
        logger.info(
            f"Alert acknowledged: {alert.id} (engine={alert.engine_name}, "
            f"message={alert.message})"
        )
        return alert

    def get_engine_health_summary(self) -> Dict[str, Dict[str, Any]]:
        """
        Current health per engine, straight from the engine manager.

        Runs synchronously (the dashboard calls it from its own thread), so
        it needs a synchronous get_engine_status(). Engines whose report
        can't be read are logged and left out of the summary.

        Returns:
            {engine_name: {"healthy": bool, "last_check": datetime | None}}

        Raises:
            TypeError: If get_engine_status() returns an awaitable
        """
        raw = self._engine_manager.get_engine_status()
        if inspect.isawaitable(raw):
            # Summary is synchronous; close the coroutine so it isn't leaked
            if inspect.iscoroutine(raw):
                raw.close()
            raise TypeError("get_engine_health_summary() needs a synchronous get_engine_status()")

        summary: Dict[str, Dict[str, Any]] = {}
        for name, report in (raw or {}).items():
            try:
                status = coerce_status(name, report)
            except Exception as e:
                logger.error(f"Unreadable health report for engine {name}: {e}")
                continue
            summary[name] = {
                "healthy": status.is_healthy,
                "last_check": status.last_check,
            }
        return summary

    def get_active_alert_count(self) -> int:
        """Unresolved alerts."""
        return self._alerts.active_count()

    def get_critical_alert_count(self) -> int:
        """Unresolved critical alerts."""
        return self._alerts.critical_count()

    def export_metrics(self, fmt: str, period_seconds: float) -> str:
        """
        Export snapshots collected within the last period_seconds.

        Args:
            fmt: "json" or "csv"
            period_seconds: Look-back window

        Returns:
            Serialized snapshots (CSV with no rows is an empty string)

        Raises:
            ValueError: If fmt is not supported
        """
        try:
            since = datetime.now(timezone.utc) - timedelta(seconds=period_seconds)
        except (OverflowError, ValueError):
            # Window reaches past the representable datetime range
            if period_seconds > 0:
                since = datetime.min.replace(tzinfo=timezone.utc)
            else:
                since = datetime.max.replace(tzinfo=timezone.utc)
        return serialize_snapshots(self._store.snapshots_since(since), fmt)
