"""
Metrics Store for engine snapshot history.

Keeps an in-memory, time-ordered history of snapshots per engine and evicts
entries that fall outside the retention window.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Deque, Dict, List, Optional

from .models import MetricsSnapshot

logger = logging.getLogger(__name__)


class MetricsStore:
    """
    Bounded per-engine snapshot history.

    Snapshots are appended per collection tick and never mutated. Reads may
    come from the dashboard thread, so every access goes through a lock.

    Usage:
        store = MetricsStore(retention_seconds=86400)

        store.append(snapshot)
        latest = store.latest("chrome-headless")

        # Drop anything older than the retention window
        removed = store.clean_old_metrics()
    """

    def __init__(
        self,
        retention_seconds: float,
        max_snapshots_per_engine: Optional[int] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            retention_seconds: Maximum snapshot age kept by clean_old_metrics()
            max_snapshots_per_engine: Optional hard cap on history length
        """
        self._retention = timedelta(seconds=retention_seconds)
        self._max_snapshots = max_snapshots_per_engine
        self._history: Dict[str, Deque[MetricsSnapshot]] = {}
        self._lock = threading.Lock()

    @property
    def retention(self) -> timedelta:
        return self._retention

    def append(self, snapshot: MetricsSnapshot) -> None:
        """Append a snapshot to its engine's history."""
        with self._lock:
            history = self._history.get(snapshot.engine_name)
            if history is None:
                history = deque(maxlen=self._max_snapshots)
                self._history[snapshot.engine_name] = history
            history.append(snapshot)

    def latest(self, engine_name: str) -> Optional[MetricsSnapshot]:
        """Most recent snapshot for an engine, or None if never recorded."""
        with self._lock:
            history = self._history.get(engine_name)
            if not history:
                return None
            return history[-1]

    def latest_all(self) -> Dict[str, MetricsSnapshot]:
        """Most recent snapshot per known engine."""
        with self._lock:
            return {
                name: history[-1]
                for name, history in self._history.items()
                if history
            }

    def history(self, engine_name: str) -> List[MetricsSnapshot]:
        """Full retained history for an engine, oldest first."""
        with self._lock:
            return list(self._history.get(engine_name, ()))

    def engine_names(self) -> List[str]:
        with self._lock:
            return list(self._history)

    def snapshots_since(self, cutoff: datetime) -> List[MetricsSnapshot]:
        """
        All snapshots with timestamp >= cutoff, across engines.

        Returns:
            Snapshots ordered by timestamp
        """
        with self._lock:
            result = [
                snapshot
                for history in self._history.values()
                for snapshot in history
                if snapshot.timestamp >= cutoff
            ]

        result.sort(key=lambda s: s.timestamp)
        return result

    def clean_old_metrics(self, now: Optional[datetime] = None) -> int:
        """
        Evict snapshots older than the retention window.

        Entries strictly older than now - retention are dropped. Engines
        whose history becomes empty are forgotten.

        Args:
            now: Reference time (default: current UTC time)

        Returns:
            Number of snapshots removed
        """
        cutoff = (now or datetime.now(timezone.utc)) - self._retention
        removed = 0

        with self._lock:
            for name in list(self._history):
                history = self._history[name]
                kept = [s for s in history if s.timestamp >= cutoff]
                removed += len(history) - len(kept)

                if not kept:
                    del self._history[name]
                elif len(kept) != len(history):
                    self._history[name] = deque(kept, maxlen=self._max_snapshots)

        if removed:
            logger.debug(f"Evicted {removed} snapshots older than {cutoff.isoformat()}")

        return removed

    def clear(self) -> None:
        with self._lock:
            self._history.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(h) for h in self._history.values())
