"""
Alert registry and external alert delivery.

The registry tracks raised alerts and their resolution. The notifier pushes
registered alerts to Telegram with deduplication to prevent spam.
"""
from __future__ import annotations

import itertools
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from .models import Alert, AlertCandidate, AlertSeverity

logger = logging.getLogger(__name__)


class AlertNotFoundError(KeyError):
    """Raised when acknowledging an alert id that isn't tracked."""

    def __init__(self, alert_id: str) -> None:
        super().__init__(alert_id)
        self.alert_id = alert_id

    def __str__(self) -> str:
        return f"Alert not found: {self.alert_id}"


class AlertRegistry:
    """
    Keyed collection of alerts with lifecycle state.

    An open (unresolved) alert blocks new alerts with the same engine, kind
    and severity, so a condition that persists across ticks yields a single
    alert until someone acknowledges it.

    Usage:
        registry = AlertRegistry()

        alert = registry.raise_alert(candidate)  # None if deduplicated
        registry.acknowledge(alert.id)

        registry.active_count()
        registry.critical_count()
    """

    def __init__(self, id_prefix: str = "alert") -> None:
        self._id_prefix = id_prefix
        self._counter = itertools.count(1)
        # Insertion order is creation order
        self._alerts: Dict[str, Alert] = {}
        self._lock = threading.Lock()

    def raise_alert(
        self,
        candidate: AlertCandidate,
        now: Optional[datetime] = None,
    ) -> Optional[Alert]:
        """
        Register an alert for a candidate.

        Args:
            candidate: Evaluator output
            now: Creation time (default: current UTC time)

        Returns:
            The new Alert, or None if an open alert already covers it
        """
        with self._lock:
            for existing in self._alerts.values():
                if not existing.resolved and existing.dedup_key == candidate.dedup_key:
                    return None

            alert = Alert(
                id=f"{self._id_prefix}_{next(self._counter)}",
                engine_name=candidate.engine_name,
                kind=candidate.kind,
                severity=candidate.severity,
                message=candidate.message,
                timestamp=now or datetime.now(timezone.utc),
                metadata=dict(candidate.metadata),
            )
            self._alerts[alert.id] = alert

        return alert

    def get(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            return self._alerts.get(alert_id)

    def acknowledge(self, alert_id: str, now: Optional[datetime] = None) -> Alert:
        """
        Resolve an alert.

        Raises:
            AlertNotFoundError: If alert_id isn't tracked
        """
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                raise AlertNotFoundError(alert_id)
            alert.resolve(now)
        return alert

    def alerts(self, since: Optional[datetime] = None) -> List[Alert]:
        """Tracked alerts in creation order, optionally only those after since."""
        with self._lock:
            alerts = list(self._alerts.values())

        if since is not None:
            alerts = [a for a in alerts if a.timestamp >= since]
        return alerts

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for a in self._alerts.values() if not a.resolved)

    def critical_count(self) -> int:
        with self._lock:
            return sum(
                1
                for a in self._alerts.values()
                if not a.resolved and a.severity == AlertSeverity.CRITICAL
            )

    def prune_resolved(self, cutoff: datetime) -> int:
        """
        Forget resolved alerts created before cutoff.

        Open alerts are kept regardless of age.

        Returns:
            Number of alerts removed
        """
        with self._lock:
            stale = [
                alert_id
                for alert_id, alert in self._alerts.items()
                if alert.resolved and alert.timestamp < cutoff
            ]
            for alert_id in stale:
                del self._alerts[alert_id]
        return len(stale)

    def get_alert_stats(self) -> Dict[str, int]:
        """Get statistics about tracked alerts."""
        with self._lock:
            alerts = list(self._alerts.values())
        return {
            "total": len(alerts),
            "active": sum(1 for a in alerts if not a.resolved),
            "critical": sum(
                1 for a in alerts
                if not a.resolved and a.severity == AlertSeverity.CRITICAL
            ),
            "resolved": sum(1 for a in alerts if a.resolved),
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)


@dataclass
class DeliveryRecord:
    """Tracks when a notification was last delivered."""

    key: str
    last_sent: float  # Unix timestamp
    count: int = 1


class TelegramNotifier:
    """
    Pushes alerts to a Telegram chat.

    The same engine/kind pair won't be delivered again within the cooldown
    window, even if the registry creates a fresh alert for it after an
    acknowledgment.

    Usage:
        notifier = TelegramNotifier(
            bot_token="...",
            chat_id="...",
        )
        notifier.notify(alert)
    """

    DEFAULT_COOLDOWN = 300  # 5 minutes

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        default_cooldown: int = DEFAULT_COOLDOWN,
        _telegram_api: Optional[Any] = None,  # For testing
    ) -> None:
        """
        Initialize the notifier.

        Args:
            bot_token: Bot token from @BotFather
            chat_id: Chat ID to send messages to
            default_cooldown: Cooldown between deliveries for the same key
            _telegram_api: Injected API client for testing
        """
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._default_cooldown = default_cooldown
        self._telegram_api = _telegram_api

        self._sent: Dict[str, DeliveryRecord] = {}

    def notify(self, alert: Alert, cooldown_seconds: Optional[int] = None) -> bool:
        """
        Deliver an alert.

        Args:
            alert: Registered alert
            cooldown_seconds: Cooldown override for this delivery

        Returns:
            True if delivered, False if deduplicated or delivery failed
        """
        key = f"{alert.engine_name}:{alert.kind.value}"
        cooldown = cooldown_seconds or self._default_cooldown
        if not self._should_send(key, cooldown):
            logger.debug(f"Deduplicated notification: {key}")
            return False

        success = self._send_telegram(self._format_message(alert))
        if success:
            self._record_sent(key)
        return success

    def _should_send(self, key: str, cooldown: int) -> bool:
        record = self._sent.get(key)
        if record is None:
            return True
        return (time.time() - record.last_sent) >= cooldown

    def _record_sent(self, key: str) -> None:
        now = time.time()
        if key in self._sent:
            self._sent[key].last_sent = now
            self._sent[key].count += 1
        else:
            self._sent[key] = DeliveryRecord(key=key, last_sent=now)

    def _format_message(self, alert: Alert) -> str:
        """Format alert message for Telegram."""
        marker = "🚨" if alert.severity == AlertSeverity.CRITICAL else "⚠️"
        return (
            f"{marker} *Engine alert: {alert.engine_name}*\n\n"
            f"Severity: {alert.severity.value}\n"
            f"Kind: {alert.kind.value}\n"
            f"Details: {alert.message}\n"
            f"Alert ID: {alert.id}\n"
            f"Time: {alert.timestamp.isoformat()}"
        )

    def _send_telegram(self, text: str) -> bool:
        """Send message via Telegram API."""
        if self._telegram_api:
            try:
                self._telegram_api.send_message(
                    chat_id=self._chat_id,
                    text=text,
                    parse_mode="Markdown",
                )
                return True
            except Exception as e:
                logger.error(f"Telegram API error: {e}")
                return False

        if not self._bot_token or not self._chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        try:
            url = f"https://api.telegram.org/bot{self._bot_token}/sendMessage"
            payload = {
                "chat_id": self._chat_id,
                "text": text,
                "parse_mode": "Markdown",
            }

            response = requests.post(url, json=payload, timeout=10)
            response.raise_for_status()
            return True

        except requests.RequestException as e:
            logger.error(f"Failed to send Telegram alert: {e}")
            return False

    def clear_dedup_cache(self) -> None:
        """Clear the deduplication cache."""
        self._sent.clear()
