"""
Dashboard for web-based engine monitoring.

Provides a Flask application with REST endpoints over the monitoring service.

SECURITY:
- Optional API key authentication via DASHBOARD_API_KEY env var
- Bind to localhost by default
"""
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Optional

from flask import Flask, Response, abort, jsonify, request

from .alerting import AlertNotFoundError
from .export import SUPPORTED_FORMATS

if TYPE_CHECKING:
    from .service import EngineMonitoringService

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_PERIOD_SECONDS = 3600.0


def require_api_key(f: Callable) -> Callable:
    """
    Decorator to require API key authentication.

    If DASHBOARD_API_KEY is set in environment, requests must include
    either:
    - X-API-Key header
    - api_key query parameter

    If DASHBOARD_API_KEY is not set, authentication is disabled.
    """
    @wraps(f)
    def decorated(*args, **kwargs):
        api_key = os.environ.get("DASHBOARD_API_KEY")
        if not api_key:
            return f(*args, **kwargs)

        provided_key = request.headers.get("X-API-Key") or request.args.get("api_key")

        if not provided_key or provided_key != api_key:
            logger.warning(f"Unauthorized API access attempt from {request.remote_addr}")
            abort(401)

        return f(*args, **kwargs)

    return decorated


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


class Dashboard:
    """
    Dashboard web application.

    Endpoints:
        GET  /health                          - Engine health summary and alert counts
        GET  /api/metrics                     - Latest snapshot per engine
        GET  /api/metrics/<engine>            - Latest snapshot for one engine
        GET  /api/alerts                      - Tracked alerts (?since=ISO-8601)
        POST /api/alerts/<id>/acknowledge     - Resolve an alert
        GET  /api/export                      - ?format=json|csv&period=<seconds>

    Flask runs in its own thread. Every route only reads the service (or
    acknowledges an alert), and those calls are synchronous and lock-guarded,
    so no event-loop dispatch is needed.

    Usage:
        dashboard = Dashboard(service)
        app = dashboard.create_app()
        app.run(port=9060)
    """

    def __init__(self, service: "EngineMonitoringService") -> None:
        self._service = service

    def create_app(self, testing: bool = False) -> Flask:
        """
        Create the Flask application.

        Args:
            testing: Whether to enable testing mode

        Returns:
            Flask application instance
        """
        app = Flask(__name__)
        app.config["TESTING"] = testing

        # Store reference for routes
        app.dashboard = self  # type: ignore

        self._register_routes(app)

        return app

    def _register_routes(self, app: Flask) -> None:
        """Register all HTTP routes."""

        @app.route("/health")
        @require_api_key
        def health() -> Response:
            """Engine health summary."""
            service = self._service

            try:
                summary = service.get_engine_health_summary()
            except Exception as e:
                logger.error(f"Engine health summary failed: {e}")
                return jsonify({"status": "error", "error": str(e)}), 500

            engines = {
                name: {"healthy": entry["healthy"], "last_check": _iso(entry["last_check"])}
                for name, entry in summary.items()
            }
            all_healthy = all(e["healthy"] for e in engines.values())

            return jsonify({
                "status": "healthy" if engines and all_healthy else (
                    "unknown" if not engines else "degraded"
                ),
                "monitoring": service.is_running,
                "engines": engines,
                "active_alerts": service.get_active_alert_count(),
                "critical_alerts": service.get_critical_alert_count(),
            })

        @app.route("/api/metrics")
        @require_api_key
        def metrics() -> Response:
            """Latest snapshot per engine."""
            snapshots = self._service.get_all_metrics_snapshots()
            return jsonify({
                "engines": {name: s.to_dict() for name, s in snapshots.items()},
            })

        @app.route("/api/metrics/<engine_name>")
        @require_api_key
        def engine_metrics(engine_name: str) -> Response:
            """Latest snapshot for one engine."""
            snapshot = self._service.get_metrics_snapshot(engine_name)
            if snapshot is None:
                return jsonify({"error": f"No metrics for engine {engine_name}"}), 404
            return jsonify(snapshot.to_dict())

        @app.route("/api/alerts")
        @require_api_key
        def alerts() -> Response:
            """Tracked alerts."""
            since_param = request.args.get("since", type=str)
            since: Optional[datetime] = None
            if since_param:
                try:
                    since = datetime.fromisoformat(since_param.replace("Z", "+00:00"))
                except ValueError:
                    return jsonify({"error": f"Invalid since timestamp: {since_param}"}), 400
                if since.tzinfo is None:
                    since = since.replace(tzinfo=timezone.utc)

            service = self._service
            return jsonify({
                "alerts": [a.to_dict() for a in service.get_recent_alerts(since=since)],
                "active": service.get_active_alert_count(),
                "critical": service.get_critical_alert_count(),
            })

        @app.route("/api/alerts/<alert_id>/acknowledge", methods=["POST"])
        @require_api_key
        def acknowledge(alert_id: str) -> Response:
            """Resolve an alert."""
            try:
                alert = self._service.acknowledge_alert(alert_id)
            except AlertNotFoundError as e:
                return jsonify({"error": str(e)}), 404
            return jsonify(alert.to_dict())

        @app.route("/api/export")
        @require_api_key
        def export() -> Response:
            """Export metrics within a look-back window."""
            fmt = request.args.get("format", "json", type=str).lower()
            period = request.args.get("period", DEFAULT_EXPORT_PERIOD_SECONDS, type=float)

            if fmt not in SUPPORTED_FORMATS:
                return jsonify({"error": f"Unsupported format: {fmt}"}), 400

            body = self._service.export_metrics(fmt, period)
            mimetype = "text/csv" if fmt == "csv" else "application/json"
            return Response(body, mimetype=mimetype)


def create_app(
    service: "EngineMonitoringService",
    testing: bool = False,
) -> Flask:
    """
    Factory function to create the dashboard app.

    Args:
        service: Monitoring service to expose
        testing: Enable testing mode

    Returns:
        Flask application
    """
    return Dashboard(service).create_app(testing=testing)


__all__ = ["Dashboard", "create_app", "require_api_key"]
