"""
Tests for dashboard HTTP endpoints.

The dashboard exposes the monitoring service over REST.
"""
import json
import pytest
from datetime import datetime, timezone, timedelta

from render_monitor.monitoring.dashboard import create_app


class TestHealthEndpoint:
    """Tests for /health."""

    def test_reports_degraded_with_unhealthy_engine(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "degraded"
        assert data["monitoring"] is False
        assert data["engines"]["puppeteer"]["healthy"] is False
        assert data["engines"]["chrome-headless"]["healthy"] is True
        assert data["active_alerts"] == 0
        assert data["critical_alerts"] == 0

    def test_reports_healthy(self, service):
        client = create_app(service, testing=True).test_client()

        data = client.get("/health").get_json()

        assert data["status"] == "healthy"
        assert data["engines"]["chrome-headless"]["last_check"] is not None

    def test_reports_unknown_without_engines(self, service, mock_engine_manager):
        mock_engine_manager.get_engine_status.return_value = {}
        client = create_app(service, testing=True).test_client()

        assert client.get("/health").get_json()["status"] == "unknown"

    def test_engine_manager_error_returns_500(self, service, mock_engine_manager):
        mock_engine_manager.get_engine_status.side_effect = RuntimeError("manager down")
        client = create_app(service, testing=True).test_client()

        response = client.get("/health")

        assert response.status_code == 500
        assert "manager down" in response.get_json()["error"]

    @pytest.mark.asyncio
    async def test_alert_counts(self, client, unhealthy_service):
        await unhealthy_service.perform_health_checks()

        data = client.get("/health").get_json()

        assert data["active_alerts"] == 1


class TestMetricsEndpoints:
    """Tests for /api/metrics."""

    def test_empty_before_first_tick(self, client):
        response = client.get("/api/metrics")

        assert response.status_code == 200
        assert response.get_json() == {"engines": {}}

    @pytest.mark.asyncio
    async def test_latest_snapshots(self, client, unhealthy_service):
        await unhealthy_service.collect_performance_metrics()

        data = client.get("/api/metrics").get_json()

        assert set(data["engines"]) == {"chrome-headless", "puppeteer"}
        assert data["engines"]["puppeteer"]["isHealthy"] is False

    def test_unknown_engine_returns_404(self, client):
        response = client.get("/api/metrics/webkit")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_single_engine(self, client, unhealthy_service):
        await unhealthy_service.collect_performance_metrics()

        response = client.get("/api/metrics/puppeteer")

        assert response.status_code == 200
        assert response.get_json()["errors"] == ["Browser crashed", "Launch timeout"]


class TestAlertEndpoints:
    """Tests for /api/alerts."""

    @pytest.mark.asyncio
    async def test_lists_alerts(self, client, unhealthy_service):
        await unhealthy_service.perform_health_checks()

        data = client.get("/api/alerts").get_json()

        assert len(data["alerts"]) == 1
        assert data["alerts"][0]["engineName"] == "puppeteer"
        assert data["alerts"][0]["kind"] == "health"
        assert data["active"] == 1

    @pytest.mark.asyncio
    async def test_since_filter(self, client, unhealthy_service):
        await unhealthy_service.perform_health_checks()
        future = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()

        response = client.get("/api/alerts", query_string={"since": future})

        assert response.get_json()["alerts"] == []

    def test_invalid_since_returns_400(self, client):
        response = client.get("/api/alerts?since=yesterday")

        assert response.status_code == 400

    def test_acknowledge_unknown_returns_404(self, client):
        response = client.post("/api/alerts/alert_999/acknowledge")

        assert response.status_code == 404
        assert "alert_999" in response.get_json()["error"]

    @pytest.mark.asyncio
    async def test_acknowledge(self, client, unhealthy_service):
        await unhealthy_service.perform_health_checks()
        alert_id = unhealthy_service.get_recent_alerts()[0].id

        response = client.post(f"/api/alerts/{alert_id}/acknowledge")

        assert response.status_code == 200
        assert response.get_json()["resolved"] is True
        assert response.get_json()["resolvedAt"] is not None
        assert unhealthy_service.get_active_alert_count() == 0

    def test_acknowledge_requires_post(self, client):
        response = client.get("/api/alerts/alert_1/acknowledge")

        assert response.status_code == 405


class TestExportEndpoint:
    """Tests for /api/export."""

    def test_csv_without_data_is_empty(self, client):
        response = client.get("/api/export?format=csv")

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert response.get_data(as_text=True) == ""

    @pytest.mark.asyncio
    async def test_csv(self, client, unhealthy_service):
        await unhealthy_service.collect_performance_metrics()

        response = client.get("/api/export?format=csv&period=3600")

        lines = response.get_data(as_text=True).split("\n")
        assert len(lines) == 3
        assert lines[0].startswith("timestamp,engineName")

    @pytest.mark.asyncio
    async def test_json_is_default(self, client, unhealthy_service):
        await unhealthy_service.collect_performance_metrics()

        response = client.get("/api/export")

        assert response.mimetype == "application/json"
        assert len(json.loads(response.get_data(as_text=True))) == 2

    def test_unknown_format_returns_400(self, client):
        response = client.get("/api/export?format=xml")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_huge_period_exports_everything(self, client, unhealthy_service):
        await unhealthy_service.collect_performance_metrics()

        response = client.get("/api/export?format=csv&period=1e11")

        assert response.status_code == 200
        assert len(response.get_data(as_text=True).split("\n")) == 3


class TestApiKey:
    """Tests for optional API key authentication."""

    def test_open_without_configured_key(self, client, monkeypatch):
        monkeypatch.delenv("DASHBOARD_API_KEY", raising=False)

        assert client.get("/api/metrics").status_code == 200

    def test_rejects_missing_key(self, client, monkeypatch):
        monkeypatch.setenv("DASHBOARD_API_KEY", "secret")

        assert client.get("/api/metrics").status_code == 401

    def test_rejects_wrong_key(self, client, monkeypatch):
        monkeypatch.setenv("DASHBOARD_API_KEY", "secret")

        response = client.get("/api/metrics", headers={"X-API-Key": "nope"})

        assert response.status_code == 401

    def test_accepts_header_or_query_key(self, client, monkeypatch):
        monkeypatch.setenv("DASHBOARD_API_KEY", "secret")

        assert client.get("/api/metrics", headers={"X-API-Key": "secret"}).status_code == 200
        assert client.get("/api/metrics?api_key=secret").status_code == 200
