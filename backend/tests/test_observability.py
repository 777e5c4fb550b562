"""Tests for observability features: metrics, health checks, and request tracing."""

from __future__ import annotations

import pytest
from backend.app.cache import BoundedCache
from backend.app.health import health_checker
from backend.app.main import add_dev_routes
from backend.app.metrics import normalize_endpoint
from backend.app.settings import settings
from backend.app.utils import add_rate_limiting
from fastapi import FastAPI
from fastapi.testclient import TestClient


class TestPrometheusMetrics:
    def test_metrics_endpoint(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "vidalocal_info" in response.text

    def test_domain_metrics_tracked(self, client):
        client.get("/v1/search", params={"q": "Palmas"})
        client.get("/v1/search/suggest", params={"q": "pizza"})
        content = client.get("/v1/metrics").text
        assert 'directory_searches_total{kind="cities"}' in content
        assert "search_suggestions_total" in content
        assert "http_requests_total" in content

    def test_normalize_endpoint(self):
        assert normalize_endpoint("/v1/cities/12") == "/v1/cities/{id}"


class TestHealth:
    def test_health_reports_checks(self, client):
        health_checker.clear_cache()
        response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "vidalocal-api"
        assert body["checks"]["catalog"]["establishments"] == 10
        assert body["checks"]["database"]["status"] == "ok"
        assert body["checks"]["maps_chat"]["status"] == "disabled"

    def test_versioned_health(self, client):
        assert client.get("/v1/health").status_code == 200


class TestRequestTracing:
    def test_request_id_generated(self, client):
        response = client.get("/v1/states")
        assert response.headers.get("X-Request-ID")

    def test_request_id_echoed(self, client):
        response = client.get("/v1/states", headers={"X-Request-ID": "trace-123"})
        assert response.headers["X-Request-ID"] == "trace-123"

    def test_security_headers(self, client):
        response = client.get("/v1/states")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "geolocation=(self)" in response.headers["Permissions-Policy"]


@pytest.fixture
def limited_client(monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 2)
    monkeypatch.setattr(settings, "RATE_LIMIT_WINDOW_SECONDS", 60)
    monkeypatch.setattr(settings, "TRUSTED_PROXIES", "")
    app = FastAPI()
    add_rate_limiting(app)

    @app.get("/ping")
    def ping():
        return {"ok": True}

    return TestClient(app)


class TestRateLimiting:
    def test_throttles_after_budget(self, limited_client):
        assert limited_client.get("/ping").status_code == 200
        assert limited_client.get("/ping").status_code == 200
        response = limited_client.get("/ping")
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1

    def test_forwarded_for_ignored_without_trusted_proxy(self, limited_client):
        for n in range(2):
            limited_client.get("/ping", headers={"X-Forwarded-For": f"1.2.3.{n}"})
        response = limited_client.get("/ping", headers={"X-Forwarded-For": "9.9.9.9"})
        assert response.status_code == 429

    def test_trusted_proxy_uses_forwarded_address(self, limited_client, monkeypatch):
        monkeypatch.setattr(settings, "TRUSTED_PROXIES", "*")
        for _ in range(2):
            limited_client.get("/ping", headers={"X-Forwarded-For": "1.2.3.4"})
        response = limited_client.get("/ping", headers={"X-Forwarded-For": "5.6.7.8"})
        assert response.status_code == 200


class TestDevRoutes:
    def test_only_cache_routes_mounted(self):
        dev_app = FastAPI()
        add_dev_routes(dev_app)
        dev_paths = {route.path for route in dev_app.routes if route.path.startswith("/dev")}
        assert dev_paths == {"/dev/cache/clear", "/dev/cache/stats"}

    def test_cache_routes_work(self):
        dev_app = FastAPI()
        add_dev_routes(dev_app)
        dev_client = TestClient(dev_app)
        cache = BoundedCache("test_dev_routes", max_size=3)
        cache.set("k", 1)

        stats = dev_client.get("/dev/cache/stats").json()
        assert stats["test_dev_routes"]["entries"] == 1
        assert dev_client.post("/dev/cache/clear").json() == {"ok": True, "cleared": True}
        assert len(cache) == 0

    def test_not_mounted_by_default(self, client):
        assert client.get("/dev/cache/stats").status_code == 404
