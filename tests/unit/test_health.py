"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, MagicMock, patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.routes import health
from tests.helpers import FakeSessionStore


def _client(store=None, redis=None) -> TestClient:
    app = FastAPI()
    app.include_router(health.router)
    app.state.session_store = store
    app.state.redis = redis
    return TestClient(app)


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = _client().get("/healthz")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "zoom-webhooks"


def test_readyz_endpoint_all_services_healthy():
    """Test readiness endpoint when store and configuration are fine."""
    with (
        patch("app.routes.health.settings.ZOOM_WEBHOOK_SECRET_TOKEN", "test-secret"),
        patch("app.routes.health.settings.REDIS_URL", None),
    ):
        response = _client(store=FakeSessionStore()).get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    checks = data["checks"]
    assert checks["store"]["ok"] is True
    assert checks["configuration"]["ok"] is True
    assert "redis" not in checks


def test_readyz_endpoint_store_unhealthy():
    """Test readiness endpoint when the store reports a failure."""
    store = MagicMock()
    store.health_check = AsyncMock(
        return_value={"healthy": False, "service": "database_pool", "error": "pool closed"}
    )

    with (
        patch("app.routes.health.settings.ZOOM_WEBHOOK_SECRET_TOKEN", "test-secret"),
        patch("app.routes.health.settings.REDIS_URL", None),
    ):
        response = _client(store=store).get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["store"]["ok"] is False
    assert data["checks"]["store"]["error"] == "pool closed"


def test_readyz_endpoint_store_not_initialized():
    with (
        patch("app.routes.health.settings.ZOOM_WEBHOOK_SECRET_TOKEN", "test-secret"),
        patch("app.routes.health.settings.REDIS_URL", None),
    ):
        response = _client(store=None).get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["store"]["error"] == "Store not initialized"


def test_readyz_endpoint_redis_down():
    """Redis is only checked when it backs the key lock."""
    redis = MagicMock()
    redis.ping = AsyncMock(return_value=False)

    with (
        patch("app.routes.health.settings.ZOOM_WEBHOOK_SECRET_TOKEN", "test-secret"),
        patch("app.routes.health.settings.REDIS_URL", "redis://localhost:6379/0"),
    ):
        response = _client(store=FakeSessionStore(), redis=redis).get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["redis"]["ok"] is False


def test_readyz_endpoint_missing_secret():
    """Test readiness endpoint when the webhook secret is not configured."""
    with (
        patch("app.routes.health.settings.ZOOM_WEBHOOK_SECRET_TOKEN", None),
        patch("app.routes.health.settings.REDIS_URL", None),
    ):
        response = _client(store=FakeSessionStore()).get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert "ZOOM_WEBHOOK_SECRET_TOKEN not set" in data["checks"]["configuration"]["issues"]
