# app/routes/health.py
"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Request

from app.config import settings

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "zoom-webhooks"}


@router.get("/readyz")
async def readyz(request: Request):
    """
    Readiness check: store, lock backend and configuration.
    """
    checks = {}
    overall_ok = True

    # 1) Store health check
    store = getattr(request.app.state, "session_store", None)
    t0 = time.time()
    if store is None:
        checks["store"] = {"ok": False, "error": "Store not initialized"}
        overall_ok = False
    else:
        try:
            store_health = await store.health_check()
            is_healthy = bool(store_health.get("healthy", False))
            checks["store"] = {
                "ok": is_healthy,
                "service": store_health.get("service"),
                "latency_ms": round((time.time() - t0) * 1000, 1),
            }
            if not is_healthy:
                checks["store"]["error"] = store_health.get("error", "Store unhealthy")
            overall_ok = overall_ok and is_healthy
        except Exception as e:
            checks["store"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
            overall_ok = False

    # 2) Redis, only when it backs the key lock
    redis = getattr(request.app.state, "redis", None)
    if settings.REDIS_URL:
        t0 = time.time()
        redis_ok = bool(redis is not None and await redis.ping())
        checks["redis"] = {"ok": redis_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
        overall_ok = overall_ok and redis_ok

    # 3) Configuration checks
    config_issues = []
    if not settings.ZOOM_WEBHOOK_SECRET_TOKEN:
        config_issues.append("ZOOM_WEBHOOK_SECRET_TOKEN not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
        "persistence_enabled": settings.persistence_enabled(),
        "forwarding_enabled": settings.forwarding_enabled(),
        "forward_host": settings.forward_host(),
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
