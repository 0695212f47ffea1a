# app/main.py
"""
Zoom webhook receiver: FastAPI app with resource lifecycle management.
"""

import time
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request

from app.config import settings
from app.db.pool import db_pool
from app.features.zoom_webhooks import build_webhook_service, zoom_webhook_router
from app.features.zoom_webhooks.dependencies import build_key_lock
from app.features.zoom_webhooks.repository.postgres_store import PostgresSessionStore
from app.features.zoom_webhooks.repository.store import NoopSessionStore, SessionStore
from app.infrastructure.observability.logging import get_logger, log_request, setup_logging
from app.middleware import RequestContextMiddleware
from app.routes import health
from app.services.redis_client import redis_client

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)

DRAIN_TIMEOUT_SECONDS = 20.0


async def _open_store(startup_tasks: list[str]) -> SessionStore:
    if not settings.persistence_enabled():
        logger.warning("DATABASE_URL not set, session tracking will not be persisted")
        return NoopSessionStore()

    logger.info("Initializing database pool")
    await db_pool.initialize()
    startup_tasks.append("database_pool")
    await PostgresSessionStore.ensure_schema()
    return PostgresSessionStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    startup_tasks = []
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.FORWARD_TIMEOUT_SECONDS))

    try:
        store = await _open_store(startup_tasks)

        if settings.REDIS_URL:
            logger.info("Initializing Redis connection")
            await redis_client.initialize()
            startup_tasks.append("redis")

        service = build_webhook_service(
            settings,
            store,
            build_key_lock(settings, redis_client),
            http_client=http_client,
        )

        logger.info(
            "All services initialized successfully",
            services=startup_tasks,
            forwarding_enabled=service.forwarder.enabled,
        )

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)

        if "redis" in startup_tasks:
            try:
                await redis_client.close()
            except Exception as cleanup_error:
                logger.error("Error cleaning up Redis", error=str(cleanup_error))

        if "database_pool" in startup_tasks:
            try:
                await db_pool.close()
            except Exception as cleanup_error:
                logger.error("Error cleaning up database pool", error=str(cleanup_error))

        await http_client.aclose()
        raise

    app.state.session_store = store
    app.state.redis = redis_client if "redis" in startup_tasks else None
    app.state.webhook_service = service

    yield

    logger.info("Application shutting down")

    shutdown_errors = []

    # Background work first: it still needs the store, locks and HTTP client
    try:
        await service.dispatcher.drain(timeout=DRAIN_TIMEOUT_SECONDS)
    except Exception as e:
        logger.error("Error draining background operations", error=str(e))
        shutdown_errors.append(f"Background: {e}")

    try:
        await http_client.aclose()
    except Exception as e:
        logger.error("Error closing HTTP client", error=str(e))
        shutdown_errors.append(f"HTTP client: {e}")

    if "redis" in startup_tasks:
        try:
            await redis_client.close()
        except Exception as e:
            logger.error("Error closing Redis", error=str(e))
            shutdown_errors.append(f"Redis: {e}")

    if "database_pool" in startup_tasks:
        try:
            await db_pool.close()
        except Exception as e:
            logger.error("Error closing database pool", error=str(e))
            shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="Zoom Webhook Receiver",
    description="Authenticates Zoom webhooks and reconstructs meeting sessions and presence",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(zoom_webhook_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.time() - start_time) * 1000, 2),
    )
    return response


# Added last so it wraps the timing middleware and its logs carry request_id
app.add_middleware(RequestContextMiddleware)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
