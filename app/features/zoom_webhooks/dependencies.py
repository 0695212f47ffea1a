"""
Wiring for the webhook service.

Collaborators are chosen from settings once, at startup: Postgres or the
no-op store, Redis or in-process locking, forwarding on or off.
"""

import httpx

from app.config import Settings
from app.features.zoom_webhooks.repository.store import SessionStore
from app.features.zoom_webhooks.services.background import BackgroundDispatcher
from app.features.zoom_webhooks.services.forwarder import EventForwarder
from app.features.zoom_webhooks.services.key_lock import (
    InProcessKeyedLock,
    KeyedLock,
    RedisKeyedLock,
)
from app.features.zoom_webhooks.services.presence_tracker import PresenceTracker
from app.features.zoom_webhooks.services.session_reconciler import SessionReconciler
from app.features.zoom_webhooks.services.webhook_service import WebhookService
from app.services.redis_client import RedisClient


def build_key_lock(settings: Settings, redis: RedisClient | None = None) -> KeyedLock:
    if redis is not None and redis.initialized:
        return RedisKeyedLock(redis, timeout=settings.KEY_LOCK_TIMEOUT_SECONDS)
    return InProcessKeyedLock()


def build_webhook_service(
    settings: Settings,
    store: SessionStore,
    lock: KeyedLock,
    http_client: httpx.AsyncClient | None = None,
    dispatcher: BackgroundDispatcher | None = None,
) -> WebhookService:
    forwarder = EventForwarder(
        settings.FORWARD_WEBHOOK_URL,
        client=http_client,
        auth_token=settings.FORWARD_AUTH_TOKEN,
        auth_field=settings.FORWARD_AUTH_FIELD,
        timeout=settings.FORWARD_TIMEOUT_SECONDS,
    )
    return WebhookService(
        secret=settings.ZOOM_WEBHOOK_SECRET_TOKEN,
        reconciler=SessionReconciler(store, lock),
        tracker=PresenceTracker(store, lock),
        forwarder=forwarder,
        dispatcher=dispatcher or BackgroundDispatcher(),
        require_signed_validation=settings.ZOOM_REQUIRE_SIGNED_VALIDATION,
    )
