import pytest

from app.features.zoom_webhooks.api.router import get_webhook_service
from app.features.zoom_webhooks.services.background import BackgroundDispatcher
from app.features.zoom_webhooks.services.key_lock import InProcessKeyedLock
from app.features.zoom_webhooks.services.presence_tracker import PresenceTracker
from app.features.zoom_webhooks.services.session_reconciler import SessionReconciler
from app.features.zoom_webhooks.services.webhook_service import WebhookService
from tests.helpers import TEST_SECRET, FakeSessionStore, RecordingForwarder


@pytest.fixture
def fake_store():
    return FakeSessionStore()


@pytest.fixture
def key_lock():
    return InProcessKeyedLock()


@pytest.fixture
def recording_forwarder():
    return RecordingForwarder()


@pytest.fixture
def webhook_service(fake_store, key_lock, recording_forwarder):
    return WebhookService(
        secret=TEST_SECRET,
        reconciler=SessionReconciler(fake_store, key_lock),
        tracker=PresenceTracker(fake_store, key_lock),
        forwarder=recording_forwarder,
        dispatcher=BackgroundDispatcher(),
    )


@pytest.fixture
def apply_service_override():
    def _apply(app, service):
        app.dependency_overrides[get_webhook_service] = lambda: service

    return _apply
