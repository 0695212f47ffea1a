"""
Tests for SessionReconciler merge rules.
"""

import pytest

from app.features.zoom_webhooks.services.key_lock import InProcessKeyedLock
from app.features.zoom_webhooks.services.normalizer import normalize_event
from app.features.zoom_webhooks.services.session_reconciler import SessionReconciler
from tests.helpers import SESSION_KEY, FakeSessionStore, at, participant_body, zoom_body


def _session_event(event_name: str, **obj):
    return normalize_event(
        zoom_body(event_name, {"id": 85743210001, "uuid": SESSION_KEY, **obj})
    )


def _reconciler():
    store = FakeSessionStore()
    return store, SessionReconciler(store, InProcessKeyedLock())


@pytest.mark.asyncio
async def test_started_creates_session():
    store, reconciler = _reconciler()

    merged = await reconciler.reconcile(
        _session_event(
            "meeting.started", topic="Weekly sync", start_time="2024-03-01T09:00:00Z"
        )
    )

    stored = store.sessions[SESSION_KEY]
    assert stored.meeting_id == "85743210001"
    assert stored.topic == "Weekly sync"
    assert stored.started_at == at("2024-03-01T09:00:00Z")
    assert stored.ended_at is None
    assert merged == stored


@pytest.mark.asyncio
async def test_started_falls_back_to_event_time():
    store, reconciler = _reconciler()

    await reconciler.reconcile(_session_event("meeting.started"))

    assert store.sessions[SESSION_KEY].started_at == at("2023-11-14T22:13:20Z")


@pytest.mark.asyncio
async def test_ended_preserves_start_and_topic():
    store, reconciler = _reconciler()
    await reconciler.reconcile(
        _session_event(
            "meeting.started", topic="Weekly sync", start_time="2024-03-01T09:00:00Z"
        )
    )

    merged = await reconciler.reconcile(
        _session_event("meeting.ended", end_time="2024-03-01T10:00:00Z")
    )

    stored = store.sessions[SESSION_KEY]
    assert stored.started_at == at("2024-03-01T09:00:00Z")
    assert stored.ended_at == at("2024-03-01T10:00:00Z")
    assert stored.topic == "Weekly sync"
    assert merged.ended_at == stored.ended_at


@pytest.mark.asyncio
async def test_ended_is_written_once():
    store, reconciler = _reconciler()
    await reconciler.reconcile(_session_event("meeting.ended", end_time="2024-03-01T10:00:00Z"))

    await reconciler.reconcile(_session_event("meeting.ended", end_time="2024-03-01T11:00:00Z"))

    assert store.sessions[SESSION_KEY].ended_at == at("2024-03-01T10:00:00Z")


@pytest.mark.asyncio
async def test_ended_before_start_is_ignored():
    store, reconciler = _reconciler()
    await reconciler.reconcile(
        _session_event("meeting.started", start_time="2024-03-01T09:00:00Z")
    )

    await reconciler.reconcile(_session_event("meeting.ended", end_time="2024-03-01T08:00:00Z"))

    stored = store.sessions[SESSION_KEY]
    assert stored.started_at == at("2024-03-01T09:00:00Z")
    assert stored.ended_at is None


@pytest.mark.asyncio
async def test_late_start_after_end_keeps_both():
    store, reconciler = _reconciler()
    await reconciler.reconcile(_session_event("meeting.ended", end_time="2024-03-01T10:00:00Z"))

    await reconciler.reconcile(
        _session_event("meeting.started", start_time="2024-03-01T09:00:00Z")
    )

    stored = store.sessions[SESSION_KEY]
    assert stored.started_at == at("2024-03-01T09:00:00Z")
    assert stored.ended_at == at("2024-03-01T10:00:00Z")


@pytest.mark.asyncio
async def test_start_after_stored_end_is_ignored():
    store, reconciler = _reconciler()
    await reconciler.reconcile(_session_event("meeting.ended", end_time="2024-03-01T10:00:00Z"))

    merged = await reconciler.reconcile(
        _session_event("meeting.started", start_time="2024-03-01T11:00:00Z")
    )

    stored = store.sessions[SESSION_KEY]
    assert stored.started_at is None
    assert stored.ended_at == at("2024-03-01T10:00:00Z")
    assert merged.started_at is None


@pytest.mark.asyncio
async def test_participant_event_creates_session_row():
    store, reconciler = _reconciler()

    await reconciler.reconcile(
        normalize_event(participant_body("meeting.participant_joined", {"email": "a@b.com"}))
    )

    stored = store.sessions[SESSION_KEY]
    assert stored.topic == "Weekly sync"
    assert stored.started_at is None


@pytest.mark.asyncio
async def test_other_events_are_ignored():
    store, reconciler = _reconciler()

    result = await reconciler.reconcile(normalize_event(zoom_body("recording.completed", {})))

    assert result is None
    assert store.writes == []
