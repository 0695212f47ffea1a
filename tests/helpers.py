"""Shared fakes and payload builders for the webhook tests."""

import json
from dataclasses import replace
from datetime import datetime
from typing import Any

from app.features.zoom_webhooks.domain.models import Hop, ParticipantRecord, SessionRecord
from app.features.zoom_webhooks.repository.store import (
    PARTICIPANT_FIELDS,
    SESSION_FIELDS,
    compact_fields,
)
from app.security.signature import compute_signature

TEST_SECRET = "test-secret-token"
TEST_TIMESTAMP = "1700000000"
SESSION_KEY = "4444AAAiAAAAAiAiAiiAii=="


class FakeSessionStore:
    """In-memory store with the same None-skip merge semantics as Postgres."""

    def __init__(self):
        self.sessions: dict[str, SessionRecord] = {}
        self.participants: dict[tuple[str, str], ParticipantRecord] = {}
        self.writes: list[tuple[str, Any]] = []

    async def get_session(self, session_key: str) -> SessionRecord | None:
        record = self.sessions.get(session_key)
        return replace(record) if record else None

    async def upsert_session(self, session_key: str, fields: dict[str, Any]) -> None:
        values = compact_fields(fields, SESSION_FIELDS)
        record = self.sessions.setdefault(session_key, SessionRecord(session_key=session_key))
        for name, value in values.items():
            setattr(record, name, value)
        self.writes.append(("upsert_session", session_key))

    async def get_participant(
        self, session_key: str, participant_key: str
    ) -> ParticipantRecord | None:
        record = self.participants.get((session_key, participant_key))
        return replace(record, hops=list(record.hops)) if record else None

    async def upsert_participant(
        self, session_key: str, participant_key: str, fields: dict[str, Any]
    ) -> None:
        values = compact_fields(fields, PARTICIPANT_FIELDS)
        record = self._participant_row(session_key, participant_key)
        for name, value in values.items():
            setattr(record, name, value)
        self.writes.append(("upsert_participant", (session_key, participant_key)))

    async def get_hops(self, session_key: str, participant_key: str) -> list[Hop]:
        record = self.participants.get((session_key, participant_key))
        return list(record.hops) if record else []

    async def set_hops(self, session_key: str, participant_key: str, hops: list[Hop]) -> None:
        self._participant_row(session_key, participant_key).hops = list(hops)
        self.writes.append(("set_hops", (session_key, participant_key)))

    async def health_check(self) -> dict[str, Any]:
        return {"healthy": True, "service": "fake_store"}

    def participant(self, participant_key: str, session_key: str = SESSION_KEY):
        return self.participants.get((session_key, participant_key))

    def _participant_row(self, session_key: str, participant_key: str) -> ParticipantRecord:
        return self.participants.setdefault(
            (session_key, participant_key),
            ParticipantRecord(session_key=session_key, participant_key=participant_key),
        )


class RecordingForwarder:
    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self.bodies: list[dict] = []

    async def forward(self, body: dict) -> bool:
        self.bodies.append(body)
        return True


def zoom_body(event: str, obj: dict | None = None, event_ts: int = 1700000000000, **payload):
    body: dict[str, Any] = {"event": event, "event_ts": event_ts, "payload": dict(payload)}
    if obj is not None:
        body["payload"]["object"] = obj
    return body


def participant_body(event: str, participant: dict, session_key: str = SESSION_KEY, **obj):
    meeting = {"id": 85743210001, "uuid": session_key, "topic": "Weekly sync", **obj}
    meeting["participant"] = participant
    return zoom_body(event, meeting, account_id="acct-1")


def signed_request(body: dict, secret: str = TEST_SECRET, timestamp: str = TEST_TIMESTAMP):
    """Serialize once and sign those exact bytes."""
    raw = json.dumps(body).encode("utf-8")
    headers = {
        "x-zm-request-timestamp": timestamp,
        "x-zm-signature": compute_signature(secret, timestamp, raw),
        "Content-Type": "application/json",
    }
    return raw, headers


def at(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
