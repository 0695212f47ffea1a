"""
Session reconciler: keeps one zoom_sessions row per meeting instance.

Upserts are keyed by the meeting UUID (the numeric meeting id is reused
across instances and is stored for display only). started_at is never
cleared; ended_at is written once, and neither write may leave ended_at
before started_at.
"""

from dataclasses import replace
from datetime import datetime

from app.features.zoom_webhooks.domain.models import (
    PARTICIPANT_EVENT_KINDS,
    SESSION_EVENT_KINDS,
    EventKind,
    NormalizedEvent,
    SessionRecord,
)
from app.features.zoom_webhooks.repository.store import SessionStore
from app.features.zoom_webhooks.services.key_lock import KeyedLock, session_lock_key
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

RECONCILED_KINDS = SESSION_EVENT_KINDS | PARTICIPANT_EVENT_KINDS


class SessionReconciler:
    def __init__(self, store: SessionStore, lock: KeyedLock):
        self.store = store
        self.lock = lock

    async def reconcile(self, event: NormalizedEvent) -> SessionRecord | None:
        """
        Merge the session fields carried by ``event`` into the stored row.

        Returns:
            The session as stored after the merge, or None when the event
            does not describe a session.
        """
        if event.kind not in RECONCILED_KINDS or not event.session_key:
            return None

        async with self.lock.hold(session_lock_key(event.session_key)):
            existing = await self.store.get_session(event.session_key)
            fields = {
                "meeting_id": event.meeting_id,
                "topic": event.topic,
                "timezone": event.timezone,
            }

            if event.kind == EventKind.SESSION_STARTED:
                fields["started_at"] = self._resolve_started_at(event, existing)
            elif event.kind == EventKind.SESSION_ENDED:
                fields["ended_at"] = self._resolve_ended_at(event, existing)

            await self.store.upsert_session(event.session_key, fields)

        merged = replace(existing) if existing else SessionRecord(session_key=event.session_key)
        for name, value in fields.items():
            if value is not None:
                setattr(merged, name, value)

        logger.info(
            "Session reconciled",
            session_key=event.session_key,
            kind=event.kind.value,
            started_at=merged.started_at.isoformat() if merged.started_at else None,
            ended_at=merged.ended_at.isoformat() if merged.ended_at else None,
        )
        return merged

    def _resolve_started_at(
        self, event: NormalizedEvent, existing: SessionRecord | None
    ) -> datetime | None:
        started_at = event.start_time or event.occurred_at
        if started_at and existing and existing.ended_at and started_at > existing.ended_at:
            logger.warning(
                "Start time follows stored end time, ignoring",
                session_key=event.session_key,
                started_at=started_at.isoformat(),
                ended_at=existing.ended_at.isoformat(),
            )
            return None
        return started_at

    def _resolve_ended_at(
        self, event: NormalizedEvent, existing: SessionRecord | None
    ) -> datetime | None:
        ended_at = event.end_time or event.occurred_at
        if ended_at is None:
            logger.warning("meeting.ended without end time", session_key=event.session_key)
            return None
        if existing and existing.ended_at is not None:
            logger.debug(
                "Session already ended, keeping first end time",
                session_key=event.session_key,
                ended_at=existing.ended_at.isoformat(),
            )
            return None
        if existing and existing.started_at and ended_at < existing.started_at:
            logger.warning(
                "End time precedes start time, ignoring",
                session_key=event.session_key,
                started_at=existing.started_at.isoformat(),
                ended_at=ended_at.isoformat(),
            )
            return None
        return ended_at
