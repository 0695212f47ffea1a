"""
Participant presence tracker.

Turns participant-level events into presence bounds and an append-only
hop log between the main room and breakout rooms. Zoom does not always
announce a breakout join, so a main-room leave whose reason mentions
joining a breakout room is recorded as a hop to "breakout:unknown".

Hop timestamps are not forced to be monotonic: out-of-order deliveries
are appended in arrival order.
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from app.features.zoom_webhooks.domain.models import (
    MAIN_ROOM,
    ROLE_ATTENDEE,
    ROLE_HOST,
    UNKNOWN_BREAKOUT_ROOM,
    EventKind,
    Hop,
    LeaveReason,
    NormalizedEvent,
    breakout_room,
    classify_leave_reason,
    current_room,
)
from app.features.zoom_webhooks.repository.store import SessionStore
from app.features.zoom_webhooks.services.key_lock import KeyedLock, participant_lock_key
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[NormalizedEvent, str, str], Awaitable[Hop | None]]


class PresenceTracker:
    def __init__(
        self,
        store: SessionStore,
        lock: KeyedLock,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.lock = lock
        self._clock = clock or (lambda: datetime.now(UTC))
        self._handlers: dict[EventKind, Handler] = {
            EventKind.PARTICIPANT_JOINED: self._on_joined,
            EventKind.PARTICIPANT_ROLE_CHANGED: self._on_role_changed,
            EventKind.PARTICIPANT_LEFT: self._on_left,
            EventKind.PARTICIPANT_LEFT_BREAKOUT_ROOM: self._on_left_breakout_room,
        }

    async def apply_presence(self, event: NormalizedEvent) -> Hop | None:
        """
        Apply one participant event.

        Returns:
            The hop appended by this event, if any.
        """
        handler = self._handlers.get(event.kind)
        if handler is None or not event.session_key or event.participant is None:
            return None

        session_key = event.session_key
        participant_key = event.participant.key
        async with self.lock.hold(participant_lock_key(session_key, participant_key)):
            hop = await handler(event, session_key, participant_key)

        logger.info(
            "Presence applied",
            session_key=session_key,
            participant_key=participant_key,
            kind=event.kind.value,
            hop_from=hop.from_room if hop else None,
            hop_to=hop.to_room if hop else None,
        )
        return hop

    async def current_room(self, session_key: str, participant_key: str) -> str:
        return current_room(await self.store.get_hops(session_key, participant_key))

    def _event_time(self, specific: datetime | None, event: NormalizedEvent) -> datetime:
        return specific or event.occurred_at or self._clock()

    def _identity_fields(self, event: NormalizedEvent) -> dict:
        return {
            "display_name": event.participant.user_name,
            "email": event.participant.email,
        }

    async def _move_to(
        self,
        session_key: str,
        participant_key: str,
        destination: str,
        at: datetime,
        fallback_source: str | None = None,
    ) -> Hop | None:
        """Append a hop unless the participant is already in ``destination``."""
        hops = await self.store.get_hops(session_key, participant_key)
        source = current_room(hops) if hops else (fallback_source or MAIN_ROOM)
        if source == destination:
            return None

        hop = Hop(at=at, from_room=source, to_room=destination)
        hops.append(hop)
        await self.store.set_hops(session_key, participant_key, hops)
        return hop

    async def _on_joined(
        self, event: NormalizedEvent, session_key: str, participant_key: str
    ) -> Hop | None:
        participant = event.participant
        joined_at = participant.join_time or event.occurred_at
        await self.store.upsert_participant(
            session_key,
            participant_key,
            {
                **self._identity_fields(event),
                "role": ROLE_ATTENDEE,
                "present_from": joined_at,
            },
        )
        # A join always lands in the main room
        return await self._move_to(
            session_key, participant_key, MAIN_ROOM, self._event_time(participant.join_time, event)
        )

    async def _on_role_changed(
        self, event: NormalizedEvent, session_key: str, participant_key: str
    ) -> Hop | None:
        new_role = (event.participant.new_role or "").strip().lower()
        await self.store.upsert_participant(
            session_key,
            participant_key,
            {
                **self._identity_fields(event),
                "role": ROLE_HOST if new_role == ROLE_HOST else ROLE_ATTENDEE,
            },
        )
        return None

    async def _on_left(
        self, event: NormalizedEvent, session_key: str, participant_key: str
    ) -> Hop | None:
        participant = event.participant
        left_at = participant.leave_time or event.occurred_at
        await self.store.upsert_participant(
            session_key,
            participant_key,
            {
                **self._identity_fields(event),
                "present_to": left_at,
            },
        )

        reason = classify_leave_reason(participant.leave_reason)
        if reason != LeaveReason.REJOIN_BREAKOUT:
            return None
        return await self._move_to(
            session_key,
            participant_key,
            UNKNOWN_BREAKOUT_ROOM,
            self._event_time(participant.leave_time, event),
        )

    async def _on_left_breakout_room(
        self, event: NormalizedEvent, session_key: str, participant_key: str
    ) -> Hop | None:
        # Guarantees a row even when the main-room join was never observed
        await self.store.upsert_participant(
            session_key, participant_key, self._identity_fields(event)
        )
        return await self._move_to(
            session_key,
            participant_key,
            MAIN_ROOM,
            self._event_time(event.participant.leave_time, event),
            fallback_source=breakout_room(event.breakout_room_uuid),
        )
