"""
Domain models for Zoom meeting tracking.

Dataclasses describing normalized events, session rows, participant rows
and room hops. Room identifiers are ``"main"`` or ``"breakout:<uuid>"``.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

MAIN_ROOM = "main"
BREAKOUT_PREFIX = "breakout:"
UNKNOWN_BREAKOUT_ROOM = f"{BREAKOUT_PREFIX}unknown"
UNKNOWN_PARTICIPANT = "unknown"

ROLE_HOST = "host"
ROLE_ATTENDEE = "attendee"


class EventKind(StrEnum):
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    PARTICIPANT_JOINED = "participant_joined"
    PARTICIPANT_LEFT = "participant_left"
    PARTICIPANT_ROLE_CHANGED = "participant_role_changed"
    PARTICIPANT_LEFT_BREAKOUT_ROOM = "participant_left_breakout_room"
    ENDPOINT_VALIDATION = "endpoint_validation"
    OTHER = "other"


URL_VALIDATION_EVENT = "endpoint.url_validation"

ZOOM_EVENT_KINDS: dict[str, EventKind] = {
    "meeting.started": EventKind.SESSION_STARTED,
    "meeting.ended": EventKind.SESSION_ENDED,
    "meeting.participant_joined": EventKind.PARTICIPANT_JOINED,
    "meeting.participant_left": EventKind.PARTICIPANT_LEFT,
    "meeting.participant_role_changed": EventKind.PARTICIPANT_ROLE_CHANGED,
    "meeting.participant_left_breakout_room": EventKind.PARTICIPANT_LEFT_BREAKOUT_ROOM,
    URL_VALIDATION_EVENT: EventKind.ENDPOINT_VALIDATION,
}

SESSION_EVENT_KINDS = frozenset({EventKind.SESSION_STARTED, EventKind.SESSION_ENDED})
PARTICIPANT_EVENT_KINDS = frozenset(
    {
        EventKind.PARTICIPANT_JOINED,
        EventKind.PARTICIPANT_LEFT,
        EventKind.PARTICIPANT_ROLE_CHANGED,
        EventKind.PARTICIPANT_LEFT_BREAKOUT_ROOM,
    }
)


class LeaveReason(StrEnum):
    REJOIN_BREAKOUT = "rejoin_breakout"
    HOST_ENDED = "host_ended"
    DISCONNECT = "disconnect"
    OTHER = "other"


# Zoom only exposes free text, e.g. "left the meeting to join breakout room."
_REJOIN_BREAKOUT = re.compile(r"join(?:ed|ing)?\s+(?:a\s+|the\s+)?breakout", re.IGNORECASE)
_HOST_ENDED = re.compile(r"host\s+(?:ended|closed)", re.IGNORECASE)
_DISCONNECT = re.compile(r"disconnect|connection|network|timed?\s*out", re.IGNORECASE)


def classify_leave_reason(text: str | None) -> LeaveReason:
    """Map Zoom's human readable leave reason onto a small set of causes."""
    if not text:
        return LeaveReason.OTHER
    if _REJOIN_BREAKOUT.search(text):
        return LeaveReason.REJOIN_BREAKOUT
    if _HOST_ENDED.search(text):
        return LeaveReason.HOST_ENDED
    if _DISCONNECT.search(text):
        return LeaveReason.DISCONNECT
    return LeaveReason.OTHER


def breakout_room(room_uuid: str | None) -> str:
    return f"{BREAKOUT_PREFIX}{room_uuid}" if room_uuid else UNKNOWN_BREAKOUT_ROOM


@dataclass(slots=True)
class ParticipantInfo:
    """``payload.object.participant`` after normalization."""

    user_id: str | None = None
    user_name: str | None = None
    participant_uuid: str | None = None
    participant_user_id: str | None = None
    id: str | None = None
    email: str | None = None
    registrant_id: str | None = None
    join_time: datetime | None = None
    leave_time: datetime | None = None
    leave_reason: str | None = None
    date_time: datetime | None = None
    old_role: str | None = None
    new_role: str | None = None

    @property
    def key(self) -> str:
        """
        Stable participant key within a session.

        Preference: participant UUID, email, platform user id, display
        name, then the "unknown" sentinel.
        """
        for candidate in (
            self.participant_uuid,
            self.email.lower() if self.email else None,
            self.participant_user_id,
            self.id,
            self.user_id,
            self.user_name,
        ):
            if candidate:
                return candidate
        return UNKNOWN_PARTICIPANT


@dataclass(slots=True)
class NormalizedEvent:
    """Canonical view of one webhook delivery."""

    kind: EventKind
    event_name: str
    raw: dict[str, Any]
    occurred_at: datetime | None = None
    session_key: str | None = None
    meeting_id: str | None = None
    topic: str | None = None
    timezone: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    breakout_room_uuid: str | None = None
    participant: ParticipantInfo | None = None
    plain_token: str | None = None

    @property
    def participant_key(self) -> str | None:
        return self.participant.key if self.participant else None


@dataclass(slots=True)
class Hop:
    """One room transition in a participant's hop log."""

    at: datetime
    from_room: str
    to_room: str

    def to_dict(self) -> dict[str, str]:
        return {"at": self.at.isoformat(), "from": self.from_room, "to": self.to_room}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Hop":
        at = data["at"]
        if isinstance(at, str):
            at = datetime.fromisoformat(at)
        return cls(at=at, from_room=data["from"], to_room=data["to"])


def current_room(hops: list[Hop]) -> str:
    """Room the participant is in according to the hop log."""
    return hops[-1].to_room if hops else MAIN_ROOM


@dataclass(slots=True)
class SessionRecord:
    """Represents a zoom_sessions row."""

    session_key: str
    meeting_id: str | None = None
    topic: str | None = None
    timezone: str | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None


@dataclass(slots=True)
class ParticipantRecord:
    """Represents a zoom_participants row."""

    session_key: str
    participant_key: str
    display_name: str | None = None
    email: str | None = None
    role: str | None = None
    present_from: datetime | None = None
    present_to: datetime | None = None
    hops: list[Hop] = field(default_factory=list)

    @property
    def total_minutes(self) -> int | None:
        """Whole minutes between the presence bounds, derived on every read."""
        if self.present_from is None or self.present_to is None:
            return None
        if self.present_to < self.present_from:
            return None
        return int((self.present_to - self.present_from).total_seconds() // 60)
