"""
Durable store contract for sessions, participants and hop logs.

Every upsert skips None fields so partial events never erase stored
values. Persistence is optional: NoopSessionStore stands in when no
database is configured, so callers never branch on its presence.
"""

from typing import Any, Protocol

from app.features.zoom_webhooks.domain.models import Hop, ParticipantRecord, SessionRecord
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SESSION_FIELDS = ("meeting_id", "topic", "timezone", "started_at", "ended_at")
PARTICIPANT_FIELDS = ("display_name", "email", "role", "present_from", "present_to")


def compact_fields(fields: dict[str, Any], allowed: tuple[str, ...]) -> dict[str, Any]:
    """Drop None values and reject columns the store does not know."""
    unknown = set(fields) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown fields: {', '.join(sorted(unknown))}")
    return {name: value for name, value in fields.items() if value is not None}


class SessionStore(Protocol):
    """Operations the reconciler and presence tracker depend on."""

    async def get_session(self, session_key: str) -> SessionRecord | None: ...

    async def upsert_session(self, session_key: str, fields: dict[str, Any]) -> None: ...

    async def get_participant(
        self, session_key: str, participant_key: str
    ) -> ParticipantRecord | None: ...

    async def upsert_participant(
        self, session_key: str, participant_key: str, fields: dict[str, Any]
    ) -> None: ...

    async def get_hops(self, session_key: str, participant_key: str) -> list[Hop]: ...

    async def set_hops(self, session_key: str, participant_key: str, hops: list[Hop]) -> None: ...

    async def health_check(self) -> dict[str, Any]: ...


class NoopSessionStore:
    """Store used when persistence is not configured."""

    async def get_session(self, session_key: str) -> SessionRecord | None:
        return None

    async def upsert_session(self, session_key: str, fields: dict[str, Any]) -> None:
        logger.debug("Persistence disabled, session write dropped", session_key=session_key)

    async def get_participant(
        self, session_key: str, participant_key: str
    ) -> ParticipantRecord | None:
        return None

    async def upsert_participant(
        self, session_key: str, participant_key: str, fields: dict[str, Any]
    ) -> None:
        logger.debug(
            "Persistence disabled, participant write dropped",
            session_key=session_key,
            participant_key=participant_key,
        )

    async def get_hops(self, session_key: str, participant_key: str) -> list[Hop]:
        return []

    async def set_hops(self, session_key: str, participant_key: str, hops: list[Hop]) -> None:
        logger.debug(
            "Persistence disabled, hop log dropped",
            session_key=session_key,
            participant_key=participant_key,
            hop_count=len(hops),
        )

    async def health_check(self) -> dict[str, Any]:
        return {"healthy": True, "service": "noop_store", "persistence": "disabled"}
