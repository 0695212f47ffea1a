"""
Event normalizer: raw Zoom webhook body -> NormalizedEvent.

Unrecognized event names are accepted as EventKind.OTHER. Structural
problems raise MalformedPayload before anything is persisted or forwarded.
"""

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from app.features.zoom_webhooks.domain.models import (
    PARTICIPANT_EVENT_KINDS,
    SESSION_EVENT_KINDS,
    ZOOM_EVENT_KINDS,
    EventKind,
    NormalizedEvent,
    ParticipantInfo,
)
from app.features.zoom_webhooks.errors import MalformedPayload
from app.infrastructure.observability.logging import get_logger
from app.models.api.zoom_webhook import ZoomParticipant, ZoomWebhookEnvelope

logger = get_logger(__name__)


def parse_body(raw_body: bytes) -> dict[str, Any]:
    """Decode the request body into a JSON object."""
    try:
        body = json.loads(raw_body)
    except (ValueError, TypeError) as e:
        raise MalformedPayload(f"Body is not valid JSON: {e}") from e

    if not isinstance(body, dict):
        raise MalformedPayload("Body must be a JSON object")
    return body


def classify_event(event_name: str) -> EventKind:
    return ZOOM_EVENT_KINDS.get(event_name, EventKind.OTHER)


def _event_time(event_ts: int | None) -> datetime | None:
    if not event_ts:
        return None
    try:
        return datetime.fromtimestamp(event_ts / 1000, tz=UTC)
    except (OverflowError, OSError, ValueError) as e:
        raise MalformedPayload(f"event_ts out of range: {event_ts}") from e


def _as_utc(value: datetime | None) -> datetime | None:
    """Zoom timestamps carry a Z suffix; treat naive ones as UTC too."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _participant_info(participant: ZoomParticipant) -> ParticipantInfo:
    return ParticipantInfo(
        user_id=participant.user_id,
        user_name=participant.user_name,
        participant_uuid=participant.participant_uuid,
        participant_user_id=participant.participant_user_id,
        id=participant.id,
        email=participant.email,
        registrant_id=participant.registrant_id,
        join_time=_as_utc(participant.join_time),
        leave_time=_as_utc(participant.leave_time),
        leave_reason=participant.leave_reason,
        date_time=_as_utc(participant.date_time),
        old_role=participant.old_role,
        new_role=participant.new_role,
    )


def normalize_event(body: dict[str, Any]) -> NormalizedEvent:
    """
    Extract the canonical event tuple from a parsed webhook body.

    Args:
        body: Parsed JSON object (kept as-is on the result for forwarding)

    Returns:
        NormalizedEvent

    Raises:
        MalformedPayload: Envelope invalid or required fields missing
    """
    try:
        envelope = ZoomWebhookEnvelope.model_validate(body)
    except ValidationError as e:
        fields = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        raise MalformedPayload(f"Invalid webhook body: {', '.join(fields)}") from e

    kind = classify_event(envelope.event)
    payload = envelope.payload
    event = NormalizedEvent(
        kind=kind,
        event_name=envelope.event,
        raw=body,
        occurred_at=_event_time(envelope.event_ts),
        plain_token=payload.plainToken,
    )

    obj = payload.object
    if obj is not None:
        event.session_key = obj.uuid
        event.meeting_id = obj.id
        event.topic = obj.topic
        event.timezone = obj.timezone
        event.start_time = _as_utc(obj.start_time)
        event.end_time = _as_utc(obj.end_time)
        event.breakout_room_uuid = obj.breakout_room_uuid
        if obj.participant is not None:
            event.participant = _participant_info(obj.participant)

    if kind in SESSION_EVENT_KINDS or kind in PARTICIPANT_EVENT_KINDS:
        if not event.session_key:
            raise MalformedPayload(f"{envelope.event} is missing payload.object.uuid")
    if kind in PARTICIPANT_EVENT_KINDS and event.participant is None:
        raise MalformedPayload(f"{envelope.event} is missing payload.object.participant")

    logger.debug(
        "Webhook event normalized",
        zoom_event=event.event_name,
        kind=event.kind.value,
        session_key=event.session_key,
        participant_key=event.participant_key,
    )
    return event
