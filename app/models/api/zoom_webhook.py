# app/models/api/zoom_webhook.py
"""
Zoom webhook envelope models.
Used by the event normalizer to validate inbound bodies.

Only the fields the tracker reads are declared; everything else Zoom sends
is ignored here and still reaches the forward sink untouched via the raw body.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _as_text(value: Any) -> Any:
    """Zoom sends "" for unknown emails and bare ints for numeric ids."""
    value = _blank_to_none(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    return value


class ZoomParticipant(BaseModel):
    """``payload.object.participant``"""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    user_id: str | None = None
    user_name: str | None = None
    participant_uuid: str | None = None
    participant_user_id: str | None = None
    registrant_id: str | None = None
    email: str | None = None
    join_time: datetime | None = None
    leave_time: datetime | None = None
    leave_reason: str | None = None
    date_time: datetime | None = Field(default=None, description="Role change time")
    old_role: str | None = None
    new_role: str | None = None

    @field_validator(
        "id",
        "user_id",
        "user_name",
        "participant_uuid",
        "participant_user_id",
        "registrant_id",
        "email",
        "leave_reason",
        "old_role",
        "new_role",
        mode="before",
    )
    @classmethod
    def _normalize_text(cls, value: Any) -> Any:
        return _as_text(value)

    @field_validator("join_time", "leave_time", "date_time", mode="before")
    @classmethod
    def _normalize_times(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ZoomEventObject(BaseModel):
    """``payload.object`` for meeting events."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None, description="Numeric meeting id, display only")
    uuid: str | None = Field(default=None, description="Meeting instance id")
    topic: str | None = None
    timezone: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    breakout_room_uuid: str | None = None
    participant: ZoomParticipant | None = None

    @field_validator("id", "uuid", "topic", "timezone", "breakout_room_uuid", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> Any:
        return _as_text(value)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _normalize_times(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ZoomEventPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    account_id: str | None = None
    plainToken: str | None = None
    object: ZoomEventObject | None = None

    @field_validator("account_id", "plainToken", mode="before")
    @classmethod
    def _normalize_text(cls, value: Any) -> Any:
        return _as_text(value)


class ZoomWebhookEnvelope(BaseModel):
    """Top-level body of every Zoom webhook delivery."""

    model_config = ConfigDict(extra="ignore")

    event: str = Field(..., min_length=1)
    event_ts: int | None = Field(default=None, description="Milliseconds since epoch")
    payload: ZoomEventPayload = Field(default_factory=ZoomEventPayload)

    @field_validator("payload", mode="before")
    @classmethod
    def _default_payload(cls, value: Any) -> Any:
        return {} if value is None else value


class UrlValidationResponse(BaseModel):
    """Body returned for ``endpoint.url_validation``."""

    plainToken: str
    encryptedToken: str
