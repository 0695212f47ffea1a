"""
Webhook service: the synchronous request path plus the background fan-out.

Request path (in memory, no I/O):
    verify signature -> parse -> answer url validation -> reject
    unauthenticated -> normalize -> schedule background work -> 200

Background (detached, after the response):
    session reconcile, presence tracking and forwarding, each in its own
    task so one failing never blocks the others.
"""

from dataclasses import dataclass, field
from typing import Any

from app.features.zoom_webhooks.domain.models import (
    PARTICIPANT_EVENT_KINDS,
    URL_VALIDATION_EVENT,
    EventKind,
    NormalizedEvent,
)
from app.features.zoom_webhooks.errors import AuthenticationFailure, MalformedPayload
from app.features.zoom_webhooks.services.background import BackgroundDispatcher
from app.features.zoom_webhooks.services.forwarder import EventForwarder
from app.features.zoom_webhooks.services.normalizer import normalize_event, parse_body
from app.features.zoom_webhooks.services.presence_tracker import PresenceTracker
from app.features.zoom_webhooks.services.session_reconciler import (
    RECONCILED_KINDS,
    SessionReconciler,
)
from app.infrastructure.observability.logging import get_logger
from app.models.api.zoom_webhook import UrlValidationResponse
from app.security.signature import compute_encrypted_token, verify_signature

logger = get_logger(__name__)


@dataclass(slots=True)
class WebhookOutcome:
    body: dict[str, Any]
    status_code: int = 200
    event: NormalizedEvent | None = None
    scheduled: list[str] = field(default_factory=list)


class WebhookService:
    def __init__(
        self,
        secret: str | None,
        reconciler: SessionReconciler,
        tracker: PresenceTracker,
        forwarder: EventForwarder,
        dispatcher: BackgroundDispatcher,
        require_signed_validation: bool = False,
    ):
        self.secret = secret
        self.reconciler = reconciler
        self.tracker = tracker
        self.forwarder = forwarder
        self.dispatcher = dispatcher
        self.require_signed_validation = require_signed_validation

    def authenticate(self, raw_body: bytes, timestamp: str | None, signature: str | None) -> bool:
        return verify_signature(self.secret, timestamp, raw_body, signature)

    def handle(
        self, raw_body: bytes, timestamp: str | None, signature: str | None
    ) -> WebhookOutcome:
        """
        Process one delivery up to the point the response can be sent.

        Raises:
            AuthenticationFailure: missing secret, headers or bad signature (401)
            MalformedPayload: body unusable for its event kind (400)
        """
        if not self.secret:
            logger.error("ZOOM_WEBHOOK_SECRET_TOKEN not configured, rejecting webhook")
            raise AuthenticationFailure("Webhook secret not configured")

        authenticated = self.authenticate(raw_body, timestamp, signature)

        try:
            body = parse_body(raw_body)
        except MalformedPayload:
            if not authenticated:
                raise AuthenticationFailure("Unauthorized") from None
            raise

        if not authenticated and not self._may_skip_signature(body):
            logger.warning(
                "Signature mismatch",
                zoom_event=body.get("event"),
                has_timestamp=bool(timestamp),
                has_signature=bool(signature),
            )
            raise AuthenticationFailure("Unauthorized")

        event = normalize_event(body)
        if event.kind == EventKind.ENDPOINT_VALIDATION:
            return self._answer_url_validation(event, authenticated)

        scheduled = self._schedule(event)
        return WebhookOutcome(body={"status": "ok"}, event=event, scheduled=scheduled)

    def _may_skip_signature(self, body: dict[str, Any]) -> bool:
        # Only holders of the secret can produce the token Zoom checks
        return not self.require_signed_validation and body.get("event") == URL_VALIDATION_EVENT

    def _answer_url_validation(self, event: NormalizedEvent, authenticated: bool) -> WebhookOutcome:
        if not event.plain_token:
            raise MalformedPayload("endpoint.url_validation without payload.plainToken")

        logger.info("Answering endpoint validation", signed=authenticated)
        answer = UrlValidationResponse(
            plainToken=event.plain_token,
            encryptedToken=compute_encrypted_token(self.secret, event.plain_token),
        )
        return WebhookOutcome(body=answer.model_dump(), event=event)

    def _schedule(self, event: NormalizedEvent) -> list[str]:
        context = {
            "zoom_event": event.event_name,
            "session_key": event.session_key,
            "participant_key": event.participant_key,
        }
        scheduled = []

        if event.kind in RECONCILED_KINDS:
            self.dispatcher.spawn(
                self.reconciler.reconcile(event), operation="reconcile_session", **context
            )
            scheduled.append("reconcile_session")

        if event.kind in PARTICIPANT_EVENT_KINDS:
            self.dispatcher.spawn(
                self.tracker.apply_presence(event), operation="apply_presence", **context
            )
            scheduled.append("apply_presence")

        if self.forwarder.enabled:
            self.dispatcher.spawn(
                self.forwarder.forward(event.raw), operation="forward_event", **context
            )
            scheduled.append("forward_event")

        logger.info("Webhook accepted", kind=event.kind.value, scheduled=scheduled, **context)
        return scheduled
