"""
Service layer for Zoom webhook tracking.
"""

from .background import BackgroundDispatcher
from .forwarder import EventForwarder
from .presence_tracker import PresenceTracker
from .session_reconciler import SessionReconciler
from .webhook_service import WebhookOutcome, WebhookService

__all__ = [
    "BackgroundDispatcher",
    "EventForwarder",
    "PresenceTracker",
    "SessionReconciler",
    "WebhookOutcome",
    "WebhookService",
]
