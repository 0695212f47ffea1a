"""
Domain subpackage for Zoom webhook tracking.
"""

from .models import (
    EventKind,
    Hop,
    NormalizedEvent,
    ParticipantInfo,
    ParticipantRecord,
    SessionRecord,
)

__all__ = [
    "EventKind",
    "Hop",
    "NormalizedEvent",
    "ParticipantInfo",
    "ParticipantRecord",
    "SessionRecord",
]
