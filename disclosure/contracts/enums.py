from __future__ import annotations

from enum import Enum


class Direction(str, Enum):
    SENT = "sent"
    RECEIVED = "received"


class EventKind(str, Enum):
    """Top-level "type" of a wire event."""
    MESSAGE = "Message"
    LOGGING = "Logging"
    ERROR = "Error"


class EventType(str, Enum):
    SESSION_STARTED = "session_started"
    PARSE_COMPLETED = "parse_completed"
    RESOLVE_COMPLETED = "resolve_completed"
    DISCLOSURE_COMMITTED = "disclosure_committed"
    SESSION_COMPLETED = "session_completed"
    SESSION_FAILED = "session_failed"
    LOG = "log"
