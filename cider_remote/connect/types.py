"""
Shared types for the Cider WebSocket protocol.
"""

from enum import Enum


class ConnectionState(Enum):
    """Session connection lifecycle."""

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class FrameType:
    """Inbound frame `type` tags the client understands."""

    PLAYBACK_STATE_UPDATE = "playbackStateUpdate"
    LYRICS = "lyrics"
    QUEUE = "queue"
    SEARCH_RESULTS = "searchResults"

    # Handshake acknowledgements (identify flavor only)
    READY = "ready"
    IDENTIFIED = "identified"

    HANDSHAKE_ACK = (READY, IDENTIFIED)


class SessionEvent:
    """Semantic events published by a session."""

    TRACK_CHANGED = "track_changed"
    STATE_CHANGED = "state_changed"
    TIMING_CHANGED = "timing_changed"
    CONNECTION_OPEN = "connection_open"
    CONNECTION_CLOSE = "connection_close"
