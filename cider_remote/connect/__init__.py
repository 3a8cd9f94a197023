"""Cider WebSocket connection module."""

from .types import ConnectionState, FrameType, SessionEvent
from .errors import (
    CiderError,
    ConnectionClosed,
    ConnectionStateError,
    InvalidArgument,
    MalformedPayload,
    MissingParameterError,
    NotConnected,
    ParameterRangeError,
    ParameterTypeMismatchError,
    RequestPendingError,
)
from .bridge import RequestBridge
from .transport import WebSocketTransport
from .session import CiderSession

__all__ = [
    # Types
    "ConnectionState",
    "FrameType",
    "SessionEvent",
    # Errors
    "CiderError",
    "ConnectionClosed",
    "ConnectionStateError",
    "InvalidArgument",
    "MalformedPayload",
    "MissingParameterError",
    "NotConnected",
    "ParameterRangeError",
    "ParameterTypeMismatchError",
    "RequestPendingError",
    # Session
    "RequestBridge",
    "WebSocketTransport",
    "CiderSession",
]
