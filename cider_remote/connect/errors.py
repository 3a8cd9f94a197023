"""
Error taxonomy for the Cider remote client.
"""

from typing import Any

from .types import ConnectionState

CONNECTION_STATE_MESSAGES = {
    ConnectionState.IDLE: "Websocket has been created, but has not yet connected",
    ConnectionState.CONNECTING: "Websocket is still connecting",
    ConnectionState.CLOSING: "Websocket is closing / has been closed",
    ConnectionState.CLOSED: "Websocket has been closed or failed to connect",
}


class CiderError(Exception):
    """Base class for all client errors."""

    pass


class ConnectionStateError(CiderError):
    """A command or query was attempted while the session is not open."""

    def __init__(self, state: ConnectionState):
        self.state = state
        message = CONNECTION_STATE_MESSAGES.get(state, f"Websocket is {state.value}")
        super().__init__(message)


class NotConnected(CiderError):
    """Transport has no open connection to send on."""

    pass


class InvalidArgument(CiderError, ValueError):
    """Missing, mistyped or out-of-range command argument."""

    pass


class MissingParameterError(InvalidArgument):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing parameter(s): {name}")


class ParameterTypeMismatchError(InvalidArgument):
    def __init__(self, name: str, expected: str):
        self.name = name
        self.expected = expected
        super().__init__(f"Invalid parameter(s): {name} (expected {expected})")


class ParameterRangeError(InvalidArgument):
    def __init__(self, name: str, minimum: Any, maximum: Any):
        self.name = name
        self.minimum = minimum
        self.maximum = maximum
        if maximum is None:
            super().__init__(f'Parameter "{name}" must be at least {minimum}')
        elif minimum is None:
            super().__init__(f'Parameter "{name}" must be at most {maximum}')
        else:
            super().__init__(f'Parameter "{name}" must be between {minimum} and {maximum}')


class MalformedPayload(CiderError):
    """Inbound frame could not be decoded into the entity its type implies."""

    pass


class ConnectionClosed(CiderError):
    """Connection closed while a query was waiting for its response."""

    pass


class RequestPendingError(CiderError):
    """A waiter is already registered for this frame type."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"A request waiting for '{tag}' is already pending")
