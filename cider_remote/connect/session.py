"""
Cider WebSocket session.

Handles connection lifecycle, frame dispatch, snapshot dedup and
request/response bridging.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Optional

from pyee import EventEmitter

from cider_remote import __version__
from cider_remote.config import Config
from cider_remote.playback.commands import AnyCommand, identify
from cider_remote.playback.decoders import (
    decode_playback_timing,
    decode_player_state,
    decode_track,
)
from cider_remote.playback.models import PlaybackTiming, PlayerState, Track

from .bridge import RequestBridge
from .errors import ConnectionClosed, ConnectionStateError, MalformedPayload
from .transport import CloseCallback, FrameCallback, OpenCallback, WebSocketTransport
from .types import ConnectionState, FrameType, SessionEvent

logger = logging.getLogger(__name__)

# Transport factory: (url, on_open, on_frame, on_close) -> transport
TransportFactory = Callable[[str, OpenCallback, FrameCallback, CloseCallback], Any]


class CiderSession:
    """
    Stateful session over one Cider WebSocket connection.

    Handles:
    - Connection state (idle -> connecting -> open -> closing -> closed)
    - Decoding every frame and re-publishing it under its type tag
    - Deriving track/state/timing events from playbackStateUpdate pushes,
      suppressing the ones that did not change
    - Resolving pending requests with the next frame of their type

    Events are published on an emitter owned by this session only.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        """
        Initialize session.

        Args:
            config: Client configuration (defaults if omitted)
            transport_factory: Transport constructor, WebSocketTransport by default
        """
        self.config = config or Config()
        factory = transport_factory or WebSocketTransport
        self._transport = factory(
            self.config.connection.url,
            self._on_open,
            self._on_frame,
            self._on_close,
        )

        self._events = EventEmitter()
        self._bridge = RequestBridge(timeout=self.config.connection.request_timeout)

        # Connection state
        self._state = ConnectionState.IDLE
        self._ready: Optional[asyncio.Future[None]] = None

        # Snapshots
        self._track: Optional[Track] = None
        self._player_state: Optional[PlayerState] = None
        self._timing: Optional[PlaybackTiming] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if commands can be sent."""
        return self._state is ConnectionState.OPEN

    @property
    def current_track(self) -> Optional[Track]:
        """Last published track."""
        return self._track

    @property
    def player_state(self) -> Optional[PlayerState]:
        """Last published player state."""
        return self._player_state

    @property
    def timing(self) -> Optional[PlaybackTiming]:
        """Timing from the latest state push."""
        return self._timing

    def connection_check(self) -> None:
        """
        Ensure the session is open.

        Raises:
            ConnectionStateError: With the current state, if not open
        """
        if self._state is not ConnectionState.OPEN:
            raise ConnectionStateError(self._state)

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug(f"Connection state: {self._state.value} -> {state.value}")
            self._state = state

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Open the connection and wait until it is ready.

        No-op if already connecting or open. Reconnects from closed.

        Raises:
            ConnectionStateError: If the session is closing, or the
                connection closed before becoming ready
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            if self._ready is not None and not self._ready.done():
                await asyncio.shield(self._ready)
            return
        if self._state is ConnectionState.CLOSING:
            raise ConnectionStateError(self._state)

        self._reset_snapshots()
        self._ready = asyncio.get_running_loop().create_future()
        self._set_state(ConnectionState.CONNECTING)
        self._transport.connect()
        await self._ready

    async def close(self) -> None:
        """Close the connection. No-op unless connecting or open."""
        if self._state not in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            return
        self._set_state(ConnectionState.CLOSING)
        await self._transport.close()

    def _reset_snapshots(self) -> None:
        self._track = None
        self._player_state = None
        self._timing = None

    def _mark_open(self) -> None:
        self._set_state(ConnectionState.OPEN)
        logger.info("Session open")
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(None)
        self._emit(SessionEvent.CONNECTION_OPEN)

    # -------------------------------------------------------------------------
    # Transport callbacks
    # -------------------------------------------------------------------------

    def _on_open(self) -> None:
        if not self.config.client.identify:
            self._mark_open()
            return

        client = self.config.client
        command = identify(
            client.name,
            description=client.description,
            author=client.author,
            version=__version__,
        )
        logger.debug(f"Sending identify as '{client.name}'")
        self._transport.send(command.to_json())

    def _on_close(self, error: Optional[BaseException]) -> None:
        self._set_state(ConnectionState.CLOSED)
        logger.info("Session closed" + (f": {error}" if error else ""))

        pending = self._bridge.pending_tags
        if pending:
            logger.warning(f"Abandoning pending request(s) for: {', '.join(pending)}")
        exc = ConnectionClosed("Connection closed while waiting for a response")
        if error is not None:
            exc.__cause__ = error
        self._bridge.reject_all(exc)

        if self._ready is not None and not self._ready.done():
            failure = ConnectionStateError(ConnectionState.CLOSED)
            failure.__cause__ = error
            self._ready.set_exception(failure)

        self._emit(SessionEvent.CONNECTION_CLOSE)

    def _on_frame(self, text: str) -> None:
        """Decode, publish and route one inbound frame."""
        try:
            frame = json.loads(text)
        except ValueError as e:
            logger.warning(f"Dropping undecodable frame: {e}")
            return

        if not isinstance(frame, dict):
            logger.warning(f"Dropping non-object frame: {type(frame).__name__}")
            return

        tag = frame.get("type")
        if not isinstance(tag, str) or not tag:
            logger.debug("Dropping frame without type tag")
            return

        # pyee raises on an unhandled "error" event
        if tag != "error" or self._events.listeners("error"):
            self._emit(tag, frame)

        if tag == FrameType.PLAYBACK_STATE_UPDATE:
            try:
                self._handle_playback_state(frame)
            except Exception as e:
                logger.error(f"Handler error for {tag}: {e}", exc_info=True)
        elif tag in FrameType.HANDSHAKE_ACK and self._state is ConnectionState.CONNECTING:
            self._mark_open()

        self._bridge.resolve(tag, frame)

    def _handle_playback_state(self, frame: dict[str, Any]) -> None:
        """Update snapshots from a state push and publish what changed."""
        size = self.config.client.artwork_size

        try:
            track = decode_track(frame, artwork_size=size)
        except MalformedPayload as e:
            logger.debug(f"State push without track: {e}")
        else:
            is_new = self._track is None or self._track.track_id != track.track_id
            # Zero duration marks a placeholder sent while the next song loads
            if is_new and track.duration_ms > 0:
                self._track = track
                logger.info(f"Now playing: {track.artist} - {track.title} [{track.album}]")
                self._emit(SessionEvent.TRACK_CHANGED, track)

        try:
            player_state = decode_player_state(frame)
        except MalformedPayload as e:
            logger.debug(f"State push without player state: {e}")
        else:
            if player_state != self._player_state:
                self._player_state = player_state
                self._emit(SessionEvent.STATE_CHANGED, player_state)

        try:
            timing = decode_playback_timing(frame)
        except MalformedPayload as e:
            logger.debug(f"State push without timing: {e}")
        else:
            self._timing = timing
            self._emit(SessionEvent.TIMING_CHANGED, timing)

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def send(self, command: AnyCommand) -> None:
        """
        Send a command.

        Raises:
            ConnectionStateError: If the session is not open
        """
        self.connection_check()
        payload = command.to_json()
        logger.debug(f"Sending {payload}")
        self._transport.send(payload)

    async def request(self, tag: str, command: AnyCommand) -> dict[str, Any]:
        """
        Send a command and wait for the next frame tagged `tag`.

        Raises:
            ConnectionStateError: If the session is not open
            ConnectionClosed: If the connection closes before the response
        """
        self.connection_check()

        async def _send() -> None:
            self.send(command)

        return await self._bridge.request(tag, _send)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def _emit(self, event: str, *args: Any) -> None:
        try:
            self._events.emit(event, *args)
        except Exception as e:
            logger.error(f"Listener error for {event}: {e}", exc_info=True)

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        """Call callback every time event is published."""
        self._events.on(event, callback)

    def once(self, event: str, callback: Callable[..., Any]) -> None:
        """Call callback the next time event is published only."""
        self._events.once(event, callback)

    def remove_listener(self, event: str, callback: Callable[..., Any]) -> None:
        self._events.remove_listener(event, callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        self.remove_listener(event, callback)
