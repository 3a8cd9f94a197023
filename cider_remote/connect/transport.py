"""
WebSocket transport.

Owns the physical connection to the player and reports its lifecycle through
three callbacks. No reconnection logic lives here.
"""

import asyncio
import logging
from typing import Callable, Optional

import websockets
from websockets import ClientConnection

from .errors import NotConnected

logger = logging.getLogger(__name__)

# Connection constants
OPEN_TIMEOUT = 10.0  # seconds
CLOSE_TIMEOUT = 5.0  # seconds

OpenCallback = Callable[[], None]
FrameCallback = Callable[[str], None]
CloseCallback = Callable[[Optional[BaseException]], None]


class WebSocketTransport:
    """
    Single WebSocket connection with callback delivery.

    Per connection attempt the transport calls `on_open` once, `on_frame`
    for every text frame and `on_close` exactly once (with the error that
    ended the connection, if any). All callbacks run on the reader task,
    one at a time.

    Outgoing frames go through a queue drained by a writer task, so
    `send()` is synchronous and preserves call order.
    """

    def __init__(
        self,
        url: str,
        on_open: OpenCallback,
        on_frame: FrameCallback,
        on_close: CloseCallback,
    ):
        """
        Initialize transport.

        Args:
            url: WebSocket endpoint, e.g. ws://localhost:26369
            on_open: Called when the connection is established
            on_frame: Called with each inbound text frame
            on_close: Called when the connection ends or fails to open
        """
        self.url = url
        self._on_open = on_open
        self._on_frame = on_frame
        self._on_close = on_close

        self._ws: Optional[ClientConnection] = None
        self._is_open = False
        self._outgoing: Optional[asyncio.Queue[str]] = None

        # Tasks
        self._reader_task: Optional[asyncio.Task[None]] = None
        self._writer_task: Optional[asyncio.Task[None]] = None

    @property
    def is_open(self) -> bool:
        """Check if the connection is open for sending."""
        return self._is_open

    @property
    def is_running(self) -> bool:
        """Check if a connection attempt is opening or open."""
        return self._reader_task is not None and not self._reader_task.done()

    def connect(self) -> None:
        """Start a connection attempt unless one is already running."""
        if self.is_running:
            logger.debug("Connect ignored, connection already running")
            return
        self._outgoing = asyncio.Queue()
        self._reader_task = asyncio.create_task(self._run())

    def send(self, text: str) -> None:
        """
        Queue a text frame for sending.

        Raises:
            NotConnected: If the connection is not open
        """
        if not self._is_open or self._outgoing is None:
            raise NotConnected(f"Cannot send, no open connection to {self.url}")
        self._outgoing.put_nowait(text)

    async def close(self) -> None:
        """Close the connection and wait for the reader to finish."""
        task = self._reader_task
        if task is None or task.done():
            return

        if self._ws is not None and self._is_open:
            await self._flush()
            try:
                await self._ws.close()
            except Exception as e:
                logger.debug(f"Error closing websocket: {e}")
        else:
            # Still opening
            task.cancel()

        try:
            await task
        except asyncio.CancelledError:
            pass

    # -------------------------------------------------------------------------
    # Connection Loop
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        """Connect, deliver frames, then report the close."""
        error: Optional[BaseException] = None
        logger.info(f"Connecting to {self.url}...")

        try:
            async with websockets.connect(
                self.url,
                open_timeout=OPEN_TIMEOUT,
                close_timeout=CLOSE_TIMEOUT,
            ) as ws:
                self._ws = ws
                self._is_open = True
                self._writer_task = asyncio.create_task(self._write_loop(ws))
                logger.info(f"Connected to {self.url}")
                self._on_open()

                await self._receive_loop(ws)

        except websockets.ConnectionClosed as e:
            logger.warning(f"Connection closed: {e}")
            error = e
        except asyncio.CancelledError:
            logger.debug("Connection attempt cancelled")
        except (
            OSError,
            asyncio.TimeoutError,
            websockets.InvalidHandshake,
            websockets.InvalidURI,
        ) as e:
            logger.error(f"Connection failed: {e}")
            error = e
        finally:
            self._is_open = False
            self._ws = None
            await self._stop_writer()
            # Allow a new attempt to start from inside on_close
            self._reader_task = None
            self._on_close(error)

    async def _receive_loop(self, ws: ClientConnection) -> None:
        """Hand every inbound frame to on_frame."""
        async for message in ws:
            if isinstance(message, bytes):
                message = message.decode("utf-8", errors="replace")
            try:
                self._on_frame(message)
            except Exception as e:
                logger.error(f"Frame handler error: {e}", exc_info=True)

    async def _write_loop(self, ws: ClientConnection) -> None:
        """Send queued frames in order."""
        assert self._outgoing is not None
        while True:
            text = await self._outgoing.get()
            try:
                await ws.send(text)
            except websockets.ConnectionClosed:
                logger.debug("Dropping outgoing frame, connection closed")
                return
            except Exception as e:
                logger.error(f"Failed to send frame: {e}")
            finally:
                self._outgoing.task_done()

    async def _flush(self) -> None:
        """Wait for queued frames to go out before closing."""
        if self._outgoing is None:
            return
        try:
            await asyncio.wait_for(self._outgoing.join(), CLOSE_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning(f"Closing with {self._outgoing.qsize()} unsent frame(s)")

    async def _stop_writer(self) -> None:
        if self._writer_task is None:
            return
        self._writer_task.cancel()
        try:
            await self._writer_task
        except asyncio.CancelledError:
            pass
        self._writer_task = None
