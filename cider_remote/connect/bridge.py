"""
Request/response bridging over an uncorrelated message stream.

Cider answers queries with a frame tagged by type only, so "the response to
my request" can only mean "the next frame of that type". The bridge keeps at
most one waiter per tag and serializes same-tag requests so that concurrent
callers are answered in order.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from .errors import RequestPendingError

logger = logging.getLogger(__name__)

Frame = dict[str, Any]
SendCallback = Callable[[], Awaitable[None]]


class RequestBridge:
    """
    Single-shot waiters keyed by frame tag.

    Usage:
        frame = await bridge.request("lyrics", send_get_lyrics)

    where `send_get_lyrics` is a coroutine function that transmits the
    command. The waiter is registered before the command goes out, so a
    fast response can't be missed.
    """

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize bridge.

        Args:
            timeout: Optional per-request timeout in seconds (None waits
                until the response arrives or the connection closes)
        """
        self.timeout = timeout
        self._waiters: dict[str, asyncio.Future[Frame]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def has_waiter(self, tag: str) -> bool:
        """Check if a live waiter is registered for tag."""
        waiter = self._waiters.get(tag)
        return waiter is not None and not waiter.done()

    @property
    def pending_tags(self) -> list[str]:
        return [tag for tag in self._waiters if self.has_waiter(tag)]

    def await_once(self, tag: str) -> "asyncio.Future[Frame]":
        """
        Register a waiter for the next frame tagged `tag`.

        Raises:
            RequestPendingError: If a waiter for tag is already pending
        """
        if self.has_waiter(tag):
            raise RequestPendingError(tag)
        waiter: asyncio.Future[Frame] = asyncio.get_running_loop().create_future()
        self._waiters[tag] = waiter
        return waiter

    def resolve(self, tag: str, frame: Frame) -> bool:
        """
        Hand a frame to the waiter registered for its tag.

        Returns:
            True if a waiter was resolved
        """
        waiter = self._waiters.pop(tag, None)
        if waiter is None or waiter.done():
            return False
        waiter.set_result(frame)
        logger.debug(f"Resolved pending request for '{tag}'")
        return True

    def reject_all(self, exc: BaseException) -> int:
        """
        Fail every pending waiter with exc.

        Returns:
            Number of waiters rejected
        """
        waiters = list(self._waiters.values())
        self._waiters.clear()
        rejected = 0
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(exc)
                rejected += 1
        if rejected:
            logger.debug(f"Rejected {rejected} pending request(s): {exc}")
        return rejected

    def discard(self, tag: str, waiter: "asyncio.Future[Frame]") -> None:
        """Drop waiter if it is still the one registered for tag."""
        if self._waiters.get(tag) is waiter:
            del self._waiters[tag]
        if not waiter.done():
            waiter.cancel()

    async def request(self, tag: str, send: SendCallback) -> Frame:
        """
        Send a command and wait for the next frame tagged `tag`.

        Same-tag requests run one at a time, in call order.

        Raises:
            ConnectionClosed: If the connection closes while waiting
            asyncio.TimeoutError: If a timeout is configured and expires
        """
        lock = self._locks.setdefault(tag, asyncio.Lock())
        async with lock:
            waiter = self.await_once(tag)
            try:
                await send()
                if self.timeout is None:
                    return await waiter
                return await asyncio.wait_for(asyncio.shield(waiter), self.timeout)
            finally:
                self.discard(tag, waiter)
