"""Shared fixtures: an in-memory transport and sample Cider frames."""

import asyncio
import json
from typing import Any, Callable, Optional

import pytest

from cider_remote.client import CiderClient
from cider_remote.config import Config
from cider_remote.connect.errors import NotConnected
from cider_remote.connect.session import CiderSession


class FakeTransport:
    """Transport double: records sends, lets tests push frames and drop the link."""

    def __init__(self, url: str, on_open: Callable, on_frame: Callable, on_close: Callable):
        self.url = url
        self.on_open = on_open
        self.on_frame = on_frame
        self.on_close = on_close
        self.sent: list[str] = []
        self.is_open = False
        self.connect_calls = 0
        self.close_calls = 0
        self.auto_open = True
        self.fail_with: Optional[BaseException] = None

    def connect(self) -> None:
        self.connect_calls += 1
        loop = asyncio.get_running_loop()
        if self.fail_with is not None:
            loop.call_soon(self.drop, self.fail_with)
        elif self.auto_open:
            loop.call_soon(self.open)

    def open(self) -> None:
        self.is_open = True
        self.on_open()

    def send(self, text: str) -> None:
        if not self.is_open:
            raise NotConnected("fake transport is not open")
        self.sent.append(text)

    async def close(self) -> None:
        self.close_calls += 1
        if self.is_open:
            self.drop()

    def drop(self, error: Optional[BaseException] = None) -> None:
        self.is_open = False
        self.on_close(error)

    def push(self, frame: Any) -> None:
        self.on_frame(frame if isinstance(frame, str) else json.dumps(frame))

    @property
    def sent_json(self) -> list[dict]:
        return [json.loads(s) for s in self.sent]

    def actions(self) -> list[str]:
        return [f.get("action", f.get("type")) for f in self.sent_json]


async def wait_for_send(transport: FakeTransport, count: int = 1) -> None:
    """Yield to the loop until transport has sent count frames."""
    for _ in range(100):
        if len(transport.sent) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"expected {count} sent frame(s), got {len(transport.sent)}")


@pytest.fixture
def transports() -> list[FakeTransport]:
    return []


@pytest.fixture
def transport_factory(transports: list[FakeTransport]) -> Callable[..., FakeTransport]:
    def factory(*args: Any) -> FakeTransport:
        transport = FakeTransport(*args)
        transports.append(transport)
        return transport

    return factory


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def session(config: Config, transport_factory: Callable[..., FakeTransport]) -> CiderSession:
    return CiderSession(config, transport_factory)


@pytest.fixture
def transport(session: CiderSession, transports: list[FakeTransport]) -> FakeTransport:
    return transports[0]


@pytest.fixture
def client(session: CiderSession) -> CiderClient:
    return CiderClient(session=session)


@pytest.fixture
def wait_sent() -> Callable:
    return wait_for_send


@pytest.fixture
def state_payload() -> Callable[..., dict]:
    """Factory for playbackStateUpdate payloads (without the envelope)."""

    def make(**overrides: Any) -> dict:
        data = {
            "name": "Around the World",
            "artistName": "Daft Punk",
            "albumName": "Homework",
            "artwork": {
                "url": "https://is1.mzstatic.com/image/{w}x{h}bb.jpg",
                "width": 300,
                "height": 300,
            },
            "trackNumber": 7,
            "durationInMillis": 429000,
            "url": {"appleMusic": "https://music.apple.com/us/album/homework/697194953?i=697195787"},
            "songId": "697195787",
            "genreNames": ["Electronic", "Music"],
            "status": True,
            "shuffleMode": 0,
            "repeatMode": 0,
            "volume": 0.5,
            "autoplayEnabled": False,
            "remainingTime": 300000.4,
            "currentPlaybackProgress": 0.3,
            "startTime": 1700000000000,
            "endTime": 1700000429000,
        }
        data.update(overrides)
        return data

    return make


@pytest.fixture
def state_frame(state_payload: Callable[..., dict]) -> Callable[..., dict]:
    """Factory for full playbackStateUpdate frames with a data envelope."""

    def make(**overrides: Any) -> dict:
        return {"type": "playbackStateUpdate", "data": state_payload(**overrides)}

    return make
