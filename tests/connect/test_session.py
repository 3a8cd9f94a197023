"""Tests for the Cider session: lifecycle, dispatch and dedup."""

import asyncio
import json
from typing import Callable
from unittest.mock import MagicMock, patch

import pytest

from cider_remote.config import Config
from cider_remote.connect.errors import ConnectionClosed, ConnectionStateError
from cider_remote.connect.session import CiderSession
from cider_remote.connect.types import ConnectionState, SessionEvent
from cider_remote.playback.commands import play
from cider_remote.playback.models import PlaybackTiming, PlayerState, RepeatMode, Track


def listen(session: CiderSession, event: str) -> MagicMock:
    """Attach a mock listener to event."""
    listener = MagicMock()
    session.on(event, listener)
    return listener


class TestLifecycle:
    """Tests for connection state transitions."""

    def test_initial_state(self, session: CiderSession) -> None:
        """Test that a new session is idle with no snapshots."""
        assert session.state is ConnectionState.IDLE
        assert session.is_open is False
        assert session.current_track is None
        assert session.player_state is None
        assert session.timing is None

    def test_transport_gets_configured_url(self, transport) -> None:
        """Test that the transport is created for ws://host:port."""
        assert transport.url == "ws://localhost:26369"

    @pytest.mark.asyncio
    async def test_connect_opens(self, session: CiderSession, transport) -> None:
        """Test that connect waits for the transport to open."""
        opened = listen(session, SessionEvent.CONNECTION_OPEN)

        await session.connect()

        assert session.state is ConnectionState.OPEN
        assert transport.connect_calls == 1
        opened.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_connect_when_open_is_noop(self, session: CiderSession, transport) -> None:
        """Test that connecting twice does not open a second connection."""
        await session.connect()
        await session.connect()
        assert transport.connect_calls == 1

    @pytest.mark.asyncio
    async def test_connect_failure(self, session: CiderSession, transport) -> None:
        """Test that a failed open ends in CLOSED and raises."""
        transport.fail_with = OSError("connection refused")
        closed = listen(session, SessionEvent.CONNECTION_CLOSE)

        with pytest.raises(ConnectionStateError) as exc_info:
            await session.connect()

        assert exc_info.value.state is ConnectionState.CLOSED
        assert isinstance(exc_info.value.__cause__, OSError)
        assert session.state is ConnectionState.CLOSED
        closed.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_close(self, session: CiderSession, transport) -> None:
        """Test that close ends in CLOSED and emits connection_close."""
        await session.connect()
        closed = listen(session, SessionEvent.CONNECTION_CLOSE)

        await session.close()

        assert session.state is ConnectionState.CLOSED
        closed.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_close_when_idle_is_noop(self, session: CiderSession, transport) -> None:
        """Test that closing an idle session does nothing."""
        await session.close()
        assert session.state is ConnectionState.IDLE
        assert transport.close_calls == 0

    @pytest.mark.asyncio
    async def test_reconnect_after_close(self, session: CiderSession, transport) -> None:
        """Test that a closed session can connect again."""
        await session.connect()
        await session.close()
        await session.connect()

        assert session.state is ConnectionState.OPEN
        assert transport.connect_calls == 2

    @pytest.mark.asyncio
    async def test_connect_while_closing_raises(self, session: CiderSession, transport) -> None:
        """Test that connect is refused while the session is closing."""
        await session.connect()
        session._set_state(ConnectionState.CLOSING)

        with pytest.raises(ConnectionStateError) as exc_info:
            await session.connect()
        assert exc_info.value.state is ConnectionState.CLOSING

    @pytest.mark.asyncio
    async def test_remote_drop(self, session: CiderSession, transport) -> None:
        """Test that a drop from the player side closes the session."""
        await session.connect()
        transport.drop(ConnectionResetError("reset"))
        assert session.state is ConnectionState.CLOSED


class TestConnectionCheck:
    """Tests for the open-state guard on commands."""

    def test_check_idle(self, session: CiderSession) -> None:
        """Test that the guard reports the idle state."""
        with pytest.raises(ConnectionStateError) as exc_info:
            session.connection_check()
        assert exc_info.value.state is ConnectionState.IDLE
        assert "not yet connected" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_send_when_closed_transmits_nothing(
        self, session: CiderSession, transport
    ) -> None:
        """Test that commands after close fail without reaching the transport."""
        await session.connect()
        await session.close()

        with pytest.raises(ConnectionStateError) as exc_info:
            session.send(play())

        assert exc_info.value.state is ConnectionState.CLOSED
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_send_when_open(self, session: CiderSession, transport) -> None:
        """Test that commands are serialized onto the transport."""
        await session.connect()
        session.send(play())
        assert transport.sent_json == [{"action": "play"}]


class TestHandshake:
    """Tests for the optional identify handshake."""

    @pytest.fixture
    def config(self) -> Config:
        cfg = Config()
        cfg.client.identify = True
        cfg.client.name = "test-remote"
        return cfg

    @pytest.mark.asyncio
    async def test_identify_sent_on_open(self, session: CiderSession, transport) -> None:
        """Test that identify goes out first and the session waits for the ack."""
        task = asyncio.create_task(session.connect())
        for _ in range(10):
            if transport.sent:
                break
            await asyncio.sleep(0)

        [frame] = transport.sent_json
        assert frame["action"] == "identify"
        assert frame["name"] == "test-remote"
        assert session.state is ConnectionState.CONNECTING

        transport.push({"type": "ready"})
        await task
        assert session.state is ConnectionState.OPEN

    @pytest.mark.asyncio
    async def test_identified_ack(self, session: CiderSession, transport) -> None:
        """Test that the 'identified' tag also completes the handshake."""
        task = asyncio.create_task(session.connect())
        for _ in range(10):
            if transport.sent:
                break
            await asyncio.sleep(0)

        transport.push({"type": "identified", "data": {}})
        await task
        assert session.is_open


class TestFrameDispatch:
    """Tests for decoding and publishing inbound frames."""

    @pytest.mark.asyncio
    async def test_frame_published_under_tag(self, session: CiderSession, transport) -> None:
        """Test that every frame is re-published under its type tag."""
        await session.connect()
        listener = listen(session, "lyrics")

        frame = {"type": "lyrics", "data": [{"line": "Hello"}]}
        transport.push(frame)

        listener.assert_called_once_with(frame)

    @pytest.mark.asyncio
    async def test_garbage_frames_dropped(self, session: CiderSession, transport) -> None:
        """Test that undecodable and untagged frames are ignored."""
        await session.connect()
        listener = MagicMock()
        session.on(SessionEvent.TRACK_CHANGED, listener)

        transport.push("not json{")
        transport.push("[1, 2, 3]")
        transport.push({"data": {}})

        assert session.state is ConnectionState.OPEN
        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_tag_without_listener(self, session: CiderSession, transport) -> None:
        """Test that an 'error' frame with nobody listening is not fatal."""
        await session.connect()
        transport.push({"type": "error", "data": "oops"})
        assert session.is_open

    @pytest.mark.asyncio
    async def test_error_tag_with_listener(self, session: CiderSession, transport) -> None:
        """Test that an 'error' frame reaches listeners."""
        await session.connect()
        listener = listen(session, "error")
        transport.push({"type": "error", "data": "oops"})
        listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_listener_exception_isolated(
        self, session: CiderSession, transport, state_frame: Callable[..., dict]
    ) -> None:
        """Test that a failing listener does not break dispatch."""
        await session.connect()
        session.on(SessionEvent.TRACK_CHANGED, MagicMock(side_effect=RuntimeError("bad")))
        state_listener = listen(session, SessionEvent.STATE_CHANGED)

        transport.push(state_frame())

        state_listener.assert_called_once()
        assert session.current_track is not None

    @pytest.mark.asyncio
    async def test_once_listener(self, session: CiderSession, transport) -> None:
        """Test that once listeners fire a single time."""
        await session.connect()
        listener = MagicMock()
        session.once("queue", listener)

        transport.push({"type": "queue", "data": []})
        transport.push({"type": "queue", "data": []})

        assert listener.call_count == 1

    @pytest.mark.asyncio
    async def test_off_removes_listener(self, session: CiderSession, transport) -> None:
        """Test that removed listeners are not called."""
        await session.connect()
        listener = listen(session, "queue")
        session.off("queue", listener)

        transport.push({"type": "queue", "data": []})

        listener.assert_not_called()


class TestPlaybackStateDedup:
    """Tests for track/state/timing derivation from state pushes."""

    @pytest.fixture
    def listeners(self, session: CiderSession) -> dict[str, MagicMock]:
        return {
            "track": listen(session, SessionEvent.TRACK_CHANGED),
            "state": listen(session, SessionEvent.STATE_CHANGED),
            "timing": listen(session, SessionEvent.TIMING_CHANGED),
        }

    @pytest.mark.asyncio
    async def test_first_push_fires_everything(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_frame: Callable[..., dict],
    ) -> None:
        """Test that the first push publishes track, state and timing."""
        await session.connect()
        transport.push(state_frame())

        [track] = listeners["track"].call_args.args
        assert isinstance(track, Track)
        assert track.track_id == "697195787"
        assert track.title == "Around the World"

        [state] = listeners["state"].call_args.args
        assert state == PlayerState(
            is_playing=True,
            is_shuffling=False,
            repeat_mode=RepeatMode.OFF,
            volume=0.5,
            autoplay=False,
        )

        [timing] = listeners["timing"].call_args.args
        assert isinstance(timing, PlaybackTiming)
        assert timing.remaining_ms == 300000
        assert timing.elapsed_ms == 129000

        assert session.current_track == track
        assert session.player_state == state
        assert session.timing == timing

    @pytest.mark.asyncio
    async def test_identical_pushes(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_frame: Callable[..., dict],
    ) -> None:
        """Test that repeated pushes only republish timing."""
        await session.connect()
        transport.push(state_frame())
        transport.push(state_frame())

        assert listeners["track"].call_count == 1
        assert listeners["state"].call_count == 1
        assert listeners["timing"].call_count == 2

    @pytest.mark.asyncio
    async def test_track_change(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_frame: Callable[..., dict],
    ) -> None:
        """Test that a new song id fires track_changed again."""
        await session.connect()
        transport.push(state_frame())
        transport.push(state_frame(songId="111", name="Da Funk"))

        assert listeners["track"].call_count == 2
        assert session.current_track.track_id == "111"

    @pytest.mark.asyncio
    async def test_placeholder_track_suppressed(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_frame: Callable[..., dict],
    ) -> None:
        """Test that a zero-duration track is neither published nor cached."""
        await session.connect()
        transport.push(state_frame(durationInMillis=0))

        listeners["track"].assert_not_called()
        assert session.current_track is None

        transport.push(state_frame())
        listeners["track"].assert_called_once()

    @pytest.mark.asyncio
    async def test_negative_duration_suppressed(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_frame: Callable[..., dict],
    ) -> None:
        """Test that a negative duration is treated like a placeholder."""
        await session.connect()
        transport.push(state_frame(durationInMillis=-1))

        listeners["track"].assert_not_called()
        assert session.current_track is None

    @pytest.mark.asyncio
    async def test_same_id_with_new_metadata(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_frame: Callable[..., dict],
    ) -> None:
        """Test that track identity is the id alone, not the other fields."""
        await session.connect()
        transport.push(state_frame())
        transport.push(state_frame(name="Around the World (Radio Edit)", albumName="Musique"))

        listeners["track"].assert_called_once()
        assert session.current_track.title == "Around the World"

    @pytest.mark.asyncio
    async def test_bad_push_keeps_session_open(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_frame: Callable[..., dict],
    ) -> None:
        """Test that a push with mistyped fields is dropped and the next one handled."""
        await session.connect()
        transport.push(state_frame(trackNumber="A1"))
        transport.push(state_frame(songId="111", durationInMillis=float("nan")))

        listeners["track"].assert_not_called()
        assert session.state is ConnectionState.OPEN

        transport.push(state_frame())

        assert session.state is ConnectionState.OPEN
        [track] = listeners["track"].call_args.args
        assert track.track_number == 7

    @pytest.mark.asyncio
    async def test_handler_error_contained(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_frame: Callable[..., dict],
    ) -> None:
        """Test that an unexpected error while handling a push is logged, not raised."""
        await session.connect()
        with patch(
            "cider_remote.connect.session.decode_track", side_effect=RuntimeError("boom")
        ):
            transport.push(state_frame())

        assert session.state is ConnectionState.OPEN
        listeners["track"].assert_not_called()

    @pytest.mark.asyncio
    async def test_state_change(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_frame: Callable[..., dict],
    ) -> None:
        """Test that a changed option fires state_changed again."""
        await session.connect()
        transport.push(state_frame())
        transport.push(state_frame(volume=0.8))
        transport.push(state_frame(volume=0.8))

        assert listeners["state"].call_count == 2
        assert session.player_state.volume == 0.8

    @pytest.mark.asyncio
    async def test_partial_push(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_payload: Callable[..., dict],
    ) -> None:
        """Test that a push missing state fields still publishes the track."""
        await session.connect()
        payload = state_payload()
        del payload["volume"]
        transport.push({"type": "playbackStateUpdate", "data": payload})

        listeners["track"].assert_called_once()
        listeners["state"].assert_not_called()
        listeners["timing"].assert_called_once()

    @pytest.mark.asyncio
    async def test_push_without_envelope(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_payload: Callable[..., dict],
    ) -> None:
        """Test that state fields at the top level of the frame are accepted."""
        await session.connect()
        transport.push({"type": "playbackStateUpdate", **state_payload()})

        listeners["track"].assert_called_once()
        listeners["state"].assert_called_once()

    @pytest.mark.asyncio
    async def test_snapshots_reset_on_reconnect(
        self,
        session: CiderSession,
        transport,
        listeners: dict[str, MagicMock],
        state_frame: Callable[..., dict],
    ) -> None:
        """Test that the same song is published again after reconnecting."""
        await session.connect()
        transport.push(state_frame())
        await session.close()
        await session.connect()

        assert session.current_track is None
        transport.push(state_frame())
        assert listeners["track"].call_count == 2


class TestRequest:
    """Tests for request/response through the session."""

    @pytest.mark.asyncio
    async def test_request_resolves_with_next_frame(
        self, session: CiderSession, transport, wait_sent: Callable
    ) -> None:
        """Test that a request resolves with the next frame of its tag."""
        await session.connect()
        task = asyncio.create_task(session.request("lyrics", play()))
        await wait_sent(transport)

        frame = {"type": "lyrics", "data": []}
        transport.push(frame)

        assert await task == frame

    @pytest.mark.asyncio
    async def test_request_when_closed(self, session: CiderSession) -> None:
        """Test that requests fail fast when not open."""
        with pytest.raises(ConnectionStateError):
            await session.request("lyrics", play())

    @pytest.mark.asyncio
    async def test_close_rejects_pending(
        self,
        session: CiderSession,
        transport,
        wait_sent: Callable,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test that closing fails in-flight requests with ConnectionClosed."""
        await session.connect()
        task = asyncio.create_task(session.request("lyrics", play()))
        await wait_sent(transport)

        await session.close()

        with pytest.raises(ConnectionClosed):
            await task
        assert "pending request(s) for: lyrics" in caplog.text

    @pytest.mark.asyncio
    async def test_drop_rejects_pending_with_cause(
        self, session: CiderSession, transport, wait_sent: Callable
    ) -> None:
        """Test that a dropped connection is chained as the cause."""
        await session.connect()
        task = asyncio.create_task(session.request("queue", play()))
        await wait_sent(transport)

        transport.drop(ConnectionResetError("reset"))

        with pytest.raises(ConnectionClosed) as exc_info:
            await task
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    @pytest.mark.asyncio
    async def test_request_frame_also_published(
        self, session: CiderSession, transport, wait_sent: Callable
    ) -> None:
        """Test that response frames still reach passthrough listeners."""
        await session.connect()
        listener = listen(session, "queue")
        task = asyncio.create_task(session.request("queue", play()))
        await wait_sent(transport)

        transport.push(json.dumps({"type": "queue", "data": []}))
        await task

        listener.assert_called_once()
