"""
Cider remote client.

Command and query surface over a CiderSession.
"""

import logging
from typing import Any, Callable, Optional

from cider_remote.config import Config
from cider_remote.connect.errors import ParameterTypeMismatchError
from cider_remote.connect.session import CiderSession
from cider_remote.connect.types import ConnectionState, FrameType
from cider_remote.playback import commands
from cider_remote.playback.decoders import (
    decode_lyrics,
    decode_player_state,
    decode_queue,
    decode_search_results,
    decode_track,
    flatten_lyrics,
)
from cider_remote.playback.models import (
    LyricLine,
    PlayerState,
    QueueSnapshot,
    Track,
)

logger = logging.getLogger(__name__)

PLAYBACK_COMMANDS = ("play", "pause", "next", "previous")


class CiderClient:
    """
    Remote control for a Cider player.

    Command methods are synchronous: they validate arguments, check the
    connection and queue the command. Query methods are coroutines that
    resolve with the player's next response of the matching type.

    Usage:
        async with CiderClient() as cider:
            cider.on("track_changed", print)
            track = await cider.get_current_track()
            cider.set_volume(0.5)
    """

    def __init__(self, config: Optional[Config] = None, session: Optional[CiderSession] = None):
        """
        Initialize client.

        Args:
            config: Client configuration (defaults if omitted)
            session: Existing session to drive (created from config if omitted)
        """
        self.config = config or (session.config if session else Config())
        self.session = session or CiderSession(self.config)

    async def __aenter__(self) -> "CiderClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self.session.state

    async def connect(self) -> None:
        """Open the connection (no-op if already open or opening)."""
        await self.session.connect()

    async def close(self) -> None:
        await self.session.close()

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self.session.on(event, callback)

    def once(self, event: str, callback: Callable[..., Any]) -> None:
        self.session.once(event, callback)

    def remove_listener(self, event: str, callback: Callable[..., Any]) -> None:
        self.session.remove_listener(event, callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        self.session.off(event, callback)

    @property
    def _legacy(self) -> bool:
        return self.config.client.legacy_commands

    @property
    def _artwork_size(self) -> Optional[int]:
        return self.config.client.artwork_size

    # -------------------------------------------------------------------------
    # Playback commands
    # -------------------------------------------------------------------------

    def command(self, name: str) -> None:
        """
        Send a basic playback command by name.

        Args:
            name: One of "play", "pause", "next", "previous"
        """
        self.session.connection_check()
        commands.check_string(name, "command")
        if name not in PLAYBACK_COMMANDS:
            raise ParameterTypeMismatchError("command", " | ".join(PLAYBACK_COMMANDS))
        builders = {
            "play": commands.play,
            "pause": commands.pause,
            "next": commands.next_track,
            "previous": commands.previous_track,
        }
        self.session.send(builders[name]())

    def play(self) -> None:
        self.session.send(commands.play())

    def pause(self) -> None:
        self.session.send(commands.pause())

    def play_pause(self) -> None:
        self.session.send(commands.play_pause())

    def stop(self) -> None:
        self.session.send(commands.stop())

    def next(self) -> None:
        self.session.send(commands.next_track())

    def previous(self) -> None:
        self.session.send(commands.previous_track())

    def seek(self, time: float, in_ms: bool = False) -> None:
        """
        Skip to a position in the current song.

        Args:
            time: Position in seconds
            in_ms: Accept time in milliseconds instead
        """
        self.session.connection_check()
        self.session.send(commands.seek(time, in_ms, legacy=self._legacy))

    def set_volume(self, volume: float) -> None:
        """Set volume, from 0 to 1."""
        self.session.connection_check()
        self.session.send(commands.set_volume(volume, legacy=self._legacy))

    def mute(self) -> None:
        self.session.send(commands.mute())

    def cycle_repeat(self) -> None:
        """Advance to the next repeat mode (off -> track -> queue -> off)."""
        self.session.send(commands.cycle_repeat())

    async def set_repeat(self, mode: int) -> None:
        """
        Set the repeat mode.

        The player can only cycle modes, so this reads the current mode and
        sends as many cycle commands as needed.

        Args:
            mode: 0 = off, 1 = repeat track, 2 = repeat queue
        """
        self.session.connection_check()
        target = commands.check_repeat_mode(mode)

        current = await self.get_player_state()
        steps = commands.repeat_cycle_steps(current.repeat_mode, target)
        logger.debug(
            f"Repeat {current.repeat_mode.name} -> {target.name}: {steps} cycle(s)"
        )
        for _ in range(steps):
            self.cycle_repeat()

    def toggle_shuffle(self) -> None:
        self.session.send(commands.toggle_shuffle())

    def set_shuffle(self, enabled: bool) -> None:
        self.session.connection_check()
        self.session.send(commands.set_shuffle(enabled))

    def set_autoplay(self, enabled: bool) -> None:
        self.session.connection_check()
        self.session.send(commands.set_autoplay(enabled))

    # -------------------------------------------------------------------------
    # Queue and media selection
    # -------------------------------------------------------------------------

    def move_queue(self, from_index: int, to_index: int) -> None:
        """Move the queue item at from_index to to_index."""
        self.session.connection_check()
        self.session.send(commands.move_queue(from_index, to_index))

    def play_by_id(self, item_id: str, kind: str = "song") -> None:
        """Start playing a catalog item right away."""
        self.session.connection_check()
        self.session.send(commands.play_by_id(item_id, kind))

    def play_next_by_id(self, item_id: str, kind: str = "song") -> None:
        """Insert a catalog item right after the current song."""
        self.session.connection_check()
        self.session.send(commands.play_next_by_id(item_id, kind))

    def enqueue_by_id(self, item_id: str, kind: str = "song") -> None:
        """Append a catalog item to the end of the queue."""
        self.session.connection_check()
        self.session.send(commands.enqueue_by_id(item_id, kind))

    def quit(self) -> None:
        """Ask the player application to quit."""
        self.session.send(commands.quit_player())

    def force_update(self) -> None:
        """Ask the player to push a fresh playbackStateUpdate."""
        self.session.send(commands.get_current_media_item())

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def _request_state(self) -> dict[str, Any]:
        return await self.session.request(
            FrameType.PLAYBACK_STATE_UPDATE, commands.get_current_media_item()
        )

    async def get_current_track(self) -> Track:
        """Fetch the song currently loaded in the player."""
        frame = await self._request_state()
        return decode_track(frame, artwork_size=self._artwork_size)

    async def get_player_state(self) -> PlayerState:
        """Fetch the current player options."""
        frame = await self._request_state()
        return decode_player_state(frame)

    async def get_queue(self) -> QueueSnapshot:
        frame = await self.session.request(FrameType.QUEUE, commands.get_queue())
        return decode_queue(frame, artwork_size=self._artwork_size)

    async def get_lyrics_advanced(self) -> list[LyricLine]:
        """
        Fetch timed lyrics for the current song.

        Returns:
            Lines in order, each with start/end time (seconds), text and
            optional translation
        """
        frame = await self.session.request(FrameType.LYRICS, commands.get_lyrics())
        return decode_lyrics(frame)

    async def get_lyrics(self) -> str:
        """Fetch lyrics for the current song as plain text, one line each."""
        return flatten_lyrics(await self.get_lyrics_advanced())

    async def search(self, query: str, kind: str = "song", limit: int = 10) -> list[Track]:
        """
        Search the catalog.

        Args:
            query: Search term
            kind: Result kind (song, album, playlist, ...)
            limit: Maximum number of results, 1-50
        """
        self.session.connection_check()
        command = commands.search(query, kind, limit)
        frame = await self.session.request(FrameType.SEARCH_RESULTS, command)
        return decode_search_results(frame, kind=kind, artwork_size=self._artwork_size)
