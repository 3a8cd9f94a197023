"""
Outgoing command envelopes for the Cider WebSocket API.

Commands are plain data; the session serializes them with `to_json()`.
Argument validation happens here, synchronously, before anything is sent.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from cider_remote.connect.errors import (
    MissingParameterError,
    ParameterRangeError,
    ParameterTypeMismatchError,
)

from .models import RepeatMode

SEARCH_LIMIT_MIN = 1
SEARCH_LIMIT_MAX = 50
REPEAT_MODE_COUNT = len(RepeatMode)


@dataclass(frozen=True)
class Command:
    """Current envelope shape: {"action": ..., **args}."""

    action: str
    args: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, **self.args}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class LegacyCommand:
    """Historical envelope used by older players for seek/volume: {"type", "data"}."""

    type: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


AnyCommand = Union[Command, LegacyCommand]


# -------------------------------------------------------------------------
# Validation
# -------------------------------------------------------------------------


def check_number(
    value: Any,
    name: str,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
    integer: bool = False,
) -> None:
    """
    Validate a numeric argument, bounds inclusive.

    Raises:
        MissingParameterError: If value is None
        ParameterTypeMismatchError: If value is not a number (bools rejected)
        ParameterRangeError: If value is outside [minimum, maximum]
    """
    if value is None:
        raise MissingParameterError(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParameterTypeMismatchError(name, "number")
    if integer and (isinstance(value, float) and not value.is_integer()):
        raise ParameterTypeMismatchError(name, "whole number")
    low = minimum if minimum is not None else float("-inf")
    high = maximum if maximum is not None else float("inf")
    if not low <= value <= high:
        raise ParameterRangeError(name, minimum, maximum)


def check_bool(value: Any, name: str) -> None:
    if value is None:
        raise MissingParameterError(name)
    if not isinstance(value, bool):
        raise ParameterTypeMismatchError(name, "boolean")


def check_string(value: Any, name: str) -> None:
    if value is None:
        raise MissingParameterError(name)
    if not isinstance(value, str):
        raise ParameterTypeMismatchError(name, "string")
    if not value.strip():
        raise MissingParameterError(name)


# -------------------------------------------------------------------------
# Playback
# -------------------------------------------------------------------------


def play() -> Command:
    return Command("play")


def pause() -> Command:
    return Command("pause")


def play_pause() -> Command:
    return Command("playpause")


def stop() -> Command:
    return Command("stop")


def next_track() -> Command:
    return Command("next")


def previous_track() -> Command:
    return Command("previous")


def seek(time: Any, in_ms: bool = False, legacy: bool = False) -> AnyCommand:
    """
    Seek within the current song.

    Args:
        time: Target position in seconds (milliseconds if in_ms)
        in_ms: Interpret time as milliseconds; truncated to whole seconds
        legacy: Emit the {"type": "seek", "data": ...} envelope
    """
    check_number(time, "time", minimum=0)
    check_bool(in_ms, "in_ms")
    if in_ms:
        time = int(time / 1000)
    if legacy:
        return LegacyCommand("seek", time)
    return Command("seek", {"time": time})


def set_volume(volume: Any, legacy: bool = False) -> AnyCommand:
    """Set volume, 0.0 - 1.0 inclusive."""
    check_number(volume, "volume", minimum=0, maximum=1)
    if legacy:
        return LegacyCommand("setVolume", volume)
    return Command("volume", {"volume": volume})


def mute() -> Command:
    return Command("mute")


def cycle_repeat() -> Command:
    return Command("repeat")


def toggle_shuffle() -> Command:
    return Command("shuffle")


def set_shuffle(enabled: Any) -> Command:
    check_bool(enabled, "enabled")
    return Command("set-shuffle", {"shuffle": 1 if enabled else 0})


def set_autoplay(enabled: Any) -> Command:
    check_bool(enabled, "enabled")
    return Command("set-autoplay", {"autoplay": enabled})


def check_repeat_mode(mode: Any) -> RepeatMode:
    """Validate a repeat mode argument (0, 1 or 2) and return it as RepeatMode."""
    check_number(mode, "mode", minimum=0, maximum=REPEAT_MODE_COUNT - 1, integer=True)
    return RepeatMode(int(mode))


def repeat_cycle_steps(current: int, target: int) -> int:
    """
    Number of `repeat` commands needed to get from current to target mode.

    The player can only cycle forward (off -> track -> queue -> off), so
    the shortest path is the forward distance modulo the cycle length:
    queue -> off is one step, off -> queue two.
    """
    return (int(target) - int(current)) % REPEAT_MODE_COUNT


# -------------------------------------------------------------------------
# Queue and media selection
# -------------------------------------------------------------------------


def move_queue(from_index: Any, to_index: Any) -> Command:
    check_number(from_index, "from_index", minimum=0, integer=True)
    check_number(to_index, "to_index", minimum=0, integer=True)
    return Command("queue-move", {"from": int(from_index), "to": int(to_index)})


def play_by_id(item_id: Any, kind: Any = "song") -> Command:
    """Replace playback with the catalog item `item_id` of the given kind."""
    check_string(item_id, "id")
    check_string(kind, "kind")
    return Command("play-mediaitem", {"id": item_id, "kind": kind})


def play_next_by_id(item_id: Any, kind: Any = "song") -> Command:
    check_string(item_id, "id")
    check_string(kind, "kind")
    return Command("play-next", {"id": item_id, "type": kind})


def enqueue_by_id(item_id: Any, kind: Any = "song") -> Command:
    check_string(item_id, "id")
    check_string(kind, "kind")
    return Command("play-later", {"id": item_id, "type": kind})


# -------------------------------------------------------------------------
# Queries
# -------------------------------------------------------------------------


def get_current_media_item() -> Command:
    """Ask the player to push a fresh playbackStateUpdate."""
    return Command("get-currentmediaitem")


def get_queue() -> Command:
    return Command("get-queue")


def get_lyrics() -> Command:
    return Command("get-lyrics")


def search(query: Any, kind: Any = "song", limit: Any = 10) -> Command:
    check_string(query, "query")
    check_string(kind, "kind")
    check_number(limit, "limit", minimum=SEARCH_LIMIT_MIN, maximum=SEARCH_LIMIT_MAX, integer=True)
    return Command("search", {"query": query, "type": kind, "limit": int(limit)})


# -------------------------------------------------------------------------
# Session
# -------------------------------------------------------------------------


def identify(name: str, description: str = "", author: str = "", version: str = "") -> Command:
    """Handshake announcing this client to players that require it."""
    check_string(name, "name")
    return Command(
        "identify",
        {"name": name, "description": description, "author": author, "version": version},
    )


def quit_player() -> Command:
    return Command("quit")
