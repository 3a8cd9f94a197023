"""Playback entities, decoders and command builders."""

from .models import (
    LyricLine,
    PlaybackTiming,
    PlayerState,
    QueueSnapshot,
    RepeatMode,
    Track,
)
from .decoders import (
    decode_lyrics,
    decode_playback_timing,
    decode_player_state,
    decode_queue,
    decode_search_results,
    decode_track,
    flatten_lyrics,
    unwrap_payload,
)
from .commands import Command, LegacyCommand, repeat_cycle_steps

__all__ = [
    # Models
    "LyricLine",
    "PlaybackTiming",
    "PlayerState",
    "QueueSnapshot",
    "RepeatMode",
    "Track",
    # Decoders
    "decode_lyrics",
    "decode_playback_timing",
    "decode_player_state",
    "decode_queue",
    "decode_search_results",
    "decode_track",
    "flatten_lyrics",
    "unwrap_payload",
    # Commands
    "Command",
    "LegacyCommand",
    "repeat_cycle_steps",
]
