"""
Playback domain entities decoded from Cider frames.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional


class RepeatMode(IntEnum):
    """
    Player repeat modes.

    Values match the `repeatMode` field pushed by Cider. The player only
    supports cycling forward through them: OFF -> TRACK -> QUEUE -> OFF.
    """

    OFF = 0
    TRACK = 1
    QUEUE = 2


def render_artwork(template: str, width: int, height: int) -> str:
    """Substitute `{w}`/`{h}` placeholders in an artwork URL template."""
    return template.replace("{w}", str(width)).replace("{h}", str(height))


@dataclass(frozen=True)
class Track:
    """
    A song as reported by the player.

    Attributes:
        track_id: Service song ID ("" if it could not be determined)
        title: Song name
        artist: Artist name
        album: Album name
        artwork_url: Artwork URL with size placeholders substituted
        artwork_template: Raw artwork URL template (may contain {w}/{h})
        track_number: Position of the song on its album
        duration_ms: Song duration in milliseconds
        url: Canonical Apple Music URL
        genres: Genre names
    """

    track_id: str = ""
    title: str = ""
    artist: str = ""
    album: str = ""
    artwork_url: str = ""
    artwork_template: str = ""
    track_number: int = 0
    duration_ms: int = 0
    url: str = ""
    genres: tuple[str, ...] = ()

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.duration_ms / 1000.0

    def artwork(self, size: int) -> str:
        """Artwork URL rendered for a square `size` x `size` image."""
        return render_artwork(self.artwork_template, size, size)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "track_id": self.track_id,
            "title": self.title,
            "artist": self.artist,
            "album": self.album,
            "artwork_url": self.artwork_url,
            "track_number": self.track_number,
            "duration": self.duration,
            "url": self.url,
            "genres": list(self.genres),
        }


@dataclass(frozen=True)
class PlayerState:
    """Player options and status. Compared structurally for dedup."""

    is_playing: bool = False
    is_shuffling: bool = False
    repeat_mode: RepeatMode = RepeatMode.OFF
    volume: float = 1.0  # 0.0 - 1.0
    autoplay: bool = False

    def to_dict(self) -> dict:
        return {
            "is_playing": self.is_playing,
            "is_shuffling": self.is_shuffling,
            "repeat_mode": self.repeat_mode.name.lower(),
            "volume": self.volume,
            "autoplay": self.autoplay,
        }


@dataclass(frozen=True)
class PlaybackTiming:
    """
    Position data for the current song.

    Republished on every state push; never deduplicated.
    """

    is_playing: bool = False
    start_time: float = 0  # timestamp the song started playing
    end_time: float = 0  # timestamp the song will end
    remaining_ms: int = 0
    elapsed_ms: int = 0
    progress: float = 0.0  # 0.0 - 1.0

    def to_dict(self) -> dict:
        return {
            "is_playing": self.is_playing,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "remaining_ms": self.remaining_ms,
            "elapsed_ms": self.elapsed_ms,
            "progress": self.progress,
        }


@dataclass
class QueueSnapshot:
    """Player queue contents at the time of a `get-queue` request."""

    tracks: list[Track] = field(default_factory=list)
    is_autoplay_station: bool = False
    is_restricted: bool = False
    position: int = -1
    next_playable_index: int = -1

    @property
    def current(self) -> Optional[Track]:
        """Track at the current queue position, if any."""
        if 0 <= self.position < len(self.tracks):
            return self.tracks[self.position]
        return None

    def to_dict(self) -> dict:
        return {
            "tracks": [t.to_dict() for t in self.tracks],
            "is_autoplay_station": self.is_autoplay_station,
            "is_restricted": self.is_restricted,
            "position": self.position,
            "next_playable_index": self.next_playable_index,
        }


@dataclass(frozen=True)
class LyricLine:
    """One timed lyric line."""

    start_time: float = 0.0  # seconds
    end_time: float = 0.0  # seconds
    text: str = ""
    translation: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "text": self.text,
            "translation": self.translation,
        }
