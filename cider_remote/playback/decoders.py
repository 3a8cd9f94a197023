"""
Decoders turning raw Cider frames into playback entities.

All decoders are pure: they accept a decoded JSON frame (with or without the
one-level `data` envelope Cider sometimes adds) and either return an entity
or raise MalformedPayload. They never look at session state.
"""

import math
import re
from typing import Any, Optional, Union

from cider_remote.connect.errors import MalformedPayload

from .models import (
    LyricLine,
    PlaybackTiming,
    PlayerState,
    QueueSnapshot,
    RepeatMode,
    Track,
    render_artwork,
)

# Song id embedded in Apple Music URLs, e.g. ".../album/x/123?i=456"
TRACK_ID_PATTERN = re.compile(r"[?&]i=([0-9]+)")

# Lyric lines starting with this are metadata (credits, tags), not text
LYRICS_METADATA_MARKER = "lrc"

DEFAULT_ARTWORK_SIZE = 600

Payload = Union[dict[str, Any], list[Any]]


def unwrap_payload(frame: Any) -> Payload:
    """
    Strip the optional `data` envelope from a frame.

    `{"type": "x", "data": {...}}` and `{"type": "x", ...}` both yield the
    payload object; a list under `data` is returned as-is.
    """
    if isinstance(frame, list):
        return frame
    if not isinstance(frame, dict):
        raise MalformedPayload(f"Expected a JSON object, got {type(frame).__name__}")
    data = frame.get("data")
    if isinstance(data, (dict, list)):
        return data
    return frame


def _object_payload(frame: Any) -> dict[str, Any]:
    payload = unwrap_payload(frame)
    if not isinstance(payload, dict):
        raise MalformedPayload(f"Expected an object payload, got {type(payload).__name__}")
    return payload


def _require(payload: dict[str, Any], *keys: str) -> None:
    missing = [k for k in keys if payload.get(k) is None]
    if missing:
        raise MalformedPayload(f"Missing field(s): {', '.join(missing)}")


def _number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedPayload(f"Field {name} is not a number: {value!r}")
    # json.loads accepts NaN and Infinity
    if not math.isfinite(value):
        raise MalformedPayload(f"Field {name} is not finite: {value!r}")
    return value


def _optional_number(payload: dict[str, Any], key: str, default: float = 0) -> float:
    """Numeric field that may be absent or null."""
    value = payload.get(key)
    if value is None:
        return default
    return _number(value, key)


def _optional_int(payload: dict[str, Any], key: str, default: int = 0) -> int:
    return int(_optional_number(payload, key, default))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def extract_track_id(url: Optional[str]) -> str:
    """Pull the numeric song id out of a canonical URL, or "" if there is none."""
    if not isinstance(url, str):
        return ""
    match = TRACK_ID_PATTERN.search(url)
    return match.group(1) if match else ""


def _canonical_url(value: Any) -> str:
    # Older players send {"appleMusic": "..."}, newer ones a plain string
    if isinstance(value, dict):
        return value.get("appleMusic") or ""
    if isinstance(value, str):
        return value
    return ""


def _explicit_track_id(payload: dict[str, Any]) -> Optional[str]:
    song_id = payload.get("songId")
    if song_id:
        return str(song_id)
    play_params = payload.get("playParams")
    if isinstance(play_params, dict) and play_params.get("id"):
        return str(play_params["id"])
    return None


def decode_track(frame: Any, artwork_size: Optional[int] = None) -> Track:
    """
    Decode a Track from a state push, queue item or search entry.

    Args:
        frame: Raw frame or payload
        artwork_size: Square size to render artwork at. Defaults to the
            width/height advertised in the payload.

    Raises:
        MalformedPayload: If the song name is missing
    """
    payload = _resource_attributes(_object_payload(frame))
    _require(payload, "name")

    url = _canonical_url(payload.get("url"))
    track_id = _explicit_track_id(payload)
    if track_id is None:
        track_id = extract_track_id(url)

    artwork = payload.get("artwork")
    template = ""
    artwork_url = ""
    if isinstance(artwork, dict) and isinstance(artwork.get("url"), str):
        template = artwork["url"]
        if artwork_size:
            width = height = artwork_size
        else:
            width = artwork.get("width") or DEFAULT_ARTWORK_SIZE
            height = artwork.get("height") or DEFAULT_ARTWORK_SIZE
        artwork_url = render_artwork(template, width, height)

    genres = payload.get("genreNames") or []
    if not isinstance(genres, list):
        raise MalformedPayload(f"Field genreNames is not a list: {genres!r}")

    return Track(
        track_id=track_id,
        title=str(payload["name"]),
        artist=payload.get("artistName") or "",
        album=payload.get("albumName") or "",
        artwork_url=artwork_url,
        artwork_template=template,
        track_number=_optional_int(payload, "trackNumber"),
        duration_ms=_optional_int(payload, "durationInMillis"),
        url=url,
        genres=tuple(str(g) for g in genres),
    )


def decode_player_state(frame: Any) -> PlayerState:
    """
    Decode player options from a state push.

    Raises:
        MalformedPayload: If status/shuffle/repeat/volume are missing or invalid
    """
    payload = _object_payload(frame)
    _require(payload, "status", "shuffleMode", "repeatMode", "volume")

    try:
        repeat_mode = RepeatMode(int(_number(payload["repeatMode"], "repeatMode")))
    except ValueError:
        raise MalformedPayload(f"Unknown repeat mode: {payload['repeatMode']!r}")

    return PlayerState(
        is_playing=bool(payload["status"]),
        is_shuffling=payload["shuffleMode"] == 1,
        repeat_mode=repeat_mode,
        volume=float(_number(payload["volume"], "volume")),
        autoplay=bool(payload.get("autoplayEnabled", False)),
    )


def decode_playback_timing(frame: Any) -> PlaybackTiming:
    """
    Decode position data from a state push.

    Raises:
        MalformedPayload: If status/remainingTime/durationInMillis are missing
    """
    payload = _object_payload(frame)
    _require(payload, "status", "remainingTime", "durationInMillis")

    remaining = _number(payload["remainingTime"], "remainingTime")
    duration = _number(payload["durationInMillis"], "durationInMillis")

    return PlaybackTiming(
        is_playing=bool(payload["status"]),
        start_time=_optional_number(payload, "startTime"),
        end_time=_optional_number(payload, "endTime"),
        remaining_ms=_round_half_up(remaining),
        elapsed_ms=_round_half_up(duration - remaining),
        progress=float(_optional_number(payload, "currentPlaybackProgress", 0.0)),
    )


def _resource_attributes(entry: dict[str, Any]) -> dict[str, Any]:
    """Flatten an Apple Music resource ({id, type, attributes}) to its attributes."""
    attributes = entry.get("attributes")
    if not isinstance(attributes, dict):
        return entry
    flat = dict(attributes)
    if entry.get("id") and not _explicit_track_id(flat):
        flat["songId"] = str(entry["id"])
    return flat


def _decode_entries(entries: Any, artwork_size: Optional[int]) -> list[Track]:
    if not isinstance(entries, list):
        raise MalformedPayload("Expected a list of items")
    tracks = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise MalformedPayload(f"Expected an item object, got {type(entry).__name__}")
        tracks.append(decode_track(entry, artwork_size))
    return tracks


def decode_queue(frame: Any, artwork_size: Optional[int] = None) -> QueueSnapshot:
    """
    Decode a `queue` response.

    The payload is either a bare list of items or an object with `items`
    and queue flags.
    """
    payload = unwrap_payload(frame)
    if isinstance(payload, list):
        return QueueSnapshot(tracks=_decode_entries(payload, artwork_size))

    _require(payload, "items")
    return QueueSnapshot(
        tracks=_decode_entries(payload["items"], artwork_size),
        is_autoplay_station=bool(payload.get("isAutoplayStation", False)),
        is_restricted=bool(payload.get("isRestricted", False)),
        position=_optional_int(payload, "position", -1),
        next_playable_index=_optional_int(payload, "nextPlayableItemIndex", -1),
    )


def decode_lyrics(frame: Any) -> list[LyricLine]:
    """Decode a `lyrics` response into timed lines, in order."""
    payload = unwrap_payload(frame)
    if not isinstance(payload, list):
        raise MalformedPayload("Expected a list of lyric lines")

    lines = []
    for entry in payload:
        if not isinstance(entry, dict) or entry.get("line") is None:
            raise MalformedPayload(f"Invalid lyric line: {entry!r}")
        translation = entry.get("translation")
        lines.append(
            LyricLine(
                start_time=float(_optional_number(entry, "startTime")),
                end_time=float(_optional_number(entry, "endTime")),
                text=str(entry["line"]),
                translation=str(translation) if translation else None,
            )
        )
    return lines


def flatten_lyrics(lines: list[LyricLine]) -> str:
    """Join lyric text, one line each, skipping blanks and metadata lines."""
    text = ""
    for lyric in lines:
        line = lyric.text.strip()
        if not line or line.startswith(LYRICS_METADATA_MARKER):
            continue
        text += line + "\n"
    return text


def decode_search_results(
    frame: Any, kind: str = "song", artwork_size: Optional[int] = None
) -> list[Track]:
    """
    Decode a `searchResults` response into tracks, in result order.

    Results may be a bare list, or grouped under the plural kind key
    (`songs`), itself either a list or an Apple Music `{"data": [...]}` page.
    The grouping may sit under a `results` object as the catalog API does.
    """
    payload = unwrap_payload(frame)
    if isinstance(payload, list):
        return _decode_entries(payload, artwork_size)

    if isinstance(payload.get("results"), dict):
        payload = payload["results"]
    group = payload.get(f"{kind}s")
    if group is None:
        return []
    if isinstance(group, dict):
        group = group.get("data", [])
    return _decode_entries(group, artwork_size)
