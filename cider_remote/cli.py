"""
cider-remote CLI entry point.

Provides a command-line remote for a running Cider player.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from cider_remote import __version__
from cider_remote.client import CiderClient
from cider_remote.config import Config, ConfigError, _set_nested, load_config
from cider_remote.connect.errors import (
    CiderError,
    ConnectionClosed,
    ConnectionStateError,
    InvalidArgument,
    MalformedPayload,
)
from cider_remote.connect.types import SessionEvent
from cider_remote.playback.models import LyricLine, PlaybackTiming, PlayerState, Track

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_ARGUMENT_ERROR = 2
EXIT_CONNECTION_ERROR = 3

REPEAT_MODES = {"off": 0, "track": 1, "queue": 2}
ON_OFF = {"on": True, "off": False}


def setup_logging(level: str = "info") -> None:
    """Configure logging to stdout."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
        force=True,
    )
    # websockets frame dumps are only useful when debugging the protocol
    if log_level > logging.DEBUG:
        logging.getLogger("websockets").setLevel(logging.WARNING)


def _parse_repeat(value: str) -> int:
    """Parse repeat mode argument, by name or number."""
    if value.lower() in REPEAT_MODES:
        return REPEAT_MODES[value.lower()]
    try:
        mode = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid repeat mode: {value}. Use off, track or queue")
    if mode not in REPEAT_MODES.values():
        raise argparse.ArgumentTypeError(f"Invalid repeat mode: {mode}. Use 0, 1 or 2")
    return mode


def _parse_on_off(value: str) -> bool:
    if value.lower() not in ON_OFF:
        raise argparse.ArgumentTypeError(f"Expected 'on' or 'off', got {value}")
    return ON_OFF[value.lower()]


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cider-remote",
        description="Remote control for the Cider music player",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  cider-remote status
  cider-remote watch --json
  cider-remote volume 0.4
  cider-remote repeat queue
  cider-remote search "daft punk" --limit 5

Environment Variables:
  CIDER_HOST, CIDER_PORT, CIDER_REQUEST_TIMEOUT
  CIDER_CLIENT_NAME, CIDER_IDENTIFY, CIDER_ARTWORK_SIZE
  CIDER_LEGACY_COMMANDS, CIDER_LOG_LEVEL
""",
    )

    # General
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("./cider-remote.yaml"),
        metavar="PATH",
        help="Path to config file (default: ./cider-remote.yaml)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output as JSON",
    )

    # Connection
    conn_group = parser.add_argument_group("Connection")
    conn_group.add_argument("--host", metavar="TEXT", help="Player host (default: localhost)")
    conn_group.add_argument("--port", type=int, metavar="INT", help="Player port (default: 26369)")
    conn_group.add_argument(
        "--timeout",
        type=float,
        metavar="SECONDS",
        help="Give up waiting for a response after this many seconds",
    )
    conn_group.add_argument(
        "--identify",
        action="store_true",
        help="Send the identify handshake before issuing commands",
    )
    conn_group.add_argument(
        "--legacy-commands",
        action="store_true",
        help="Use the old {type, data} envelope for seek and volume",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        metavar="LEVEL",
        help="Log level: debug, info, warning, error",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    status = sub.add_parser("status", help="Show the current song and player state")
    status.add_argument(
        "--artwork-size",
        type=int,
        metavar="PX",
        help="Also show the artwork URL rendered at this square size",
    )
    sub.add_parser("watch", help="Print player events until interrupted")
    for name in ("play", "pause", "next", "previous", "quit"):
        sub.add_parser(name, help=f"Send '{name}' to the player")

    seek = sub.add_parser("seek", help="Jump to a position in the current song")
    seek.add_argument("time", type=float, help="Position in seconds")
    seek.add_argument("--ms", action="store_true", help="Position is in milliseconds")

    volume = sub.add_parser("volume", help="Set the volume")
    volume.add_argument("level", type=float, help="Volume from 0 to 1")

    repeat = sub.add_parser("repeat", help="Set or cycle the repeat mode")
    repeat.add_argument(
        "mode", nargs="?", type=_parse_repeat, help="off|track|queue (cycles if omitted)"
    )

    shuffle = sub.add_parser("shuffle", help="Set or toggle shuffle")
    shuffle.add_argument("state", nargs="?", type=_parse_on_off, help="on|off (toggles if omitted)")

    autoplay = sub.add_parser("autoplay", help="Enable or disable autoplay")
    autoplay.add_argument("state", type=_parse_on_off, help="on|off")

    lyrics = sub.add_parser("lyrics", help="Print lyrics for the current song")
    lyrics.add_argument("--timed", action="store_true", help="Include line timings")

    sub.add_parser("queue", help="List the play queue")

    search = sub.add_parser("search", help="Search the catalog")
    search.add_argument("query", help="Search term")
    search.add_argument("--kind", default="song", help="Result kind (default: song)")
    search.add_argument("--limit", type=int, default=10, help="Number of results, 1-50")

    return parser


def parse_args(argv: Any = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def args_to_dict(args: argparse.Namespace) -> dict:
    """Convert argparse namespace to nested config dict."""
    result: dict = {}

    mappings = {
        "host": ("connection", "host"),
        "port": ("connection", "port"),
        "timeout": ("connection", "request_timeout"),
        "identify": ("client", "identify"),
        "legacy_commands": ("client", "legacy_commands"),
        "log_level": ("logging", "level"),
    }

    for arg_name, path in mappings.items():
        value = getattr(args, arg_name, None)
        # Flags only override config when explicitly set
        if value is None or value is False:
            continue
        _set_nested(result, path, value)

    return result


def _format_track(track: Track) -> str:
    return f"{track.artist} - {track.title} [{track.album}] ({track.duration:.0f}s)"


def _format_state(state: PlayerState) -> str:
    return (
        f"{'playing' if state.is_playing else 'paused'}, "
        f"volume {state.volume:.0%}, "
        f"repeat {state.repeat_mode.name.lower()}, "
        f"shuffle {'on' if state.is_shuffling else 'off'}, "
        f"autoplay {'on' if state.autoplay else 'off'}"
    )


def _format_timing(timing: PlaybackTiming) -> str:
    return f"{timing.elapsed_ms / 1000:.0f}s elapsed, {timing.progress:.0%}"


def _format_lyric(line: LyricLine) -> str:
    text = f"[{line.start_time:7.2f}] {line.text}"
    if line.translation:
        text += f"  ({line.translation})"
    return text


def _print(json_output: bool, data: Any, text: str) -> None:
    if json_output:
        print(json.dumps(data, indent=2))
    else:
        print(text)


async def watch(client: CiderClient, json_output: bool) -> None:
    """Print track/state/timing events until the connection closes."""
    closed = asyncio.Event()

    def printer(kind: str, fmt: Any) -> Any:
        def handler(entity: Any) -> None:
            _print(json_output, {"event": kind, "data": entity.to_dict()}, f"{kind}: {fmt(entity)}")

        return handler

    client.on(SessionEvent.TRACK_CHANGED, printer("track", _format_track))
    client.on(SessionEvent.STATE_CHANGED, printer("state", _format_state))
    client.on(SessionEvent.TIMING_CHANGED, printer("timing", _format_timing))
    client.on(SessionEvent.CONNECTION_CLOSE, closed.set)

    client.force_update()
    await closed.wait()


async def run_command(config: Config, args: argparse.Namespace) -> int:
    """
    Connect to the player and run one CLI command.

    Returns:
        Exit code
    """
    out = args.json_output

    async with CiderClient(config) as client:
        command = args.command

        if command == "status":
            track = await client.get_current_track()
            # The state push that answered the track query also refreshed the snapshot
            state = client.session.player_state or await client.get_player_state()
            data = {"track": track.to_dict(), "state": state.to_dict()}
            text = f"{_format_track(track)}\n{_format_state(state)}"
            if args.artwork_size:
                data["artwork"] = track.artwork(args.artwork_size)
                text += f"\n{data['artwork']}"
            _print(out, data, text)
        elif command == "watch":
            await watch(client, out)
        elif command in ("play", "pause", "next", "previous"):
            client.command(command)
        elif command == "quit":
            client.quit()
        elif command == "seek":
            client.seek(args.time, args.ms)
        elif command == "volume":
            client.set_volume(args.level)
        elif command == "repeat":
            if args.mode is None:
                client.cycle_repeat()
            else:
                await client.set_repeat(args.mode)
        elif command == "shuffle":
            if args.state is None:
                client.toggle_shuffle()
            else:
                client.set_shuffle(args.state)
        elif command == "autoplay":
            client.set_autoplay(args.state)
        elif command == "lyrics":
            lines = await client.get_lyrics_advanced()
            if args.timed:
                _print(
                    out,
                    [line.to_dict() for line in lines],
                    "\n".join(_format_lyric(line) for line in lines),
                )
            else:
                text = await client.get_lyrics()
                _print(out, {"lyrics": text}, text.rstrip("\n"))
        elif command == "queue":
            queue = await client.get_queue()
            text = "\n".join(
                f"{'>' if i == queue.position else ' '} {i:3d}. {_format_track(t)}"
                for i, t in enumerate(queue.tracks)
            )
            _print(out, queue.to_dict(), text or "Queue is empty")
        elif command == "search":
            tracks = await client.search(args.query, args.kind, args.limit)
            text = "\n".join(f"{t.track_id:>12}  {_format_track(t)}" for t in tracks)
            _print(out, [t.to_dict() for t in tracks], text or "No results")

    return EXIT_SUCCESS


def main(argv: Any = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code: 0=success, 1=config error, 2=argument error, 3=connection error
    """
    args = parse_args(argv)

    # Setup basic logging first (will be reconfigured after config load)
    setup_logging("warning")

    try:
        config = load_config(args.config, args_to_dict(args))
        setup_logging(config.logging.level)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    try:
        return asyncio.run(run_command(config, args))

    except InvalidArgument as e:
        logger.error(f"Invalid argument: {e}")
        return EXIT_ARGUMENT_ERROR

    except (ConnectionStateError, ConnectionClosed) as e:
        logger.error(f"Connection error: {e}")
        return EXIT_CONNECTION_ERROR

    except MalformedPayload as e:
        logger.error(f"Unexpected response from player: {e}")
        return EXIT_CONNECTION_ERROR

    except asyncio.TimeoutError:
        logger.error("Timed out waiting for the player to respond")
        return EXIT_CONNECTION_ERROR

    except CiderError as e:
        logger.error(f"Error: {e}")
        return EXIT_CONNECTION_ERROR

    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
