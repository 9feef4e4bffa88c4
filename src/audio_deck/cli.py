"""Command-line interface for AudioDeck."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
import logging
import sys
import threading
from types import TracebackType
from typing import Awaitable, Callable, Iterable, Optional, Tuple

from rich.console import Console
from rich.text import Text

from audio_deck.autoplay import (
    AutoplayCapability,
    AutoplayNegotiator,
    CapabilityProbe,
    fixed_capability,
    probe_sink,
)
from audio_deck.config import AUTOPLAY_POLICIES, AppConfig, load_config, save_config
from audio_deck.formatters import format_duration, format_position
from audio_deck.logging_setup import init_logging, set_console_level
from audio_deck.notifications import Notice, Notification, NotificationKind
from audio_deck.player_vlc import VlcMediaSink
from audio_deck.playlist import Track
from audio_deck.sources import open_source
from audio_deck.transport import TransportController

logger = logging.getLogger(__name__)

ReadLine = Callable[[], Awaitable[str]]

HELP_TEXT = (
    "n next  p previous  r random  t play/pause  s shuffle  l repeat  m mute  "
    "a autoplay  x reshuffle  +/- volume  seek N  <number> select  q quit"
)

_LEVEL_STYLES = {"warn": "#ffcc66", "error": "#ff5f52"}


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="audio-deck", description="AudioDeck")
    parser.add_argument(
        "source",
        nargs="?",
        default="",
        help="Playlist manifest (file or URL), M3U playlist, directory or file",
    )
    shuffle = parser.add_mutually_exclusive_group()
    shuffle.add_argument(
        "--shuffle", dest="shuffle", action="store_true", default=None
    )
    shuffle.add_argument("--no-shuffle", dest="shuffle", action="store_false")
    parser.add_argument("--repeat", action="store_true", default=None)
    parser.add_argument(
        "--no-autoplay", dest="autoplay", action="store_false", default=None
    )
    parser.add_argument("--volume", type=int, default=None, help="Volume 0-100")
    parser.add_argument(
        "--autoplay-policy",
        choices=AUTOPLAY_POLICIES,
        default=None,
        help="Autoplay capability to assume, or 'auto' to probe",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (overrides AUDIO_DECK_LOG_LEVEL)",
    )
    return parser


def apply_args(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Overlay explicit command-line options on the stored config."""
    changes: dict[str, object] = {}
    if args.source:
        changes["last_source"] = args.source
    if args.shuffle is not None:
        changes["shuffle"] = args.shuffle
    if args.repeat is not None:
        changes["repeat"] = args.repeat
    if args.autoplay is not None:
        changes["autoplay"] = args.autoplay
    if args.volume is not None:
        changes["volume"] = max(0, min(100, args.volume))
    if args.autoplay_policy is not None:
        changes["autoplay_policy"] = args.autoplay_policy
    return replace(cfg, **changes)  # type: ignore[arg-type]


def settings_from(controller: TransportController, cfg: AppConfig) -> AppConfig:
    return replace(
        cfg,
        volume=controller.volume,
        muted=controller.is_muted,
        repeat=controller.is_repeat,
        shuffle=controller.is_shuffle,
        autoplay=controller.is_autoplay,
    )


def build_probe(
    policy: str, current_track: Callable[[], Optional[Track]]
) -> CapabilityProbe:
    if policy != "auto":
        return fixed_capability(AutoplayCapability(policy))

    async def probe() -> AutoplayCapability:
        track = current_track()
        if track is None:
            return AutoplayCapability.ALLOWED
        sink = VlcMediaSink()
        try:
            sink.source = track.url
            return await probe_sink(sink)
        finally:
            sink.close()

    return probe


def render_notification(
    console: Console, controller: TransportController, notification: Notification
) -> None:
    kind = notification.kind
    payload = notification.payload
    if kind is NotificationKind.TRACK_CHANGED and isinstance(payload, Track):
        line = Text(f"[{controller.current_index + 1}/{len(controller.playlist)}] ")
        line.append(payload.display_title, style="bold")
        line.append(f" ({format_duration(payload.duration)})")
        console.print(line)
    elif kind is NotificationKind.STARTED:
        console.print(Text("Playing", style="#9cff57"))
    elif kind is NotificationKind.PAUSED:
        position = format_position(controller.position, controller.length)
        console.print(Text(f"Paused at {position}"))
    elif kind is NotificationKind.TRACK_ENDED:
        console.print(Text("Track ended", style="dim"))
    elif kind is NotificationKind.NOTICE and isinstance(payload, Notice):
        console.print(Text(payload.text, style=_LEVEL_STYLES.get(payload.level)))
    elif kind is NotificationKind.MUTED:
        console.print(Text(f"Mute: {'on' if payload else 'off'}"))
    elif kind is NotificationKind.REPEAT_TOGGLED:
        console.print(Text(f"Repeat: {'on' if payload else 'off'}"))
    elif kind is NotificationKind.SHUFFLE_TOGGLED:
        console.print(Text(f"Shuffle: {'on' if payload else 'off'}"))
    elif kind is NotificationKind.AUTOPLAY_CHANGED:
        console.print(Text(f"Autoplay: {'on' if payload else 'off'}"))
    elif kind is NotificationKind.VOLUME_CHANGED:
        console.print(Text(f"Volume: {payload}%", style="dim"))


async def handle_command(
    controller: TransportController, line: str, console: Console
) -> bool:
    """Run one typed command; return False when the session should end."""
    command, _, argument = line.strip().partition(" ")
    command = command.lower()
    if command in {"q", "quit", "exit"}:
        return False
    if command in {"", "t", "toggle"}:
        await controller.toggle_play()
    elif command == "n":
        controller.next()
    elif command == "p":
        controller.previous()
    elif command == "r":
        controller.play_random()
    elif command == "s":
        controller.toggle_shuffle()
    elif command == "l":
        controller.toggle_repeat()
    elif command == "m":
        controller.toggle_mute()
    elif command == "a":
        controller.toggle_autoplay()
    elif command == "x":
        controller.reshuffle()
        console.print(Text("Reshuffled"))
    elif command in {"+", "-"}:
        controller.adjust_volume(5 if command == "+" else -5)
    elif command == "seek":
        try:
            seconds = float(argument)
        except ValueError:
            console.print(Text("Usage: seek SECONDS", style=_LEVEL_STYLES["warn"]))
        else:
            if not controller.seek(seconds):
                console.print(Text("Seek unavailable", style=_LEVEL_STYLES["warn"]))
    elif command.isdigit():
        controller.play_track(int(command) - 1)
    elif command in {"h", "?", "help"}:
        console.print(Text(HELP_TEXT, style="dim"))
    else:
        console.print(Text(f"Unknown command: {command}", style=_LEVEL_STYLES["warn"]))
    return True


async def _read_stdin_line() -> str:
    return await asyncio.to_thread(sys.stdin.readline)


async def run_session(
    cfg: AppConfig,
    console: Console,
    *,
    read_line: ReadLine = _read_stdin_line,
) -> Tuple[int, AppConfig]:
    """Play ``cfg.last_source`` until the user quits; return exit code and settings."""
    try:
        sink = VlcMediaSink()
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return 1, cfg
    controller: Optional[TransportController] = None

    def current_track() -> Optional[Track]:
        return controller.current_track if controller is not None else None

    negotiator = AutoplayNegotiator(build_probe(cfg.autoplay_policy, current_track))
    controller = TransportController(
        sink,
        negotiator,
        start_delay=cfg.start_delay_ms / 1000,
        max_history=cfg.max_history,
        volume=cfg.volume,
        muted=cfg.muted,
        repeat=cfg.repeat,
        shuffle=cfg.shuffle,
        autoplay=cfg.autoplay,
    )
    active = controller
    active.subscribe(lambda n: render_notification(console, active, n))
    try:
        playlist = await active.load(open_source(cfg.last_source or ""))
        if playlist.is_empty():
            console.print(Text("No playable tracks found", style=_LEVEL_STYLES["error"]))
            return 1, settings_from(active, cfg)
        console.print(Text(HELP_TEXT, style="dim"))
        while True:
            line = await read_line()
            if not line:
                break
            if not await handle_command(active, line, console):
                break
        return 0, settings_from(active, cfg)
    finally:
        active.pause()
        active.close()
        sink.close()


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    init_logging(level=args.log_level)
    logger.info("App start")

    def excepthook(exc_type, exc, tb) -> None:
        logger.exception("Uncaught exception", exc_info=(exc_type, exc, tb))

    sys.excepthook = excepthook

    if hasattr(threading, "excepthook"):

        def thread_hook(hook_args: threading.ExceptHookArgs) -> None:
            exc_value = hook_args.exc_value or RuntimeError("unknown")
            exc_info: Tuple[
                type[BaseException], BaseException, Optional[TracebackType]
            ] = (
                hook_args.exc_type,
                exc_value,
                hook_args.exc_traceback,
            )
            thread_name = hook_args.thread.name if hook_args.thread else "thread"
            logger.exception("Thread exception in %s", thread_name, exc_info=exc_info)

        threading.excepthook = thread_hook

    cfg = apply_args(load_config(), args)
    if not cfg.last_source:
        parser.print_usage(sys.stderr)
        print("audio-deck: a playlist source is required", file=sys.stderr)
        return 2

    console = Console()
    set_console_level(logging.WARNING)
    try:
        exit_code, final_cfg = asyncio.run(run_session(cfg, console))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        exit_code, final_cfg = 130, cfg
    save_config(final_cfg)
    logger.info("App exit code=%s", exit_code)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
