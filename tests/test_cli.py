"""Tests for CLI parsing, command dispatch and session flow."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import io
from pathlib import Path
import sys
import threading
from typing import Optional

from rich.console import Console

from audio_deck import cli
from audio_deck.autoplay import AutoplayCapability
from audio_deck.config import AppConfig
from audio_deck.errors import PlaybackStartRejected
from audio_deck.media import MediaEventEmitter
from audio_deck.notifications import Notice, Notification, NotificationKind
from audio_deck.playlist import Playlist, Track
from audio_deck.sources import PlaylistEntry


@dataclass
class DummyController:
    calls: list[str] = field(default_factory=list)
    seek_ok: bool = True
    playlist: Playlist = field(default_factory=lambda: Playlist([]))
    current_index: int = 0
    position: int = 0
    length: int = 0
    volume: int = 50
    is_muted: bool = False
    is_repeat: bool = False
    is_shuffle: bool = False
    is_autoplay: bool = True

    async def toggle_play(self) -> None:
        self.calls.append("toggle_play")

    def next(self) -> None:
        self.calls.append("next")

    def previous(self) -> None:
        self.calls.append("previous")

    def play_random(self) -> None:
        self.calls.append("random")

    def toggle_shuffle(self) -> None:
        self.calls.append("shuffle")

    def toggle_repeat(self) -> None:
        self.calls.append("repeat")

    def toggle_mute(self) -> None:
        self.calls.append("mute")

    def toggle_autoplay(self) -> None:
        self.calls.append("autoplay")

    def reshuffle(self) -> None:
        self.calls.append("reshuffle")

    def adjust_volume(self, delta: int) -> bool:
        self.calls.append(f"volume{delta:+d}")
        return True

    def seek(self, seconds: float) -> bool:
        self.calls.append(f"seek {seconds}")
        return self.seek_ok

    def play_track(self, index: int) -> None:
        self.calls.append(f"track {index}")


class FakeSink(MediaEventEmitter):
    def __init__(self) -> None:
        super().__init__()
        self.source: Optional[str] = None
        self.volume = 1.0
        self.muted = False
        self.loop = False
        self.current_time = 0.0
        self.closed = False

    @property
    def duration(self) -> float:
        return 0.0

    async def start(self) -> None:
        if self.source is None:
            raise PlaybackStartRejected("no source")

    def pause(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


def _console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=200, color_system=None), buffer


def _script(*lines: str):
    pending = list(lines)

    async def read_line() -> str:
        return pending.pop(0) if pending else ""

    return read_line


def test_parse_source_and_flags() -> None:
    parser = cli.build_parser()
    args = parser.parse_args(["mix.json", "--shuffle", "--repeat", "--volume", "30"])
    assert args.source == "mix.json"
    assert args.shuffle is True
    assert args.repeat is True
    assert args.volume == 30
    assert args.autoplay is None
    assert args.autoplay_policy is None
    assert args.log_level is None


def test_parse_negative_flags() -> None:
    parser = cli.build_parser()
    args = parser.parse_args(
        ["mix.json", "--no-shuffle", "--no-autoplay", "--autoplay-policy", "auto"]
    )
    assert args.shuffle is False
    assert args.autoplay is False
    assert args.autoplay_policy == "auto"


def test_apply_args_only_overrides_given_options() -> None:
    stored = AppConfig(last_source="old.json", volume=40, shuffle=True)
    args = cli.build_parser().parse_args(["--volume", "140"])
    merged = cli.apply_args(stored, args)
    assert merged.last_source == "old.json"
    assert merged.volume == 100
    assert merged.shuffle is True

    args = cli.build_parser().parse_args(["new.m3u", "--no-shuffle"])
    merged = cli.apply_args(stored, args)
    assert merged.last_source == "new.m3u"
    assert merged.shuffle is False


def test_settings_from_controller() -> None:
    controller = DummyController(volume=80, is_muted=True, is_shuffle=True)
    cfg = cli.settings_from(controller, AppConfig(last_source="a.json"))
    assert cfg.volume == 80
    assert cfg.muted is True
    assert cfg.shuffle is True
    assert cfg.last_source == "a.json"


def test_build_probe_fixed_and_auto_without_track() -> None:
    async def runner() -> None:
        fixed = cli.build_probe("muted-only", lambda: None)
        assert await fixed() is AutoplayCapability.MUTED_ONLY
        auto = cli.build_probe("auto", lambda: None)
        assert await auto() is AutoplayCapability.ALLOWED

    asyncio.run(runner())


def test_handle_command_dispatch() -> None:
    controller = DummyController()
    console, _ = _console()

    async def runner() -> list[bool]:
        results = []
        for line in ["", "n", "p", "r", "s", "l", "m", "a", "x", "+", "-", "3"]:
            results.append(await cli.handle_command(controller, line, console))
        results.append(await cli.handle_command(controller, "seek 12.5", console))
        return results

    results = asyncio.run(runner())
    assert all(results)
    assert controller.calls == [
        "toggle_play",
        "next",
        "previous",
        "random",
        "shuffle",
        "repeat",
        "mute",
        "autoplay",
        "reshuffle",
        "volume+5",
        "volume-5",
        "track 2",
        "seek 12.5",
    ]


def test_handle_command_quit_and_feedback() -> None:
    controller = DummyController(seek_ok=False)
    console, buffer = _console()

    async def runner() -> None:
        assert await cli.handle_command(controller, "Q", console) is False
        assert await cli.handle_command(controller, "seek nope", console) is True
        assert await cli.handle_command(controller, "seek 5", console) is True
        assert await cli.handle_command(controller, "wat", console) is True
        assert await cli.handle_command(controller, "?", console) is True

    asyncio.run(runner())
    output = buffer.getvalue()
    assert "Usage: seek SECONDS" in output
    assert "Seek unavailable" in output
    assert "Unknown command: wat" in output
    assert cli.HELP_TEXT in output


def test_render_notifications() -> None:
    track = Track(url="/music/a.mp3", title="Alpha", duration=125)
    controller = DummyController(
        playlist=Playlist([track, Track(url="/music/b.mp3")]),
        position=30,
        length=125,
    )
    console, buffer = _console()
    for notification in [
        Notification(NotificationKind.TRACK_CHANGED, track),
        Notification(NotificationKind.STARTED),
        Notification(NotificationKind.PAUSED),
        Notification(NotificationKind.TIME_UPDATE, 31),
        Notification(NotificationKind.SHUFFLE_TOGGLED, True),
        Notification(NotificationKind.NOTICE, Notice("Heads up", "warn")),
    ]:
        cli.render_notification(console, controller, notification)
    lines = buffer.getvalue().splitlines()
    assert lines == [
        "[1/2] Alpha (02:05)",
        "Playing",
        "Paused at 00:30 / 02:05",
        "Shuffle: on",
        "Heads up",
    ]


def test_run_session_plays_until_quit(monkeypatch, tmp_path: Path) -> None:
    sinks: list[FakeSink] = []

    def make_sink() -> FakeSink:
        sink = FakeSink()
        sinks.append(sink)
        return sink

    async def source() -> list[PlaylistEntry]:
        return [
            PlaylistEntry(str(tmp_path / "one.mp3"), "One"),
            PlaylistEntry(str(tmp_path / "two.mp3"), "Two"),
        ]

    monkeypatch.setattr(cli, "VlcMediaSink", make_sink)
    monkeypatch.setattr(cli, "open_source", lambda _location: source)
    console, buffer = _console()
    cfg = AppConfig(last_source="mix.json", autoplay=False)
    exit_code, final = asyncio.run(
        cli.run_session(cfg, console, read_line=_script("n\n", "+\n", "q\n"))
    )
    assert exit_code == 0
    assert final.volume == 55
    assert final.last_source == "mix.json"
    output = buffer.getvalue()
    assert "[1/2] One" in output
    assert "[2/2] Two" in output
    assert sinks[0].closed
    assert sinks[0].listener_count() == 0


def test_run_session_reports_empty_playlist(monkeypatch) -> None:
    async def source() -> list[PlaylistEntry]:
        return []

    monkeypatch.setattr(cli, "VlcMediaSink", FakeSink)
    monkeypatch.setattr(cli, "open_source", lambda _location: source)
    console, buffer = _console()
    exit_code, _ = asyncio.run(
        cli.run_session(AppConfig(last_source="x"), console, read_line=_script())
    )
    assert exit_code == 1
    assert "No playable tracks found" in buffer.getvalue()


def test_run_session_handles_vlc_error(monkeypatch, capsys) -> None:
    def boom() -> FakeSink:
        raise RuntimeError("VLC missing")

    monkeypatch.setattr(cli, "VlcMediaSink", boom)
    console, _ = _console()
    exit_code, _ = asyncio.run(
        cli.run_session(AppConfig(last_source="x"), console, read_line=_script())
    )
    assert exit_code == 1
    assert "VLC missing" in capsys.readouterr().err


def _quiet_main(monkeypatch) -> None:
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setattr(threading, "excepthook", threading.excepthook)
    monkeypatch.setattr(cli, "init_logging", lambda **_kwargs: Path("app.log"))
    monkeypatch.setattr(cli, "set_console_level", lambda _level: None)


def test_main_requires_source(monkeypatch, capsys) -> None:
    _quiet_main(monkeypatch)
    monkeypatch.setattr(cli, "load_config", AppConfig)
    assert cli.main([]) == 2
    assert "playlist source is required" in capsys.readouterr().err


def test_main_runs_session_and_saves_settings(monkeypatch) -> None:
    _quiet_main(monkeypatch)
    saved: list[AppConfig] = []
    seen: list[AppConfig] = []

    async def fake_session(cfg: AppConfig, console: Console):
        seen.append(cfg)
        return 0, cfg.__class__(last_source=cfg.last_source, volume=90)

    monkeypatch.setattr(cli, "load_config", lambda: AppConfig(volume=20))
    monkeypatch.setattr(cli, "run_session", fake_session)
    monkeypatch.setattr(cli, "save_config", saved.append)
    assert cli.main(["mix.json", "--repeat"]) == 0
    assert seen[0].last_source == "mix.json"
    assert seen[0].repeat is True
    assert seen[0].volume == 20
    assert saved == [AppConfig(last_source="mix.json", volume=90)]


def test_thread_exceptions_are_logged(monkeypatch, caplog) -> None:
    from types import SimpleNamespace

    _quiet_main(monkeypatch)
    monkeypatch.setattr(cli, "load_config", AppConfig)
    cli.main([])
    fake_args = SimpleNamespace(
        exc_type=RuntimeError,
        exc_value=RuntimeError("boom"),
        exc_traceback=None,
        thread=SimpleNamespace(name="worker"),
    )
    threading.excepthook(fake_args)  # type: ignore[arg-type]
    assert "Thread exception in worker" in caplog.text


def test_main_passes_log_level(monkeypatch) -> None:
    _quiet_main(monkeypatch)
    levels: list[object] = []

    def fake_init_logging(**kwargs) -> Path:
        levels.append(kwargs.get("level"))
        return Path("app.log")

    monkeypatch.setattr(cli, "init_logging", fake_init_logging)
    monkeypatch.setattr(cli, "load_config", AppConfig)
    cli.main(["--log-level", "debug"])
    assert levels == ["debug"]
