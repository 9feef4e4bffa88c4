"""Tests for config persistence."""

from __future__ import annotations

import json
import os
from pathlib import Path


from audio_deck import config


def test_load_defaults_when_missing(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
    loaded = config.load_config()
    assert loaded == config.AppConfig()


def test_load_defaults_when_corrupt(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json", encoding="utf-8")
    loaded = config.load_config()
    assert loaded == config.AppConfig()


def test_load_defaults_when_not_an_object(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
    (tmp_path / "config.json").write_text("[1, 2]", encoding="utf-8")
    assert config.load_config() == config.AppConfig()


def test_load_defaults_when_read_fails(monkeypatch, tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{}", encoding="utf-8")

    def boom(*_args, **_kwargs) -> str:
        raise OSError("nope")

    monkeypatch.setattr(config, "get_config_path", lambda: config_path)
    monkeypatch.setattr(Path, "read_text", boom)
    loaded = config.load_config()
    assert loaded == config.AppConfig()


def test_save_load_round_trip(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
    original = config.AppConfig(
        last_source="https://example.com/mix.json",
        volume=75,
        muted=True,
        repeat=True,
        shuffle=True,
        autoplay=False,
        autoplay_policy="muted-only",
        max_history=12,
        start_delay_ms=200,
    )
    config.save_config(original)
    loaded = config.load_config()
    assert loaded == original


def test_save_config_atomic_write(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config, "get_config_dir", lambda: tmp_path)
    replaced: list[tuple[Path, Path]] = []

    def fake_replace(src: Path, dest: Path) -> None:
        replaced.append((src, dest))
        assert src.exists()
        data = json.loads(src.read_text(encoding="utf-8"))
        assert "volume" in data
        dest.write_text(json.dumps(data), encoding="utf-8")

    monkeypatch.setattr(config.os, "replace", fake_replace)
    config.save_config(config.AppConfig())
    assert replaced
    src, dest = replaced[0]
    assert src.suffix == ".tmp"
    assert dest.name == "config.json"


def test_config_from_mapping_sanitizes_values() -> None:
    raw = {
        "last_source": 123,
        "volume": "loud",
        "muted": "yes",
        "repeat": 1,
        "shuffle": "yes",
        "autoplay": None,
        "autoplay_policy": "sometimes",
        "max_history": True,
        "start_delay_ms": 1.5,
    }
    cfg = config._config_from_mapping(raw)
    assert cfg == config.AppConfig()


def test_config_from_mapping_clamps_numbers() -> None:
    cfg = config._config_from_mapping(
        {"volume": 250, "max_history": 0, "start_delay_ms": 90_000}
    )
    assert cfg.volume == 100
    assert cfg.max_history == 1
    assert cfg.start_delay_ms == 1000
    assert config._config_from_mapping({"volume": -3}).volume == 0


def test_blank_source_is_dropped() -> None:
    assert config._config_from_mapping({"last_source": ""}).last_source is None


def test_get_config_dir_os_defaults(monkeypatch, tmp_path: Path) -> None:
    if os.name == "nt":
        monkeypatch.setenv("APPDATA", str(tmp_path))
        path = config.get_config_dir("deck")
        assert path == tmp_path / "deck"
        monkeypatch.delenv("APPDATA", raising=False)
        monkeypatch.setattr(config.Path, "home", lambda: tmp_path)
        path = config.get_config_dir("deck")
        assert path == tmp_path / "AppData" / "Roaming" / "deck"
    else:
        monkeypatch.setattr(config, "_is_macos", lambda: False)
        xdg = tmp_path / "xdg"
        monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))
        path = config.get_config_dir("deck")
        assert path == xdg / "deck"
        assert path.is_dir()
