"""Configuration persistence for AudioDeck."""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from audio_deck.history import MAX_HISTORY

logger = logging.getLogger(__name__)

AUTOPLAY_POLICIES = ("auto", "allowed", "muted-only", "blocked")


@dataclass(frozen=True)
class AppConfig:
    """Immutable user preferences loaded from disk.

    Only settings live here; playback position and history are never saved.
    """

    last_source: Optional[str] = None
    volume: int = 50
    muted: bool = False
    repeat: bool = False
    shuffle: bool = False
    autoplay: bool = True
    autoplay_policy: str = "allowed"
    max_history: int = MAX_HISTORY
    start_delay_ms: int = 50


def get_config_dir(app_name: str = "audio-deck") -> Path:
    """Return the per-user config directory for the current platform."""
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            root = Path(base)
        else:
            root = Path.home() / "AppData" / "Roaming"
        return _ensure_dir(root / app_name)
    elif os.name == "posix":
        if _is_macos():
            return _ensure_dir(
                Path.home() / "Library" / "Application Support" / app_name
            )
        base = os.environ.get("XDG_CONFIG_HOME")
        root = Path(base) if base else Path.home() / ".config"
        return _ensure_dir(root / app_name)
    else:
        return _ensure_dir(Path.home() / ".config" / app_name)


def get_config_path() -> Path:
    """Return the full config file path."""
    return get_config_dir() / "config.json"


def load_config() -> AppConfig:
    """Load configuration from disk, falling back to defaults on error."""
    path = get_config_path()
    if not path.exists():
        return AppConfig()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.exception("Failed to load config from %s", path)
        return AppConfig()
    if not isinstance(raw, dict):
        return AppConfig()
    return _config_from_mapping(raw)


def save_config(cfg: AppConfig) -> None:
    """Persist configuration to disk atomically."""
    path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(".tmp")
    data = {
        "last_source": cfg.last_source,
        "volume": cfg.volume,
        "muted": cfg.muted,
        "repeat": cfg.repeat,
        "shuffle": cfg.shuffle,
        "autoplay": cfg.autoplay,
        "autoplay_policy": cfg.autoplay_policy,
        "max_history": cfg.max_history,
        "start_delay_ms": cfg.start_delay_ms,
    }
    temp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    os.replace(temp_path, path)


def _ensure_dir(path: Path) -> Path:
    """Create the directory if needed and return the path."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def _is_macos() -> bool:
    """Return True when running on macOS."""
    return os.uname().sysname == "Darwin" if hasattr(os, "uname") else False


def _get_bool(raw: dict[str, Any], key: str, default: bool) -> bool:
    """Fetch a boolean value with fallback for invalid types."""
    value = raw.get(key, default)
    if isinstance(value, bool):
        return value
    return default


def _get_int(
    raw: dict[str, Any],
    key: str,
    default: int,
    *,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    """Fetch an integer value with optional clamping."""
    value = raw.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool):
        value = default
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def _config_from_mapping(raw: dict[str, Any]) -> AppConfig:
    """Normalize raw JSON data into an AppConfig."""
    last_source = raw.get("last_source")
    if last_source is not None and not isinstance(last_source, str):
        last_source = None
    policy = raw.get("autoplay_policy", "allowed")
    if policy not in AUTOPLAY_POLICIES:
        policy = "allowed"
    return AppConfig(
        last_source=last_source or None,
        volume=_get_int(raw, "volume", 50, min_value=0, max_value=100),
        muted=_get_bool(raw, "muted", False),
        repeat=_get_bool(raw, "repeat", False),
        shuffle=_get_bool(raw, "shuffle", False),
        autoplay=_get_bool(raw, "autoplay", True),
        autoplay_policy=policy,
        max_history=_get_int(raw, "max_history", MAX_HISTORY, min_value=1),
        start_delay_ms=_get_int(
            raw, "start_delay_ms", 50, min_value=0, max_value=1000
        ),
    )
