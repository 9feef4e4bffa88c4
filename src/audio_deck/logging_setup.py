"""Logging setup for AudioDeck."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
import os
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"
LOG_MAX_BYTES = 2_000_000
LOG_BACKUPS = 5


def _default_log_dir() -> Path:
    override = os.getenv("AUDIO_DECK_LOG_DIR")
    if override:
        return Path(override)
    local_appdata = os.getenv("LOCALAPPDATA")
    if local_appdata:
        return Path(local_appdata) / "AudioDeck" / "logs"
    return Path.home() / ".audio_deck" / "logs"


def resolve_level(value: Optional[Union[str, int]]) -> int:
    """Map a level name or number to a logging level, defaulting to INFO."""
    if isinstance(value, int):
        return value
    level = logging.getLevelName((value or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def _is_console(handler: logging.Handler) -> bool:
    return isinstance(handler, logging.StreamHandler) and not isinstance(
        handler, logging.FileHandler
    )


def init_logging(
    app_name: str = "audio_deck",
    *,
    level: Optional[Union[str, int]] = None,
) -> Path:
    """Initialize logging and return the log file path.

    ``level`` takes precedence over ``AUDIO_DECK_LOG_LEVEL``. The file and
    console handlers are installed once; later calls only move the root level.
    """
    log_dir = _default_log_dir()
    log_path = log_dir / "app.log"
    if level is None:
        level = os.getenv("AUDIO_DECK_LOG_LEVEL")
    resolved = resolve_level(level)

    root = logging.getLogger()
    root.setLevel(resolved)
    formatter = logging.Formatter(LOG_FORMAT)

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
            file_handler = RotatingFileHandler(
                log_path,
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUPS,
                encoding="utf-8",
            )
            file_handler.setLevel(resolved)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
        if not any(_is_console(h) for h in root.handlers):
            stream_handler = logging.StreamHandler()
            stream_handler.setLevel(resolved)
            stream_handler.setFormatter(formatter)
            root.addHandler(stream_handler)
    except OSError:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)

    logging.getLogger(app_name).info("Logging initialized at %s", log_path)
    return log_path


def set_console_level(level: int) -> None:
    """Adjust console (stderr) handler level."""
    for handler in logging.getLogger().handlers:
        if _is_console(handler):
            handler.setLevel(level)
