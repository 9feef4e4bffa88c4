"""Track duration probing."""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import urlsplit

from aiohttp import ClientError, ClientSession
from mutagen import File as MutagenFile
from mutagen import MutagenError

from audio_deck.errors import DurationProbeFailed
from audio_deck.fetching import fetch_bytes, is_remote, local_path

logger = logging.getLogger(__name__)

# Enough for mutagen to find the stream header of common formats.
PROBE_MAX_BYTES = 4 * 1024 * 1024


def read_duration(source: Union[Path, BinaryIO]) -> int:
    """Return the whole-second duration of an audio file or file object."""
    try:
        audio = MutagenFile(source)
    except (MutagenError, OSError) as exc:
        raise DurationProbeFailed(f"Unreadable audio: {exc}") from exc
    if not audio:
        raise DurationProbeFailed("Unrecognized audio format")
    length = getattr(getattr(audio, "info", None), "length", None)
    if not isinstance(length, (int, float)) or length < 0:
        raise DurationProbeFailed("Audio stream has no length")
    return int(length)


async def probe_duration(url: str, *, session: Optional[ClientSession] = None) -> int:
    """Probe the duration of ``url`` in whole seconds."""
    if not is_remote(url):
        return await asyncio.to_thread(read_duration, local_path(url))
    try:
        data = await fetch_bytes(url, session=session, limit=PROBE_MAX_BYTES)
    except (ClientError, asyncio.TimeoutError) as exc:
        raise DurationProbeFailed(f"Failed to fetch {url}: {exc}") from exc
    buffer = io.BytesIO(data)
    # mutagen scores formats partly by file name.
    buffer.name = urlsplit(url).path.rsplit("/", 1)[-1]  # type: ignore[attr-defined]
    return await asyncio.to_thread(read_duration, buffer)
