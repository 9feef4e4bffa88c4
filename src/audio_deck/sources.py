"""Playlist sources and playlist loading."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Sequence

from aiohttp import ClientError, ClientSession

from audio_deck.errors import DurationProbeFailed, SourceUnavailable
from audio_deck.fetching import fetch_bytes, is_remote, local_path, resolve_url
from audio_deck.metadata import probe_duration
from audio_deck.playlist import Playlist, Track

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {".mp3", ".flac", ".wav", ".ogg", ".m4a", ".aac", ".opus"}
M3U_EXTENSIONS = {".m3u", ".m3u8"}


@dataclass(frozen=True)
class PlaylistEntry:
    """One manifest record, consumed verbatim."""

    url: str
    title: Optional[str] = None


PlaylistSource = Callable[[], Awaitable[Sequence[PlaylistEntry]]]
DurationProber = Callable[[str], Awaitable[int]]


def parse_manifest(data: Any, base: Optional[str] = None) -> list[PlaylistEntry]:
    """Turn decoded manifest JSON into playlist entries.

    Records without a usable ``url`` are skipped; a non-list document is an
    unavailable source.
    """
    if not isinstance(data, list):
        raise SourceUnavailable("Playlist manifest must be a JSON array")
    entries: list[PlaylistEntry] = []
    for position, record in enumerate(data):
        if not isinstance(record, dict):
            logger.warning("Skipping manifest record %s: not an object", position)
            continue
        url = record.get("url")
        if not isinstance(url, str) or not url.strip():
            logger.warning("Skipping manifest record %s: missing url", position)
            continue
        title = record.get("title")
        if not isinstance(title, str) or not title.strip():
            title = None
        entries.append(PlaylistEntry(url=resolve_url(url.strip(), base), title=title))
    return entries


def read_manifest_file(path: Path) -> list[PlaylistEntry]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise SourceUnavailable(f"Failed to read manifest {path}: {exc}") from exc
    return parse_manifest(data, str(path.parent))


def read_m3u(path: Path) -> list[PlaylistEntry]:
    """Read an M3U/M3U8 playlist, skipping missing or unsupported files."""
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, ValueError) as exc:
        raise SourceUnavailable(f"Failed to read playlist {path}: {exc}") from exc
    entries: list[PlaylistEntry] = []
    title: Optional[str] = None
    for line in lines:
        entry = line.strip()
        if entry.startswith("#EXTINF:"):
            _, _, label = entry.partition(",")
            title = label.strip() or None
            continue
        if not entry or entry.startswith("#"):
            continue
        if is_remote(entry):
            entries.append(PlaylistEntry(url=entry, title=title))
            title = None
            continue
        item = Path(resolve_url(entry, str(path.parent)))
        if item.is_file() and _is_supported(item):
            entries.append(PlaylistEntry(url=str(item), title=title))
        title = None
    return entries


def read_directory(directory: Path) -> list[PlaylistEntry]:
    try:
        paths = sorted(p for p in directory.iterdir() if p.is_file())
    except OSError as exc:
        raise SourceUnavailable(f"Failed to list {directory}: {exc}") from exc
    return [PlaylistEntry(url=str(p)) for p in paths if _is_supported(p)]


async def fetch_manifest(
    url: str, *, session: Optional[ClientSession] = None
) -> list[PlaylistEntry]:
    try:
        body = await fetch_bytes(url, session=session)
        data = json.loads(body.decode("utf-8"))
    except (ClientError, asyncio.TimeoutError, ValueError) as exc:
        raise SourceUnavailable(f"Failed to fetch manifest {url}: {exc}") from exc
    return parse_manifest(data, url)


def open_source(
    location: str, *, session: Optional[ClientSession] = None
) -> PlaylistSource:
    """Return a playlist source for a manifest URL, file or directory."""

    async def fetch() -> Sequence[PlaylistEntry]:
        if is_remote(location):
            return await fetch_manifest(location, session=session)
        path = local_path(location)
        if path.is_dir():
            return await asyncio.to_thread(read_directory, path)
        suffix = path.suffix.lower()
        if suffix in M3U_EXTENSIONS:
            return await asyncio.to_thread(read_m3u, path)
        if suffix in SUPPORTED_EXTENSIONS and path.is_file():
            return [PlaylistEntry(url=str(path))]
        return await asyncio.to_thread(read_manifest_file, path)

    return fetch


async def load_playlist(
    source: PlaylistSource,
    *,
    prober: DurationProber = probe_duration,
) -> Playlist:
    """Fetch entries and probe every duration before building the playlist.

    Probes run concurrently. A failed fetch yields an empty playlist and a
    failed probe leaves that track's duration at 0.
    """
    try:
        entries = list(await source())
    except SourceUnavailable as exc:
        logger.warning("Playlist source unavailable: %s", exc)
        return Playlist([])
    durations = await asyncio.gather(
        *(_probe_or_zero(prober, entry.url) for entry in entries)
    )
    tracks = [
        Track(url=entry.url, title=entry.title, duration=duration)
        for entry, duration in zip(entries, durations)
    ]
    logger.info("Loaded playlist with %s tracks", len(tracks))
    return Playlist(tracks)


async def _probe_or_zero(prober: DurationProber, url: str) -> int:
    try:
        return max(0, int(await prober(url)))
    except DurationProbeFailed as exc:
        logger.warning("Duration probe failed for %s: %s", url, exc)
    except Exception:
        logger.warning("Duration probe failed for %s", url, exc_info=True)
    return 0


def _is_supported(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS
