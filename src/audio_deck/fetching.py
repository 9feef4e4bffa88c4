"""HTTP retrieval helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Optional
from urllib.parse import urljoin, urlsplit
from urllib.request import url2pathname

from aiohttp import ClientSession, ClientTimeout

REMOTE_SCHEMES = {"http", "https"}
DEFAULT_TIMEOUT = ClientTimeout(total=30, connect=10)


def is_remote(url: str) -> bool:
    return urlsplit(url).scheme.lower() in REMOTE_SCHEMES


def local_path(url: str) -> Path:
    """Return the filesystem path behind a plain path or ``file://`` URL."""
    parts = urlsplit(url)
    if parts.scheme.lower() == "file":
        return Path(url2pathname(parts.path))
    return Path(url)


def resolve_url(url: str, base: Optional[str]) -> str:
    """Resolve a manifest entry against the manifest's own location."""
    if not base or is_remote(url) or urlsplit(url).scheme.lower() == "file":
        return url
    if is_remote(base):
        return urljoin(base, url)
    path = Path(url)
    if path.is_absolute():
        return url
    return str((Path(base) / path).resolve())


async def fetch_bytes(
    url: str,
    *,
    session: Optional[ClientSession] = None,
    limit: Optional[int] = None,
    timeout: ClientTimeout = DEFAULT_TIMEOUT,
) -> bytes:
    """GET ``url`` and return the body, reading at most ``limit`` bytes."""
    owns_session = session is None
    client = session if session is not None else ClientSession(timeout=timeout)
    try:
        async with client.get(url, timeout=timeout, allow_redirects=True) as resp:
            resp.raise_for_status()
            if limit is None:
                return await resp.read()
            return await resp.content.read(limit)
    finally:
        if owns_session:
            await client.close()
