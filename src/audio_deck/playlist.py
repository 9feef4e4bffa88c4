"""Playlist and track modeling for AudioDeck."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional
from urllib.parse import unquote, urlsplit


@dataclass(frozen=True)
class Track:
    """Represents a single playable track."""

    url: str
    title: Optional[str] = None
    duration: int = 0

    @property
    def display_title(self) -> str:
        if self.title:
            return self.title
        path = unquote(urlsplit(self.url).path) or self.url
        name = path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
        return name or self.url


class Playlist:
    """An ordered, fixed set of tracks with a current index."""

    def __init__(self, tracks: Iterable[Track], index: int = 0):
        self.tracks: tuple[Track, ...] = tuple(tracks)
        self.index = index
        self.clamp_index()

    def __len__(self) -> int:
        return len(self.tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(self.tracks)

    def __getitem__(self, index: int) -> Track:
        return self.tracks[index]

    def is_empty(self) -> bool:
        return not self.tracks

    def is_valid_index(self, index: int) -> bool:
        return 0 <= index < len(self.tracks)

    def clamp_index(self) -> None:
        if self.is_empty():
            self.index = -1
            return
        self.index = max(0, min(self.index, len(self.tracks) - 1))

    def current(self) -> Optional[Track]:
        if self.is_empty():
            return None
        return self.tracks[self.index]

    def set_index(self, index: int) -> Optional[Track]:
        self.index = index
        self.clamp_index()
        return self.current()
