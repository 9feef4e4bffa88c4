"""Bounded play history used for backward navigation under shuffle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

MAX_HISTORY = 50


@dataclass(frozen=True)
class PlayHistory:
    """Indices actually played, oldest first."""

    entries: tuple[int, ...] = ()
    max_length: int = MAX_HISTORY

    def __post_init__(self) -> None:
        if self.max_length < 1:
            raise ValueError("max_length must be at least 1")
        if len(self.entries) > self.max_length:
            object.__setattr__(self, "entries", self.entries[-self.max_length :])

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[int]:
        return iter(self.entries)

    def push(self, index: int) -> PlayHistory:
        """Append ``index``, evicting the oldest entries past the cap."""
        entries = (*self.entries, index)[-self.max_length :]
        return PlayHistory(entries, self.max_length)

    def pop(self) -> tuple[PlayHistory, Optional[int]]:
        if not self.entries:
            return self, None
        return PlayHistory(self.entries[:-1], self.max_length), self.entries[-1]

    def peek_last(self) -> Optional[int]:
        return self.entries[-1] if self.entries else None

    def previous(self, current: int) -> tuple[PlayHistory, int]:
        """Drop the just-played tail and return the track before it.

        With a single entry (or none) there is nothing to go back to and
        ``current`` is returned unchanged.
        """
        if len(self.entries) <= 1:
            return self, current
        remaining = PlayHistory(self.entries[:-1], self.max_length)
        return remaining, remaining.entries[-1]

    def reset(self, seed: Optional[int] = None) -> PlayHistory:
        entries = () if seed is None or seed < 0 else (seed,)
        return PlayHistory(entries, self.max_length)
