"""Shuffle order generation."""

from __future__ import annotations

from dataclasses import dataclass
import random
from typing import Iterable, Iterator


def generate_shuffle_order(
    count: int,
    exclude: int,
    rng: random.Random,
) -> list[int]:
    """Return a random permutation of ``range(count)`` without ``exclude``.

    ``Random.shuffle`` is a Fisher-Yates shuffle, so every ordering of the
    remaining indices is equally likely.
    """
    if count <= 1:
        return []
    order = list(range(count))
    rng.shuffle(order)
    if 0 <= exclude < count:
        order.remove(exclude)
    return order


@dataclass(frozen=True)
class ShuffleOrder:
    """Indices still to be played in the current shuffle cycle."""

    indices: tuple[int, ...] = ()

    @classmethod
    def generate(cls, count: int, exclude: int, rng: random.Random) -> ShuffleOrder:
        return cls(tuple(generate_shuffle_order(count, exclude, rng)))

    def __len__(self) -> int:
        return len(self.indices)

    def __iter__(self) -> Iterator[int]:
        return iter(self.indices)

    def __contains__(self, index: object) -> bool:
        return index in self.indices

    def pop_head(self) -> tuple[int, ShuffleOrder]:
        """Return the next index and the order that remains after it."""
        if not self.indices:
            raise IndexError("pop from empty shuffle order")
        return self.indices[0], ShuffleOrder(self.indices[1:])

    def discard(self, index: int) -> ShuffleOrder:
        if index not in self.indices:
            return self
        return ShuffleOrder(tuple(i for i in self.indices if i != index))

    def without(self, indices: Iterable[int]) -> ShuffleOrder:
        drop = set(indices)
        if not drop:
            return self
        return ShuffleOrder(tuple(i for i in self.indices if i not in drop))
