"""Track sequencing state machine.

The engine is a pure function over ``(SequencerState, event)`` that returns
the next state plus the side effects the transport has to carry out. It never
touches the media sink itself, which keeps every navigation rule testable
without an event loop.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import random
from typing import Union

from audio_deck.history import MAX_HISTORY, PlayHistory
from audio_deck.shuffle import ShuffleOrder


@dataclass(frozen=True)
class SequencerState:
    count: int = 0
    index: int = -1
    shuffle: bool = False
    repeat: bool = False
    order: ShuffleOrder = field(default_factory=ShuffleOrder)
    history: PlayHistory = field(default_factory=PlayHistory)

    @classmethod
    def initial(
        cls,
        *,
        shuffle: bool = False,
        repeat: bool = False,
        max_history: int = MAX_HISTORY,
    ) -> SequencerState:
        return cls(
            shuffle=shuffle,
            repeat=repeat,
            history=PlayHistory(max_length=max_history),
        )


# Events


@dataclass(frozen=True)
class NextTrack:
    pass


@dataclass(frozen=True)
class PreviousTrack:
    pass


@dataclass(frozen=True)
class TrackEnded:
    pass


@dataclass(frozen=True)
class SelectTrack:
    index: int


@dataclass(frozen=True)
class RandomTrack:
    pass


@dataclass(frozen=True)
class SetShuffle:
    enabled: bool


@dataclass(frozen=True)
class SetRepeat:
    enabled: bool


@dataclass(frozen=True)
class PlaylistLoaded:
    count: int


@dataclass(frozen=True)
class Reshuffle:
    pass


Event = Union[
    NextTrack,
    PreviousTrack,
    TrackEnded,
    SelectTrack,
    RandomTrack,
    SetShuffle,
    SetRepeat,
    PlaylistLoaded,
    Reshuffle,
]


# Effects


@dataclass(frozen=True)
class ChangeTrack:
    index: int


@dataclass(frozen=True)
class RestartTrack:
    pass


@dataclass(frozen=True)
class StopPlayback:
    pass


Effect = Union[ChangeTrack, RestartTrack, StopPlayback]


@dataclass(frozen=True)
class Transition:
    state: SequencerState
    effects: tuple[Effect, ...] = ()


def transition(
    state: SequencerState, event: Event, rng: random.Random
) -> Transition:
    """Apply ``event`` to ``state`` and return the resulting transition."""
    if isinstance(event, NextTrack):
        return _next(state, rng)
    if isinstance(event, PreviousTrack):
        return _previous(state)
    if isinstance(event, TrackEnded):
        return _track_ended(state, rng)
    if isinstance(event, SelectTrack):
        return _select(state, event.index)
    if isinstance(event, RandomTrack):
        return _random(state, rng)
    if isinstance(event, SetShuffle):
        return Transition(_reseed(replace(state, shuffle=event.enabled), rng))
    if isinstance(event, SetRepeat):
        return Transition(replace(state, repeat=event.enabled))
    if isinstance(event, PlaylistLoaded):
        count = max(0, event.count)
        loaded = replace(state, count=count, index=0 if count else -1)
        return Transition(_reseed(loaded, rng))
    if isinstance(event, Reshuffle):
        if not state.shuffle:
            return Transition(state)
        return Transition(_reseed(state, rng))
    raise TypeError(f"Unknown sequencer event: {event!r}")


def _reseed(state: SequencerState, rng: random.Random) -> SequencerState:
    history = state.history.reset(state.index if state.count else None)
    if state.shuffle and state.count:
        order = ShuffleOrder.generate(state.count, state.index, rng)
    else:
        order = ShuffleOrder()
    return replace(state, order=order, history=history)


def _change(state: SequencerState, **changes: object) -> Transition:
    moved = replace(state, **changes)
    return Transition(moved, (ChangeTrack(moved.index),))


def _next(state: SequencerState, rng: random.Random) -> Transition:
    if state.count <= 1:
        return Transition(state)
    if not state.shuffle:
        return _change(state, index=(state.index + 1) % state.count)
    order = state.order.discard(state.index)
    history = state.history
    if not order:
        order = ShuffleOrder.generate(state.count, state.index, rng).without(history)
        if not order:
            # Every track was played this cycle: start a new one.
            history = history.reset(state.index)
            order = ShuffleOrder.generate(state.count, state.index, rng)
    index, order = order.pop_head()
    return _change(state, index=index, order=order, history=history.push(index))


def _previous(state: SequencerState) -> Transition:
    if state.count <= 1:
        return Transition(state)
    if not state.shuffle:
        return _change(state, index=(state.index - 1) % state.count)
    if len(state.history) <= 1:
        return Transition(state)
    history, target = state.history.previous(state.index)
    return _change(state, index=target, history=history)


def _track_ended(state: SequencerState, rng: random.Random) -> Transition:
    if state.repeat:
        return Transition(state, (RestartTrack(),))
    if state.count > 1:
        return _next(state, rng)
    return Transition(state, (StopPlayback(),))


def _select(state: SequencerState, index: int) -> Transition:
    if not 0 <= index < state.count:
        return Transition(state)
    return _change(state, index=index)


def _random(state: SequencerState, rng: random.Random) -> Transition:
    if state.count <= 0:
        return Transition(state)
    index = rng.randrange(state.count)
    while state.count > 1 and index == state.index:
        index = rng.randrange(state.count)
    if not state.shuffle:
        return _change(state, index=index)
    return _change(
        state,
        index=index,
        order=state.order.discard(index),
        history=state.history.push(index),
    )
