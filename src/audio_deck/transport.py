"""Transport controller: the public playback API."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Callable, Coroutine, Optional

from audio_deck.autoplay import AutoplayNegotiator, StartOutcome
from audio_deck.history import MAX_HISTORY
from audio_deck.media import MediaEvent, MediaSink, SubscriptionRegistry
from audio_deck.metadata import probe_duration
from audio_deck.notifications import Listener, NotificationKind, Notifier
from audio_deck.playlist import Playlist, Track
from audio_deck.sequencer import (
    ChangeTrack,
    Effect,
    Event,
    NextTrack,
    PlaylistLoaded,
    PreviousTrack,
    RandomTrack,
    Reshuffle,
    RestartTrack,
    SelectTrack,
    SequencerState,
    SetRepeat,
    SetShuffle,
    StopPlayback,
    TrackEnded,
    transition,
)
from audio_deck.sources import DurationProber, PlaylistSource, load_playlist

logger = logging.getLogger(__name__)

DEFAULT_START_DELAY = 0.05


class TransportController:
    """Drives a media sink through a playlist.

    Navigation decisions come from the sequencer; this class applies their
    effects to the sink, negotiates starts and publishes notifications.
    """

    # --- Lifecycle ---
    def __init__(
        self,
        sink: Optional[MediaSink],
        negotiator: AutoplayNegotiator,
        *,
        rng: Optional[random.Random] = None,
        start_delay: float = DEFAULT_START_DELAY,
        max_history: int = MAX_HISTORY,
        volume: int = 50,
        muted: bool = False,
        repeat: bool = False,
        shuffle: bool = False,
        autoplay: bool = True,
    ) -> None:
        self._sink: Optional[MediaSink] = None
        self._negotiator = negotiator
        self._rng = rng or random.Random()
        self._start_delay = max(0.0, start_delay)
        self._notifier = Notifier()
        self._registry = SubscriptionRegistry()
        self._sequence = SequencerState.initial(
            shuffle=shuffle, repeat=repeat, max_history=max_history
        )
        self.playlist = Playlist([])
        self._volume = max(0, min(100, volume))
        self._muted = muted
        self._autoplay = autoplay
        self._playing = False
        self._loaded = False
        self._position = 0
        self._length = 0
        self._pending_start: Optional[asyncio.Task[Any]] = None
        self._load_task: Optional[asyncio.Task[Playlist]] = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False
        negotiator.set_notice_callback(self._notifier.notice)
        if sink is not None:
            self.attach(sink)

    def attach(self, sink: MediaSink) -> None:
        """Bind the controller to ``sink`` and apply the current settings."""
        if self._sink is not None:
            self._registry.unregister(self._sink)
        self._sink = sink
        sink.volume = self._volume / 100
        sink.muted = self._muted
        sink.loop = self._sequence.repeat
        handlers = {
            MediaEvent.PLAYING: self._on_playing,
            MediaEvent.PAUSED: self._on_paused,
            MediaEvent.LOADED_METADATA: self._on_loaded_metadata,
            MediaEvent.TIME_UPDATE: self._on_time_update,
            MediaEvent.ENDED: self._on_ended,
            MediaEvent.VOLUME_CHANGED: self._on_volume_changed,
            MediaEvent.ERROR: self._on_error,
            MediaEvent.LOAD_START: self._on_load_start,
        }
        for event, handler in handlers.items():
            self._registry.register(sink, event, handler)

    def close(self) -> None:
        """Release every listener and cancel outstanding work."""
        if self._closed:
            return
        self._closed = True
        self._cancel_pending_start()
        if self._load_task is not None:
            self._load_task.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._registry.unregister_all()
        self._notifier.clear()
        self._negotiator.set_notice_callback(None)
        logger.info("Transport closed")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a notification listener and return its disposer."""
        return self._notifier.subscribe(listener)

    async def drain(self) -> None:
        """Wait for scheduled starts and other spawned work to finish."""
        while True:
            pending = [t for t in self._tasks if t is not asyncio.current_task()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # --- State ---
    @property
    def sink(self) -> Optional[MediaSink]:
        return self._sink

    @property
    def current_index(self) -> int:
        return self.playlist.index

    @property
    def current_track(self) -> Optional[Track]:
        return self.playlist.current()

    @property
    def is_empty(self) -> bool:
        return self.playlist.is_empty()

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def is_muted(self) -> bool:
        return self._muted

    @property
    def is_repeat(self) -> bool:
        return self._sequence.repeat

    @property
    def is_shuffle(self) -> bool:
        return self._sequence.shuffle

    @property
    def is_autoplay(self) -> bool:
        return self._autoplay

    @property
    def volume(self) -> int:
        return self._volume

    @property
    def position(self) -> int:
        return self._position

    @property
    def length(self) -> int:
        return self._length

    @property
    def play_history(self) -> tuple[int, ...]:
        return self._sequence.history.entries

    @property
    def shuffle_order(self) -> tuple[int, ...]:
        return self._sequence.order.indices

    @property
    def remaining_shuffle_tracks(self) -> int:
        return len(self._sequence.order)

    # --- Playlist ---
    def set_playlist(self, playlist: Playlist) -> None:
        """Replace the playlist and cue its first track."""
        self._cancel_pending_start()
        self.playlist = playlist
        playlist.set_index(0)
        self._dispatch(PlaylistLoaded(len(playlist)))
        if not playlist.is_empty():
            self._change_track(self._sequence.index)

    async def load(
        self,
        source: PlaylistSource,
        *,
        prober: DurationProber = probe_duration,
    ) -> Playlist:
        """Fetch and probe a playlist, then publish it unless closed meanwhile."""
        task = asyncio.ensure_future(load_playlist(source, prober=prober))
        self._load_task = task
        try:
            playlist = await task
        except asyncio.CancelledError:
            if self._closed:
                return Playlist([])
            raise
        finally:
            self._load_task = None
        if self._closed:
            return playlist
        self.set_playlist(playlist)
        return playlist

    # --- Transport ---
    async def play(self) -> StartOutcome:
        self._cancel_pending_start()
        sink = self._sink
        if self._closed or sink is None or sink.source is None:
            return StartOutcome.NOT_STARTED
        outcome = await self._negotiator.start(sink)
        self._sync_muted()
        if outcome is StartOutcome.NOT_STARTED:
            logger.warning("Playback did not start for %s", sink.source)
        return outcome

    def pause(self) -> None:
        self._cancel_pending_start()
        if self._sink is None:
            return
        try:
            self._sink.pause()
        except Exception:
            logger.warning("Pause failed", exc_info=True)

    async def toggle_play(self) -> None:
        if self._playing:
            self.pause()
        else:
            await self.play()

    def seek(self, seconds: float) -> bool:
        """Move to ``seconds``; ignored until a source is bound."""
        sink = self._sink
        if sink is None or sink.source is None:
            return False
        upper = self._length or int(sink.duration)
        target = max(0.0, float(seconds))
        if upper > 0:
            target = min(target, float(upper))
        sink.current_time = target
        self._position = int(target)
        return True

    def set_volume(self, level: int) -> bool:
        """Set volume in percent; ignored until a sink is attached."""
        if self._sink is None:
            return False
        self._volume = max(0, min(100, int(level)))
        self._sink.volume = self._volume / 100
        return True

    def adjust_volume(self, delta: int) -> bool:
        return self.set_volume(self._volume + delta)

    def toggle_mute(self) -> None:
        if self._sink is None:
            return
        self._muted = not self._muted
        self._sink.muted = self._muted
        self._notifier.emit(NotificationKind.MUTED, self._muted)

    def toggle_repeat(self) -> None:
        self._dispatch(SetRepeat(not self._sequence.repeat))
        if self._sink is not None:
            self._sink.loop = self._sequence.repeat
        self._notifier.emit(NotificationKind.REPEAT_TOGGLED, self._sequence.repeat)

    def toggle_shuffle(self) -> None:
        self._dispatch(SetShuffle(not self._sequence.shuffle))
        self._notifier.emit(NotificationKind.SHUFFLE_TOGGLED, self._sequence.shuffle)

    def toggle_autoplay(self) -> None:
        self._autoplay = not self._autoplay
        self._notifier.emit(NotificationKind.AUTOPLAY_CHANGED, self._autoplay)
        if self._autoplay and self._loaded and not self._playing:
            self._spawn(self.play())

    # --- Navigation ---
    def next(self) -> None:
        self._dispatch(NextTrack())

    def previous(self) -> None:
        self._dispatch(PreviousTrack())

    def play_track(self, index: int) -> None:
        self._dispatch(SelectTrack(index))

    def play_random(self) -> None:
        self._dispatch(RandomTrack())

    def reshuffle(self) -> None:
        self._dispatch(Reshuffle())

    # --- Sequencing ---
    def _dispatch(self, event: Event) -> None:
        if self._closed:
            return
        result = transition(self._sequence, event, self._rng)
        self._sequence = result.state
        for effect in result.effects:
            self._apply(effect)

    def _apply(self, effect: Effect) -> None:
        if isinstance(effect, ChangeTrack):
            self._change_track(effect.index)
        elif isinstance(effect, RestartTrack):
            self._rewind()
            self._spawn(self.play())
        elif isinstance(effect, StopPlayback):
            self.pause()
            self._rewind()

    def _change_track(self, index: int) -> None:
        track = self.playlist.set_index(index)
        if track is None:
            return
        self._cancel_pending_start()
        self._length = track.duration
        if self._sink is not None:
            self._sink.source = track.url
        self._rewind()
        logger.info("Track change index=%s url=%s", index, track.url)
        self._notifier.emit(NotificationKind.TRACK_CHANGED, track)
        if self._autoplay:
            self._pending_start = self._spawn(self._deferred_start())

    async def _deferred_start(self) -> None:
        # The sink needs a moment to take the new source before starting.
        await asyncio.sleep(self._start_delay)
        if self._pending_start is asyncio.current_task():
            self._pending_start = None
        await self.play()

    def _rewind(self) -> None:
        self._position = 0
        if self._sink is not None:
            self._sink.current_time = 0

    def _sync_muted(self) -> None:
        if self._sink is None or self._sink.muted == self._muted:
            return
        self._muted = self._sink.muted
        self._notifier.emit(NotificationKind.MUTED, self._muted)

    # --- Tasks ---
    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> Optional[asyncio.Task[Any]]:
        if self._closed:
            coro.close()
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.debug("No running event loop; start request dropped")
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if self._pending_start is task:
            self._pending_start = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Transport task failed", exc_info=exc)

    def _cancel_pending_start(self) -> None:
        if self._pending_start is not None:
            self._pending_start.cancel()
            self._pending_start = None

    # --- Media events ---
    def _on_playing(self, _payload: object = None) -> None:
        self._playing = True
        self._notifier.emit(NotificationKind.STARTED)

    def _on_paused(self, _payload: object = None) -> None:
        self._playing = False
        self._notifier.emit(NotificationKind.PAUSED)

    def _on_loaded_metadata(self, _payload: object = None) -> None:
        self._loaded = True
        if self._sink is None:
            return
        duration = int(self._sink.duration)
        if duration > 0:
            self._length = duration

    def _on_time_update(self, _payload: object = None) -> None:
        if self._sink is None:
            return
        self._position = int(self._sink.current_time)
        self._notifier.emit(NotificationKind.TIME_UPDATE, self._position)

    def _on_ended(self, _payload: object = None) -> None:
        self._playing = False
        self._notifier.emit(NotificationKind.TRACK_ENDED)
        self._dispatch(TrackEnded())

    def _on_volume_changed(self, _payload: object = None) -> None:
        if self._sink is None:
            return
        self._notifier.emit(
            NotificationKind.VOLUME_CHANGED, int(self._sink.volume * 100)
        )

    def _on_error(self, payload: object = None) -> None:
        self._playing = False
        source = self._sink.source if self._sink is not None else None
        logger.warning("Media error for %s: %s", source, payload)
        self._notifier.notice("Playback error", "error")

    def _on_load_start(self, _payload: object = None) -> None:
        self._loaded = False
