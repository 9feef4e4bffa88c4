"""VLC-backed media sink."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, cast

from audio_deck.errors import PlaybackStartRejected
from audio_deck.media import MediaEvent, MediaEventEmitter

logger = logging.getLogger(__name__)

vlc: Any | None = None
_VLC_IMPORT_ERROR: Optional[Exception] = None

_VLC_EVENTS = {
    "MediaPlayerPlaying": MediaEvent.PLAYING,
    "MediaPlayerPaused": MediaEvent.PAUSED,
    "MediaPlayerStopped": MediaEvent.PAUSED,
    "MediaPlayerLengthChanged": MediaEvent.LOADED_METADATA,
    "MediaPlayerTimeChanged": MediaEvent.TIME_UPDATE,
    "MediaPlayerEndReached": MediaEvent.ENDED,
    "MediaPlayerAudioVolume": MediaEvent.VOLUME_CHANGED,
    "MediaPlayerEncounteredError": MediaEvent.ERROR,
    "MediaPlayerOpening": MediaEvent.LOAD_START,
}


def _load_vlc() -> None:
    global vlc
    global _VLC_IMPORT_ERROR
    if vlc is not None or _VLC_IMPORT_ERROR is not None:
        return
    try:
        import vlc as vlc_module  # type: ignore
    except Exception as exc:  # pragma: no cover - platform-dependent import
        vlc = None
        _VLC_IMPORT_ERROR = exc
    else:
        vlc = cast(Any, vlc_module)
        _VLC_IMPORT_ERROR = None


class VlcMediaSink(MediaEventEmitter):
    """Media sink on top of python-vlc's MediaPlayer.

    VLC reports events on its own thread; they are handed to the event loop
    that was running when the sink was created so listeners always run there.
    A sink created without a loop drops its events.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        super().__init__()
        _load_vlc()
        if vlc is None:
            raise RuntimeError(
                "VLC backend is unavailable. Install VLC and the python-vlc package."
            ) from _VLC_IMPORT_ERROR
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        self._loop = loop
        self._instance = cast(Any, vlc).Instance()
        self._player = self._instance.media_player_new()
        self._media: Any = None
        self._source: Optional[str] = None
        self._volume = 1.0
        self._muted = False
        self.loop = False
        self._attach_events()

    def _attach_events(self) -> None:
        if vlc is None:
            return
        event_types = getattr(cast(Any, vlc), "EventType", None)
        try:
            event_manager = self._player.event_manager()
        except Exception:
            logger.warning("VLC event manager unavailable", exc_info=True)
            return
        for name, event in _VLC_EVENTS.items():
            event_type = getattr(event_types, name, None)
            if event_type is None:
                continue
            try:
                event_manager.event_attach(event_type, self._on_vlc_event, event)
            except Exception:
                logger.warning("Failed to attach VLC event %s", name, exc_info=True)

    def _on_vlc_event(self, vlc_event: object, event: MediaEvent) -> None:
        del vlc_event
        loop = self._loop
        # libvlc forbids player calls from its own callback thread.
        if loop is None or loop.is_closed():
            logger.debug("No event loop for VLC event %s; dropped", event)
            return
        loop.call_soon_threadsafe(self._dispatch, event)

    def _dispatch(self, event: MediaEvent) -> None:
        if event is MediaEvent.ENDED and self.loop and self._media is not None:
            self._player.set_media(self._media)
            self._player.play()
            return
        self.emit(event)

    @property
    def source(self) -> Optional[str]:
        return self._source

    @source.setter
    def source(self, url: Optional[str]) -> None:
        if url is None:
            self._player.stop()
            self._media = None
            self._source = None
            return
        self._media = self._instance.media_new(url)
        self._player.set_media(self._media)
        self._source = url

    @property
    def volume(self) -> float:
        return self._volume

    @volume.setter
    def volume(self, value: float) -> None:
        self._volume = max(0.0, min(1.0, float(value)))
        try:
            self._player.audio_set_volume(int(round(self._volume * 100)))
        except Exception:
            logger.debug("VLC volume change failed", exc_info=True)

    @property
    def muted(self) -> bool:
        return self._muted

    @muted.setter
    def muted(self, value: bool) -> None:
        self._muted = bool(value)
        try:
            self._player.audio_set_mute(self._muted)
        except Exception:
            logger.debug("VLC mute change failed", exc_info=True)

    @property
    def current_time(self) -> float:
        try:
            position = self._player.get_time()
        except Exception:
            return 0.0
        if position is None or position < 0:
            return 0.0
        return position / 1000.0

    @current_time.setter
    def current_time(self, seconds: float) -> None:
        try:
            self._player.set_time(int(max(0.0, float(seconds)) * 1000))
        except Exception:
            logger.debug("VLC seek failed", exc_info=True)

    @property
    def duration(self) -> float:
        try:
            length = self._player.get_length()
        except Exception:
            return 0.0
        if length is None or length < 0:
            return 0.0
        return length / 1000.0

    async def start(self) -> None:
        """Start playback of the current source."""
        if self._media is None:
            raise PlaybackStartRejected("No media source assigned")
        result = await asyncio.to_thread(self._player.play)
        if result == -1:
            raise PlaybackStartRejected("VLC refused to start playback")
        # VLC applies mute and volume only once an audio output exists.
        self.muted = self._muted
        self.volume = self._volume

    def pause(self) -> None:
        self._player.set_pause(1)

    def close(self) -> None:
        try:
            self._player.stop()
            self._player.release()
        except Exception:
            logger.debug("VLC release failed", exc_info=True)
