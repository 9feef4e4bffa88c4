"""Media sink interface and event subscription helpers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]
Disposer = Callable[[], None]


class MediaEvent(str, Enum):
    PLAYING = "playing"
    PAUSED = "paused"
    LOADED_METADATA = "loaded-metadata"
    TIME_UPDATE = "time-update"
    ENDED = "ended"
    VOLUME_CHANGED = "volume-changed"
    ERROR = "error"
    LOAD_START = "load-start"


class EventTarget(Protocol):
    def add_listener(self, event: MediaEvent, handler: Handler) -> None: ...

    def remove_listener(self, event: MediaEvent, handler: Handler) -> None: ...


class MediaSink(EventTarget, Protocol):
    """An addressable playback resource driven by the transport."""

    source: Optional[str]
    volume: float
    muted: bool
    loop: bool
    current_time: float

    @property
    def duration(self) -> float: ...

    async def start(self) -> None:
        """Start playback; raise ``PlaybackStartRejected`` if refused."""
        ...

    def pause(self) -> None: ...


class MediaEventEmitter:
    """Listener bookkeeping shared by sink implementations."""

    def __init__(self) -> None:
        self._listeners: dict[MediaEvent, list[Handler]] = {}

    def add_listener(self, event: MediaEvent, handler: Handler) -> None:
        self._listeners.setdefault(MediaEvent(event), []).append(handler)

    def remove_listener(self, event: MediaEvent, handler: Handler) -> None:
        handlers = self._listeners.get(MediaEvent(event))
        if not handlers:
            return
        for position, existing in enumerate(handlers):
            if existing is handler:
                del handlers[position]
                break
        if not handlers:
            self._listeners.pop(MediaEvent(event), None)

    def listener_count(self, event: Optional[MediaEvent] = None) -> int:
        if event is not None:
            return len(self._listeners.get(MediaEvent(event), ()))
        return sum(len(handlers) for handlers in self._listeners.values())

    def emit(self, event: MediaEvent, payload: Any = None) -> None:
        for handler in list(self._listeners.get(MediaEvent(event), ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("Media listener failed for %s", event.value)


@dataclass
class _Subscription:
    target: EventTarget
    event: MediaEvent
    handler: Handler
    active: bool = True


class SubscriptionRegistry:
    """Tracks listener registrations so they can be released together."""

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def register(
        self, target: EventTarget, event: MediaEvent, handler: Handler
    ) -> Disposer:
        """Attach ``handler`` and return a disposer that detaches it once."""
        target.add_listener(event, handler)
        subscription = _Subscription(target, event, handler)
        self._subscriptions.append(subscription)

        def dispose() -> None:
            self._release(subscription)

        return dispose

    def unregister(self, target: EventTarget) -> None:
        for subscription in list(self._subscriptions):
            if subscription.target is target:
                self._release(subscription)

    def unregister_all(self) -> None:
        for subscription in list(self._subscriptions):
            self._release(subscription)

    def _release(self, subscription: _Subscription) -> None:
        if not subscription.active:
            return
        subscription.active = False
        self._subscriptions.remove(subscription)
        try:
            subscription.target.remove_listener(
                subscription.event, subscription.handler
            )
        except Exception:
            logger.warning(
                "Failed to detach %s listener", subscription.event.value, exc_info=True
            )
