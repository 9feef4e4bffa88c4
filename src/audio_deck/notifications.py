"""Observable notifications emitted by the transport."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    STARTED = "started"
    PAUSED = "paused"
    MUTED = "muted"
    REPEAT_TOGGLED = "repeat-toggled"
    SHUFFLE_TOGGLED = "shuffle-toggled"
    TRACK_ENDED = "track-ended"
    TRACK_CHANGED = "track-changed"
    AUTOPLAY_CHANGED = "autoplay-changed"
    TIME_UPDATE = "time-update"
    VOLUME_CHANGED = "volume-changed"
    NOTICE = "notice"


@dataclass(frozen=True)
class Notice:
    """A non-fatal message for the user."""

    text: str
    level: str = "info"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    payload: Any = None


Listener = Callable[[Notification], None]


class Notifier:
    """Fan-out of notifications to subscribed listeners."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def dispose() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return dispose

    def clear(self) -> None:
        self._listeners.clear()

    def emit(self, kind: NotificationKind, payload: Any = None) -> None:
        notification = Notification(kind, payload)
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed for %s", kind.value)

    def notice(self, text: str, level: str = "info") -> None:
        self.emit(NotificationKind.NOTICE, Notice(text=text, level=level))
