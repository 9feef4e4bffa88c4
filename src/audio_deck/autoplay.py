"""Autoplay capability detection and start strategies."""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Awaitable, Callable, Optional

from audio_deck.media import MediaSink

logger = logging.getLogger(__name__)


class AutoplayCapability(str, Enum):
    ALLOWED = "allowed"
    MUTED_ONLY = "muted-only"
    BLOCKED = "blocked"


class StartOutcome(str, Enum):
    PLAYING = "playing"
    PLAYING_MUTED = "playing-muted"
    NOT_STARTED = "not-started"


CapabilityProbe = Callable[[], Awaitable[AutoplayCapability]]
NoticeCallback = Callable[[str, str], None]


def fixed_capability(capability: AutoplayCapability) -> CapabilityProbe:
    """Return a probe that always reports ``capability``."""

    async def probe() -> AutoplayCapability:
        return capability

    return probe


async def probe_sink(sink: MediaSink) -> AutoplayCapability:
    """Find out what a throwaway sink is allowed to do without user input."""
    was_muted = sink.muted
    try:
        sink.muted = False
        try:
            await sink.start()
        except Exception as exc:
            logger.debug("Unmuted probe start refused: %s", exc)
        else:
            return AutoplayCapability.ALLOWED
        sink.muted = True
        try:
            await sink.start()
        except Exception as exc:
            logger.debug("Muted probe start refused: %s", exc)
            return AutoplayCapability.BLOCKED
        return AutoplayCapability.MUTED_ONLY
    finally:
        try:
            sink.pause()
        except Exception:
            logger.debug("Probe sink pause failed", exc_info=True)
        sink.muted = was_muted


class AutoplayNegotiator:
    """Starts a sink according to the environment's autoplay policy.

    The capability is probed once and reused for every later start. ``start``
    never raises: refusals degrade to a muted start or to a notice.
    """

    def __init__(
        self,
        probe: CapabilityProbe,
        *,
        on_notice: Optional[NoticeCallback] = None,
    ) -> None:
        self._probe = probe
        self._on_notice = on_notice
        self._capability: Optional[AutoplayCapability] = None
        self._pending: Optional[asyncio.Future[AutoplayCapability]] = None

    @property
    def known_capability(self) -> Optional[AutoplayCapability]:
        return self._capability

    def set_notice_callback(self, callback: Optional[NoticeCallback]) -> None:
        self._on_notice = callback

    async def capability(self) -> AutoplayCapability:
        if self._capability is not None:
            return self._capability
        if self._pending is None:
            self._pending = asyncio.ensure_future(self._run_probe())
        return await asyncio.shield(self._pending)

    async def start(self, sink: MediaSink) -> StartOutcome:
        capability = await self.capability()
        if capability is AutoplayCapability.MUTED_ONLY:
            sink.muted = True
            self._notice("Playback is muted by the autoplay policy", "warn")
            return await self._attempt(sink)
        if capability is AutoplayCapability.BLOCKED:
            self._notice("Playback needs user interaction to start", "warn")
            return await self._attempt(sink)
        try:
            await sink.start()
        except Exception as exc:
            logger.warning("Start with sound was prevented: %s", exc)
            if sink.muted:
                return StartOutcome.NOT_STARTED
            sink.muted = True
            outcome = await self._attempt(sink)
            if outcome is StartOutcome.PLAYING_MUTED:
                logger.info("Start succeeded with muted audio")
            return outcome
        return self._outcome(sink)

    async def _run_probe(self) -> AutoplayCapability:
        try:
            capability = AutoplayCapability(await self._probe())
        except Exception:
            logger.warning("Autoplay probe failed; assuming blocked", exc_info=True)
            capability = AutoplayCapability.BLOCKED
        self._capability = capability
        logger.info("Autoplay capability: %s", capability.value)
        return capability

    async def _attempt(self, sink: MediaSink) -> StartOutcome:
        try:
            await sink.start()
        except Exception as exc:
            logger.warning("Playback start was prevented: %s", exc)
            return StartOutcome.NOT_STARTED
        return self._outcome(sink)

    def _outcome(self, sink: MediaSink) -> StartOutcome:
        return StartOutcome.PLAYING_MUTED if sink.muted else StartOutcome.PLAYING

    def _notice(self, text: str, level: str) -> None:
        logger.info("Autoplay notice: %s", text)
        if self._on_notice is None:
            return
        try:
            self._on_notice(text, level)
        except Exception:
            logger.exception("Autoplay notice callback failed")
