"""Error types for AudioDeck."""

from __future__ import annotations


class AudioDeckError(Exception):
    """Base class for recoverable AudioDeck failures."""


class SourceUnavailable(AudioDeckError):
    """The playlist source could not be read."""


class DurationProbeFailed(AudioDeckError):
    """A track duration could not be determined."""


class PlaybackStartRejected(AudioDeckError):
    """The playback environment refused to start the sink."""
