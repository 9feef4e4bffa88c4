from __future__ import annotations

from typing import Optional


def format_duration(seconds: Optional[int]) -> str:
    """Render whole seconds as ``MM:SS`` or ``HH:MM:SS``."""
    if seconds is None:
        return "--:--"
    minutes, secs = divmod(max(0, int(seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_position(position: int, length: int) -> str:
    if length <= 0:
        return format_duration(position)
    return f"{format_duration(position)} / {format_duration(length)}"
