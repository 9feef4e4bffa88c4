"""Pytest configuration for AudioDeck."""

from __future__ import annotations

import os

import pytest


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    del config
    if os.environ.get("AUDIO_DECK_CI") != "1":
        return
    skip_vlc = pytest.mark.skip(reason="libvlc is not available in CI.")
    for item in items:
        if item.get_closest_marker("vlc") is not None:
            item.add_marker(skip_vlc)
