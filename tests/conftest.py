"""Shared pytest fixtures and configuration for the ytd-relay test suite.

Guidelines
----------
* No internet access in any test.
* yt-dlp is either mocked at the infra boundary or replaced by
  ``fake_ytdlp.py``, a script run with the current interpreter.
* Core tests must be pure — no side effects.
* Async code is driven with :func:`asyncio.run` inside plain tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

FAKE_YTDLP = Path(__file__).with_name("fake_ytdlp.py")


@pytest.fixture
def fake_ytdlp_command() -> tuple[str, ...]:
    """Command prefix that runs the fake yt-dlp script."""
    return (sys.executable, str(FAKE_YTDLP))


@pytest.fixture
def fake_ytdlp_mode(monkeypatch: pytest.MonkeyPatch):  # noqa: ANN201
    """Select the behaviour of ``fake_ytdlp.py`` for this test."""

    def _set(mode: str) -> None:
        monkeypatch.setenv("FAKE_YTDLP_MODE", mode)

    return _set
