"""Infrastructure: ffmpeg detection and platform guidance.

ffmpeg is what makes a process *merge capable*: without it, video-only
formats can never be paired with an audio track and must not be
offered.  The probe runs once at startup.

Rules
-----
* Detection via :func:`shutil.which` only — no subprocess.
* An explicitly configured location wins over PATH lookup.
* No permanent PATH modification, no automatic installation.
* No ``print()`` — callers handle user-facing output.
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Detection result
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FfmpegStatus:
    """Result of an ffmpeg detection probe.

    Attributes
    ----------
    found : bool
        Whether a usable ffmpeg binary was located.
    path : Path | None
        Absolute path to the ffmpeg binary, or ``None``.
    version_hint : str
        Human-readable status string (e.g. ``"found at …"`` or ``"not found"``).
    install_commands : tuple[str, ...]
        Suggested shell commands for installing ffmpeg on the current
        platform.  Empty when ffmpeg is already present.
    """

    found: bool
    path: Path | None
    version_hint: str
    install_commands: tuple[str, ...]

    @property
    def merge_capable(self) -> bool:
        return self.found and self.path is not None


# ---------------------------------------------------------------------------
# Detection logic
# ---------------------------------------------------------------------------

def _resolve_configured(location: str | os.PathLike[str]) -> Path | None:
    """Accept either the binary itself or a directory containing it."""
    candidate = Path(location).expanduser()
    if candidate.is_dir():
        found = shutil.which("ffmpeg", path=str(candidate))
        return Path(found).resolve() if found else None
    if candidate.is_file() and os.access(candidate, os.X_OK):
        return candidate.resolve()
    return None


def detect_ffmpeg(location: str | os.PathLike[str] | None = None) -> FfmpegStatus:
    """Probe the system for an ffmpeg binary.

    Returns a :class:`FfmpegStatus` regardless of whether ffmpeg is
    present — the caller decides whether to abort or merely disable
    merging.
    """
    resolved: Path | None
    if location is not None:
        resolved = _resolve_configured(location)
        if resolved is None:
            logger.warning("configured ffmpeg location is not usable: %s", location)
    else:
        result = shutil.which("ffmpeg")
        resolved = Path(result).resolve() if result is not None else None

    if resolved is not None:
        return FfmpegStatus(
            found=True,
            path=resolved,
            version_hint=f"found at {resolved}",
            install_commands=(),
        )

    return FfmpegStatus(
        found=False,
        path=None,
        version_hint="not found",
        install_commands=_platform_install_commands(),
    )


# ---------------------------------------------------------------------------
# Platform-specific install guidance
# ---------------------------------------------------------------------------

def _platform_install_commands() -> tuple[str, ...]:
    """Return install commands appropriate for the current OS."""
    system = platform.system().lower()
    if system == "windows":
        return (
            "winget install Gyan.FFmpeg",
            "choco install ffmpeg",
        )
    if system == "linux":
        return (
            "sudo apt install ffmpeg",
            "sudo dnf install ffmpeg",
            "sudo pacman -S ffmpeg",
        )
    if system == "darwin":
        return ("brew install ffmpeg",)
    return ("Please install ffmpeg from https://ffmpeg.org/download.html",)
