"""Runtime settings for ytd-relay.

Settings are a frozen dataclass with sensible defaults.  The CLI loads a
``.env`` file (python-dotenv) and then calls
:meth:`RelaySettings.from_env`, which reads ``YTD_RELAY_*`` variables;
anything unset keeps its default.
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TypeVar

from ytd_relay.core.format_filter import DEFAULT_LIMITS, FormatLimits
from ytd_relay.exceptions import ConfigurationError

ENV_PREFIX = "YTD_RELAY_"

BACKENDS: tuple[str, ...] = ("auto", "process", "library")
MERGE_FORMATS: tuple[str, ...] = ("mp4", "mkv", "webm")

_T = TypeVar("_T")


@dataclass(frozen=True, slots=True)
class RelaySettings:
    """Process-wide configuration."""

    backend: str = "auto"
    """``auto`` probes for the executable, then the library."""

    ytdlp_command: tuple[str, ...] = ("yt-dlp",)
    ffmpeg_location: str | None = None

    cache_ttl: float = 300.0
    cache_max_entries: int = 256
    sweep_interval: float = 60.0

    describe_timeout: float = 60.0
    first_byte_timeout: float = 60.0
    chunk_size: int = 64 * 1024

    merge_format: str = "mp4"
    limits: FormatLimits = field(default=DEFAULT_LIMITS)

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown backend {self.backend!r}.",
                hint=f"Use one of: {', '.join(BACKENDS)}",
            )
        if self.merge_format not in MERGE_FORMATS:
            raise ConfigurationError(
                f"Unsupported merge format {self.merge_format!r}.",
                hint=f"Use one of: {', '.join(MERGE_FORMATS)}",
            )
        if not self.ytdlp_command:
            raise ConfigurationError("The yt-dlp command must not be empty.")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelaySettings:
        """Build settings from ``YTD_RELAY_*`` variables in *environ*.

        Raises
        ------
        ConfigurationError
            When a variable is present but cannot be parsed.
        """
        env = os.environ if environ is None else environ

        def read(name: str, parse: Callable[[str], _T], default: _T) -> _T:
            raw = env.get(ENV_PREFIX + name)
            if raw is None or not raw.strip():
                return default
            try:
                return parse(raw.strip())
            except ValueError as exc:
                raise ConfigurationError(
                    f"Invalid value for {ENV_PREFIX}{name}: {raw!r}",
                    hint=str(exc),
                ) from exc

        defaults = cls()
        return cls(
            backend=read("BACKEND", str.lower, defaults.backend),
            ytdlp_command=read("YTDLP", _command, defaults.ytdlp_command),
            ffmpeg_location=read("FFMPEG", str, defaults.ffmpeg_location),
            cache_ttl=read("CACHE_TTL", _positive_float, defaults.cache_ttl),
            cache_max_entries=read(
                "CACHE_MAX", _positive_int, defaults.cache_max_entries,
            ),
            sweep_interval=read(
                "SWEEP_INTERVAL", _positive_float, defaults.sweep_interval,
            ),
            describe_timeout=read(
                "DESCRIBE_TIMEOUT", _positive_float, defaults.describe_timeout,
            ),
            first_byte_timeout=read(
                "FIRST_BYTE_TIMEOUT", _positive_float, defaults.first_byte_timeout,
            ),
            chunk_size=read("CHUNK_SIZE", _positive_int, defaults.chunk_size),
            merge_format=read("MERGE_FORMAT", str.lower, defaults.merge_format),
            limits=FormatLimits(
                combined=read("MAX_COMBINED", _positive_int, DEFAULT_LIMITS.combined),
                video_only=read("MAX_VIDEO", _positive_int, DEFAULT_LIMITS.video_only),
                audio_only=read("MAX_AUDIO", _positive_int, DEFAULT_LIMITS.audio_only),
            ),
        )


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------

def _positive_float(raw: str) -> float:
    value = float(raw)
    if value <= 0:
        raise ValueError("must be greater than zero")
    return value


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value <= 0:
        raise ValueError("must be greater than zero")
    return value


def _command(raw: str) -> tuple[str, ...]:
    parts = tuple(shlex.split(raw))
    if not parts:
        raise ValueError("empty command")
    return parts
