"""Wiring: turn :class:`~ytd_relay.config.RelaySettings` into live services.

The only module that knows about both ``core`` and ``infra``.  The CLI
calls :func:`build_runtime` once per process and talks to the services
on the returned :class:`Runtime`.
"""

from __future__ import annotations

import importlib.util
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from ytd_relay.config import RelaySettings
from ytd_relay.core.cache import ResolutionCache
from ytd_relay.core.download_service import DownloadService
from ytd_relay.core.metadata_service import MetadataService
from ytd_relay.core.protocols import Extractor
from ytd_relay.exceptions import ToolUnavailableError
from ytd_relay.infra.ffmpeg_detector import FfmpegStatus, detect_ffmpeg
from ytd_relay.infra.ytdlp_library import YtDlpLibraryExtractor
from ytd_relay.infra.ytdlp_process import YtDlpProcessExtractor

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Runtime:
    """Everything one process needs to resolve and relay media."""

    settings: RelaySettings
    cache: ResolutionCache
    ffmpeg: FfmpegStatus
    extractor: Extractor
    metadata: MetadataService
    downloads: DownloadService

    @property
    def merge_capable(self) -> bool:
        return self.metadata.merge_capable


def executable_available(settings: RelaySettings) -> bool:
    """True when the configured yt-dlp command can be found."""
    return shutil.which(settings.ytdlp_command[0]) is not None


def library_available() -> bool:
    """True when the ``yt_dlp`` package is importable."""
    return importlib.util.find_spec("yt_dlp") is not None


def select_extractor(
    settings: RelaySettings,
    ffmpeg_path: Path | None = None,
) -> Extractor:
    """Pick the extractor variant for *settings*.

    ``auto`` prefers the executable and falls back to the library.

    Raises
    ------
    ToolUnavailableError
        When the requested variant (or, for ``auto``, any variant) is
        not installed.
    """
    backend = settings.backend
    if backend == "auto":
        if executable_available(settings):
            backend = "process"
        elif library_available():
            backend = "library"
        else:
            raise ToolUnavailableError(
                "yt-dlp was not found.",
                hint="Install with: pip install yt-dlp",
            )

    if backend == "process":
        if not executable_available(settings):
            raise ToolUnavailableError(
                f"The yt-dlp executable {settings.ytdlp_command[0]!r} was not found.",
                hint="Install yt-dlp or set YTD_RELAY_YTDLP to its path.",
            )
        extractor: Extractor = YtDlpProcessExtractor(
            settings.ytdlp_command,
            describe_timeout=settings.describe_timeout,
            chunk_size=settings.chunk_size,
            ffmpeg_location=ffmpeg_path,
        )
    else:
        if not library_available():
            raise ToolUnavailableError(
                "The yt_dlp Python package is not installed.",
                hint="Install with: pip install yt-dlp",
            )
        extractor = YtDlpLibraryExtractor(
            describe_timeout=settings.describe_timeout,
            chunk_size=settings.chunk_size,
            ffmpeg_location=ffmpeg_path,
        )

    logger.info("using %s extractor", extractor.name)
    return extractor


def build_runtime(settings: RelaySettings | None = None) -> Runtime:
    """Probe the environment and assemble the service graph."""
    if settings is None:
        settings = RelaySettings.from_env()

    ffmpeg = detect_ffmpeg(settings.ffmpeg_location)
    if not ffmpeg.merge_capable:
        logger.info("ffmpeg not found; video-only formats will not be offered")

    extractor = select_extractor(settings, ffmpeg.path)
    cache = ResolutionCache(
        settings.cache_ttl, max_entries=settings.cache_max_entries,
    )
    metadata = MetadataService(
        extractor,
        cache,
        merge_capable=ffmpeg.merge_capable,
        limits=settings.limits,
    )
    downloads = DownloadService(
        extractor,
        metadata,
        merge_format=settings.merge_format,
        first_byte_timeout=settings.first_byte_timeout,
    )
    return Runtime(
        settings=settings,
        cache=cache,
        ffmpeg=ffmpeg,
        extractor=extractor,
        metadata=metadata,
        downloads=downloads,
    )
