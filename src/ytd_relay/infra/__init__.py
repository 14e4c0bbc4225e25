"""Infrastructure layer — external system integration.

This layer wraps all interaction with yt-dlp (executable or library),
child processes, and ffmpeg.  Every raw third-party exception must be
caught here and re-raised as a
:class:`~ytd_relay.exceptions.YtdRelayError` subclass.

Rules
-----
* No imports from ``cli``.
* No user-facing output (no ``print()``, no Rich rendering).
* Must expose clean, typed interfaces consumed by the core layer.
"""

from ytd_relay.infra.ffmpeg_detector import FfmpegStatus, detect_ffmpeg
from ytd_relay.infra.ytdlp_library import YtDlpLibraryExtractor
from ytd_relay.infra.ytdlp_process import YtDlpProcessExtractor

__all__: list[str] = [
    "FfmpegStatus",
    "YtDlpLibraryExtractor",
    "YtDlpProcessExtractor",
    "detect_ffmpeg",
]
