"""Translate yt-dlp diagnostics into typed extraction failures.

Both extractor variants report errors as free text (stderr for the
executable, ``DownloadError`` messages for the library).  This module is
the single place that decides which text means "the video itself is
unavailable" as opposed to a generic execution failure.
"""

from __future__ import annotations

from ytd_relay.exceptions import (
    ToolExecutionError,
    VideoUnavailableError,
    append_ytdlp_upgrade_suggestion,
)

# Substrings in yt-dlp error messages that indicate the video itself
# is unavailable (as opposed to a transient or extraction error).
UNAVAILABLE_SIGNALS: tuple[str, ...] = (
    "unavailable",
    "private video",
    "removed",
    "not available",
    "account terminated",
    "video has been removed",
    "this video is no longer available",
    "sign in to confirm your age",
)


def last_error_line(diagnostic: str) -> str:
    """Return the most relevant line of a diagnostic dump."""
    lines = [line.strip() for line in diagnostic.splitlines() if line.strip()]
    for line in reversed(lines):
        if line.startswith("ERROR:"):
            return line
    return lines[-1] if lines else ""


def classify_failure(
    diagnostic: str,
    *,
    url: str,
    operation: str,
    returncode: int | None = None,
) -> ToolExecutionError:
    """Build the exception matching *diagnostic* (does not raise it)."""
    lowered = diagnostic.lower()
    if any(signal in lowered for signal in UNAVAILABLE_SIGNALS):
        return VideoUnavailableError(
            "The video is unavailable.",
            url=url,
            operation=operation,
            diagnostic=diagnostic,
            returncode=returncode,
            hint="The video may be private, removed, or geo-restricted.",
        )
    return ToolExecutionError(
        "Could not fetch this video.",
        url=url,
        operation=operation,
        diagnostic=diagnostic,
        returncode=returncode,
        hint=append_ytdlp_upgrade_suggestion(
            last_error_line(diagnostic) or "The extractor gave no details.",
        ),
    )
