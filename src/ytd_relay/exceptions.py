"""Custom exception hierarchy for ytd-relay.

All exceptions that cross layer boundaries must inherit from
:class:`YtdRelayError`.  Raw third-party exceptions (yt-dlp, OS process
errors) must NEVER propagate beyond the infrastructure layer — they are
caught and re-raised as a typed subclass defined here.

Hierarchy
---------
YtdRelayError
├── InvalidURLError
├── ConfigurationError
├── DependencyMissingError
├── ToolUnavailableError
├── ToolExecutionError
│   └── VideoUnavailableError
├── MalformedOutputError
├── ToolTimeoutError
├── FormatSelectionError
└── StreamTruncatedError
"""

from __future__ import annotations


class YtdRelayError(Exception):
    """Base exception for all ytd-relay errors.

    Every failure the boundary layer may report maps to a subclass of
    this exception, so a single ``except YtdRelayError`` renders a clean
    message without leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Input validation ------------------------------------------------------

class InvalidURLError(YtdRelayError):
    """Raised when the provided URL is missing or malformed.

    Always raised before any subprocess is spawned.
    """


class ConfigurationError(YtdRelayError):
    """Raised when a ``YTD_RELAY_*`` setting cannot be parsed."""


class DependencyMissingError(YtdRelayError):
    """Raised when an optional runtime library is not installed."""


# --- Extraction tool -------------------------------------------------------

class ToolUnavailableError(YtdRelayError):
    """Raised when the extraction tool cannot be started at all.

    Fatal to the current operation and never retried automatically.
    """


class _ExtractionFailure(YtdRelayError):
    """Shared context for failures attributable to one extractor call."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        operation: str = "",
        diagnostic: str = "",
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.url: str = url
        self.operation: str = operation
        self.diagnostic: str = diagnostic
        """Raw diagnostic text from the tool.  Not assumed user-safe."""


class ToolExecutionError(_ExtractionFailure):
    """Raised when the extraction tool exits with a nonzero status."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        operation: str = "",
        diagnostic: str = "",
        returncode: int | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(
            message,
            url=url,
            operation=operation,
            diagnostic=diagnostic,
            hint=hint,
        )
        self.returncode: int | None = returncode


class VideoUnavailableError(ToolExecutionError):
    """Raised when the tool reports the video as private, removed, etc."""


class MalformedOutputError(_ExtractionFailure):
    """Raised when the tool exits cleanly but its payload is unparseable."""


class ToolTimeoutError(_ExtractionFailure):
    """Raised after a tool invocation exceeded its wall-clock budget.

    The child process has already been force-terminated.
    """


# --- Format handling -------------------------------------------------------

class FormatSelectionError(YtdRelayError):
    """Raised when a requested format id is unknown or unusable."""


# --- Streaming -------------------------------------------------------------

class StreamTruncatedError(_ExtractionFailure):
    """Raised when the tool fails after payload bytes were relayed.

    Cannot be turned into a structured error response: the consumer
    already received part of the stream and must close the connection.
    """

    def __init__(
        self,
        message: str,
        *,
        bytes_relayed: int = 0,
        url: str = "",
        operation: str = "download",
        diagnostic: str = "",
        hint: str | None = None,
    ) -> None:
        super().__init__(
            message,
            url=url,
            operation=operation,
            diagnostic=diagnostic,
            hint=hint,
        )
        self.bytes_relayed: int = bytes_relayed


def append_ytdlp_upgrade_suggestion(hint: str) -> str:
    """Append yt-dlp upgrade guidance to an existing hint text.

    The suggestion is appended only once and preserves the original
    hint content verbatim.
    """
    marker = "Also try updating yt-dlp:"
    if marker in hint:
        return hint
    return "\n".join(
        (
            hint,
            marker,
            "    pip install --upgrade yt-dlp",
        )
    )
