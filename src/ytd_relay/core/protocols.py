"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters must satisfy.
Core code depends ONLY on these protocols — never on concrete
implementations — preserving the dependency inversion principle.

Two extractor variants satisfy :class:`Extractor` today: one spawning
the yt-dlp executable, one calling the yt-dlp Python API.  Which one is
used is decided once at startup by capability probing.
"""

from __future__ import annotations

from typing import Any, Protocol

from ytd_relay.core.models import ExtractionRequest


class ByteSource(Protocol):
    """A live, pull-driven handle on media bytes.

    The consumer asks for one chunk at a time; nothing is read ahead of
    demand beyond what the underlying pipe or socket buffers.
    """

    async def read(self) -> bytes:
        """Wait for the next chunk.  ``b""`` signals end of stream."""
        ...  # pragma: no cover

    async def finish(self) -> None:
        """Confirm the producer terminated cleanly after end of stream.

        Raises
        ------
        ToolExecutionError
            When the producer exited with a nonzero status.
        """
        ...  # pragma: no cover

    async def close(self) -> None:
        """Release the source, terminating any producer still running.

        Must be idempotent and safe to call from any state.
        """
        ...  # pragma: no cover


class Extractor(Protocol):
    """Contract for extraction backends.

    Implementations must map all backend-specific exceptions to
    :class:`~ytd_relay.exceptions.YtdRelayError` subclasses.
    """

    name: str
    """Short backend name used in logs and diagnostics."""

    async def describe(self, url: str) -> dict[str, Any]:
        """Return the raw metadata document for *url*.

        The returned dict follows yt-dlp's info-dict shape: ``id``,
        ``title``, ``thumbnail``, ``duration``, ``uploader`` and a
        ``formats`` list whose entries carry ``format_id``, ``ext``,
        ``vcodec``, ``acodec`` and ``height``.

        Raises
        ------
        ToolUnavailableError
            When the backend cannot be started.
        ToolExecutionError
            When the backend reports a failure.
        MalformedOutputError
            When the backend succeeded but returned garbage.
        ToolTimeoutError
            When the backend did not finish within its budget.
        """
        ...  # pragma: no cover

    async def open_stream(self, request: ExtractionRequest) -> ByteSource:
        """Start producing the bytes described by *request*.

        Returns as soon as the producer is running; it does not wait
        for the first byte.

        Raises
        ------
        ToolUnavailableError
            When the producer cannot be started.
        """
        ...  # pragma: no cover
