"""Core download service — turns a format choice into a live relay.

This service delegates byte production to an
:class:`~ytd_relay.core.protocols.Extractor` injected at construction
time.  It is responsible for:

* Resolving the requested ``format_id`` against the (cached) describe
  result.
* Deciding whether the selected format needs an audio merge.
* Opening the stream and priming it so that failures before the first
  byte still surface as clean errors.
* Ensuring only :class:`~ytd_relay.exceptions.YtdRelayError` subclasses
  escape.

Guarantees
----------
* Pure orchestration — no filesystem access, no ``print()``.
* No yt-dlp import.
"""

from __future__ import annotations

import logging

from ytd_relay.core.metadata_service import MetadataService, validate_url
from ytd_relay.core.models import ExtractionRequest
from ytd_relay.core.protocols import ByteSource, Extractor
from ytd_relay.core.stream_proxy import StreamRelay
from ytd_relay.exceptions import (
    FormatSelectionError,
    ToolExecutionError,
    YtdRelayError,
    append_ytdlp_upgrade_suggestion,
)

logger = logging.getLogger(__name__)


class DownloadService:
    """Start downloads for formats previously offered by *metadata*.

    Parameters
    ----------
    extractor:
        Any object satisfying the :class:`Extractor` protocol.
    metadata:
        The describe service; used to look up the selected descriptor
        (normally a cache hit).
    merge_format:
        Container requested when two tracks are remuxed.
    first_byte_timeout:
        Seconds to wait for the first payload byte, ``None`` to wait
        indefinitely.
    """

    def __init__(
        self,
        extractor: Extractor,
        metadata: MetadataService,
        *,
        merge_format: str = "mp4",
        first_byte_timeout: float | None = 60.0,
    ) -> None:
        self._extractor: Extractor = extractor
        self._metadata: MetadataService = metadata
        self._merge_format: str = merge_format
        self._first_byte_timeout: float | None = first_byte_timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def begin_download(
        self,
        url: str,
        format_id: str | None = None,
        *,
        merge: bool | None = None,
    ) -> StreamRelay:
        """Open a primed :class:`StreamRelay` for *format_id* of *url*.

        Parameters
        ----------
        url:
            The video page URL.
        format_id:
            A ``format_id`` from the describe result.  ``None`` lets the
            extractor pick the best available variant.
        merge:
            Force the merge decision.  By default a merge is requested
            exactly when the selected format is video-only (or, with no
            format id, whenever the environment can merge).

        Raises
        ------
        InvalidURLError
            If *url* is empty or malformed.
        FormatSelectionError
            If the format is unknown or needs a merge this process
            cannot perform.
        ToolUnavailableError, ToolExecutionError, ToolTimeoutError
            If the producer fails before the first byte.
        """
        url = validate_url(url)
        request = await self._plan(url, format_id, merge)
        logger.debug(
            "opening stream: %s format=%s merge=%s",
            url, request.format_id, request.merge,
        )

        source = await self._open(request)
        relay = StreamRelay(
            source, url=url, first_byte_timeout=self._first_byte_timeout,
        )
        await relay.prime()
        return relay

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def _plan(
        self,
        url: str,
        format_id: str | None,
        merge: bool | None,
    ) -> ExtractionRequest:
        merge_capable = self._metadata.merge_capable

        if format_id is None:
            wants_merge = merge_capable if merge is None else merge
            ext = ""
        else:
            format_id = format_id.strip()
            if not format_id:
                raise FormatSelectionError("Format id must not be empty.")
            media = await self._metadata.describe(url)
            descriptor = media.find_format(format_id)
            if descriptor is None:
                raise FormatSelectionError(
                    f"Format {format_id!r} is not offered for this video.",
                    hint=append_ytdlp_upgrade_suggestion(
                        "Describe the URL again and pick one of the listed formats.",
                    ),
                )
            wants_merge = descriptor.needs_merge if merge is None else merge
            ext = descriptor.ext

        if wants_merge and not merge_capable:
            raise FormatSelectionError(
                "This format has no audio track and ffmpeg is not available to merge one.",
                hint="Install ffmpeg, or pick a format that already contains audio.",
            )

        return ExtractionRequest(
            url=url,
            format_id=format_id,
            ext=ext,
            merge=wants_merge,
            merge_format=self._merge_format,
        )

    async def _open(self, request: ExtractionRequest) -> ByteSource:
        """Call the extractor and ensure only our exceptions escape."""
        try:
            return await self._extractor.open_stream(request)
        except YtdRelayError:
            raise
        except Exception as exc:
            raise ToolExecutionError(
                f"Unexpected extractor error: {exc}",
                url=request.url,
                operation="download",
                diagnostic=repr(exc),
            ) from exc
