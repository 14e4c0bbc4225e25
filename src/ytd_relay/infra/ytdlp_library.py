"""yt-dlp Python-API implementation of :class:`~ytd_relay.core.protocols.Extractor`.

Used when the yt-dlp executable is not on PATH but the ``yt_dlp``
package is importable.  yt-dlp's API is blocking, so every call runs in
a worker thread (:func:`asyncio.to_thread`) and the event loop stays
free for other requests.

Streaming
---------
* A single-track request resolves the format's direct URL and reads it
  through yt-dlp's own networking layer (``YoutubeDL.urlopen``), one
  chunk per consumer request.
* A merge request resolves the video and audio URLs and has ffmpeg
  remux them (``-c copy``) into a pipe.

All yt-dlp exceptions are caught here and re-raised as typed
:class:`~ytd_relay.exceptions.YtdRelayError` subclasses.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from ytd_relay.core.format_filter import build_format_spec
from ytd_relay.core.models import ExtractionRequest
from ytd_relay.exceptions import (
    MalformedOutputError,
    ToolExecutionError,
    ToolTimeoutError,
    ToolUnavailableError,
)
from ytd_relay.infra.failures import classify_failure
from ytd_relay.infra.process import ProcessByteSource, spawn

logger = logging.getLogger(__name__)

# ffmpeg muxer arguments per output container; all must be writable to
# a non-seekable pipe.
_PIPE_MUXERS: dict[str, tuple[str, ...]] = {
    "mp4": ("-f", "mp4", "-movflags", "frag_keyframe+empty_moov"),
    "mkv": ("-f", "matroska"),
    "webm": ("-f", "webm"),
}


def _import_ytdlp() -> Any:
    """Import yt-dlp lazily so the package loads without it."""
    try:
        import yt_dlp
        import yt_dlp.utils
    except ModuleNotFoundError as exc:
        raise ToolUnavailableError(
            "yt-dlp is not installed. Install with: pip install yt-dlp",
        ) from exc
    return yt_dlp


def build_merge_args(
    ffmpeg: Path | str,
    video: Mapping[str, Any],
    audio: Mapping[str, Any],
    container: str,
) -> list[str]:
    """ffmpeg arguments remuxing *video* and *audio* URLs into stdout."""
    muxer = _PIPE_MUXERS.get(container.lower(), _PIPE_MUXERS["mkv"])
    args = [str(ffmpeg), "-hide_banner", "-loglevel", "error", "-nostdin"]
    for source in (video, audio):
        headers = source.get("http_headers") or {}
        if headers:
            args += [
                "-headers",
                "".join(f"{key}: {value}\r\n" for key, value in headers.items()),
            ]
        args += ["-i", str(source["url"])]
    args += ["-map", "0:v:0", "-map", "1:a:0", "-c", "copy", *muxer, "pipe:1"]
    return args


class HttpByteSource:
    """:class:`~ytd_relay.core.protocols.ByteSource` over a yt-dlp response.

    Owns the ``YoutubeDL`` instance that opened the response and closes
    both together.
    """

    def __init__(
        self,
        response: Any,
        ydl: Any,
        *,
        url: str,
        chunk_size: int = 64 * 1024,
    ) -> None:
        self._response = response
        self._ydl = ydl
        self._url = url
        self._chunk_size = chunk_size
        self._received = 0
        self._expected = _content_length(response)
        self._closed = False

    async def read(self) -> bytes:
        try:
            chunk: bytes = await asyncio.to_thread(
                self._response.read, self._chunk_size,
            )
        except Exception as exc:
            raise ToolExecutionError(
                "Reading the media stream failed.",
                url=self._url,
                operation="download",
                diagnostic=str(exc),
            ) from exc
        self._received += len(chunk)
        return chunk

    async def finish(self) -> None:
        if self._expected is not None and self._received < self._expected:
            raise ToolExecutionError(
                "The media server closed the connection early.",
                url=self._url,
                operation="download",
                diagnostic=f"received {self._received} of {self._expected} bytes",
            )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._response.close()
        finally:
            self._ydl.close()


def _content_length(response: Any) -> int | None:
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    try:
        value = headers.get("Content-Length")
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class YtDlpLibraryExtractor:
    """Concrete :class:`Extractor` backed by the yt-dlp Python API.

    This class satisfies the :class:`~ytd_relay.core.protocols.Extractor`
    protocol structurally — no explicit inheritance required.
    """

    name: str = "library"

    def __init__(
        self,
        *,
        describe_timeout: float | None = 60.0,
        chunk_size: int = 64 * 1024,
        ffmpeg_location: Path | str | None = None,
    ) -> None:
        self._describe_timeout = describe_timeout
        self._chunk_size = chunk_size
        self._ffmpeg_location = ffmpeg_location

    @staticmethod
    def _build_opts(**overrides: Any) -> dict[str, Any]:
        """Return yt-dlp options for extraction without writing files."""
        opts: dict[str, Any] = {
            "quiet": True,
            "no_warnings": True,
            "no_color": True,
            "noplaylist": True,
            # Do not write any files to disk.
            "skip_download": True,
        }
        opts.update(overrides)
        return opts

    # ------------------------------------------------------------------
    # Protocol methods
    # ------------------------------------------------------------------

    async def describe(self, url: str) -> dict[str, Any]:
        """Extract metadata for *url* without downloading.

        A timed-out extraction cannot be interrupted inside its worker
        thread; the caller is released and the thread finishes on its
        own.
        """
        yt_dlp = _import_ytdlp()

        def _run() -> dict[str, Any]:
            with yt_dlp.YoutubeDL(self._build_opts()) as ydl:
                return self._extract(yt_dlp, ydl, url, operation="describe")

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(_run), timeout=self._describe_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ToolTimeoutError(
                f"yt-dlp did not finish within {self._describe_timeout:g}s.",
                url=url,
                operation="describe",
            ) from exc

    async def open_stream(
        self, request: ExtractionRequest,
    ) -> HttpByteSource | ProcessByteSource:
        yt_dlp = _import_ytdlp()
        spec = build_format_spec(request.format_id, request.ext, merge=request.merge)
        ydl = yt_dlp.YoutubeDL(self._build_opts(format=spec))
        try:
            info = await asyncio.wait_for(
                asyncio.to_thread(
                    self._extract, yt_dlp, ydl, request.url, operation="download",
                ),
                timeout=self._describe_timeout,
            )
            requested = info.get("requested_formats")
            pair = request.merge and isinstance(requested, list) and len(requested) == 2
            if not pair:
                # The response takes ownership of ydl from here on.
                return await asyncio.to_thread(self._open_direct, ydl, info, request)
        except asyncio.TimeoutError as exc:
            ydl.close()
            raise ToolTimeoutError(
                "yt-dlp did not resolve the media URL in time.",
                url=request.url,
                operation="download",
            ) from exc
        except BaseException:
            ydl.close()
            raise

        ydl.close()
        return await self._open_merge(request, requested)

    # ------------------------------------------------------------------
    # Internals (worker-thread side)
    # ------------------------------------------------------------------

    @staticmethod
    def _extract(yt_dlp: Any, ydl: Any, url: str, *, operation: str) -> dict[str, Any]:
        try:
            info: Any = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as exc:
            raise classify_failure(str(exc), url=url, operation=operation) from exc
        except Exception as exc:
            raise ToolExecutionError(
                f"Unexpected yt-dlp error: {exc}",
                url=url,
                operation=operation,
                diagnostic=repr(exc),
            ) from exc

        if not isinstance(info, dict):
            raise MalformedOutputError(
                "yt-dlp returned no metadata for the given URL.",
                url=url,
                operation=operation,
                hint="The URL may not point to a valid video.",
            )
        # Plain JSON-compatible copy, isolated from yt-dlp internals.
        return dict(ydl.sanitize_info(info))

    def _open_direct(
        self,
        ydl: Any,
        info: Mapping[str, Any],
        request: ExtractionRequest,
    ) -> HttpByteSource:
        media_url = info.get("url")
        if not isinstance(media_url, str) or not media_url:
            raise MalformedOutputError(
                "yt-dlp did not resolve a direct media URL.",
                url=request.url,
                operation="download",
            )
        from yt_dlp.networking import Request

        headers = dict(info.get("http_headers") or {})
        try:
            response = ydl.urlopen(Request(media_url, headers=headers))
        except Exception as exc:
            raise ToolExecutionError(
                "The media server refused the download.",
                url=request.url,
                operation="download",
                diagnostic=str(exc),
            ) from exc
        return HttpByteSource(
            response, ydl, url=request.url, chunk_size=self._chunk_size,
        )

    async def _open_merge(
        self,
        request: ExtractionRequest,
        requested: Sequence[Mapping[str, Any]],
    ) -> ProcessByteSource:
        if self._ffmpeg_location is None:
            raise ToolUnavailableError(
                "ffmpeg is required to merge audio and video tracks.",
            )
        video, audio = requested
        if video.get("vcodec") == "none":
            video, audio = audio, video
        try:
            argv = build_merge_args(
                self._ffmpeg_location, video, audio, request.merge_format,
            )
        except KeyError as exc:
            raise MalformedOutputError(
                "yt-dlp did not resolve URLs for both tracks.",
                url=request.url,
                operation="download",
            ) from exc
        process = await spawn(argv)
        logger.debug("ffmpeg merging pid=%s url=%s", process.pid, request.url)
        return ProcessByteSource(
            process,
            label="ffmpeg",
            url=request.url,
            chunk_size=self._chunk_size,
        )
