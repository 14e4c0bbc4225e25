"""Subprocess-backed implementation of :class:`~ytd_relay.core.protocols.Extractor`.

Runs the ``yt-dlp`` executable: ``--dump-json`` for metadata and
``-o -`` for streaming media to stdout.  Exit codes and stderr are
interpreted here and re-raised as typed
:class:`~ytd_relay.exceptions.YtdRelayError` subclasses — nothing raw
escapes the infrastructure boundary.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from ytd_relay.core.format_filter import build_format_spec
from ytd_relay.core.models import ExtractionRequest
from ytd_relay.exceptions import MalformedOutputError
from ytd_relay.infra.failures import classify_failure
from ytd_relay.infra.process import ProcessByteSource, run_to_completion, spawn

logger = logging.getLogger(__name__)


class YtDlpProcessExtractor:
    """Concrete :class:`Extractor` driving the yt-dlp executable.

    Usage::

        extractor = YtDlpProcessExtractor(("yt-dlp",))
        info = await extractor.describe("https://www.youtube.com/watch?v=...")

    Parameters
    ----------
    command:
        Argument prefix that starts yt-dlp, e.g. ``("yt-dlp",)`` or
        ``("python", "-m", "yt_dlp")``.
    describe_timeout:
        Wall-clock budget for a metadata dump, in seconds.
    chunk_size:
        Maximum bytes returned per read of the media stream.
    ffmpeg_location:
        Passed to yt-dlp for merges when known.
    """

    name: str = "process"

    def __init__(
        self,
        command: Sequence[str] = ("yt-dlp",),
        *,
        describe_timeout: float | None = 60.0,
        chunk_size: int = 64 * 1024,
        ffmpeg_location: Path | str | None = None,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command: tuple[str, ...] = tuple(command)
        self._describe_timeout = describe_timeout
        self._chunk_size = chunk_size
        self._ffmpeg_location = ffmpeg_location

    @property
    def command(self) -> tuple[str, ...]:
        return self._command

    # ------------------------------------------------------------------
    # Argument construction (pure)
    # ------------------------------------------------------------------

    def build_describe_args(self, url: str) -> list[str]:
        return [
            *self._command,
            "--dump-json",
            "--no-playlist",
            "--no-warnings",
            "--",
            url,
        ]

    def build_download_args(self, request: ExtractionRequest) -> list[str]:
        """Arguments streaming *request* to stdout.

        A merge request pairs the format with the best audio track and
        names the output container; otherwise exactly the selected
        format is requested with no merge directive.
        """
        args = [
            *self._command,
            "-f",
            build_format_spec(request.format_id, request.ext, merge=request.merge),
        ]
        if request.merge:
            args += ["--merge-output-format", request.merge_format]
            if self._ffmpeg_location is not None:
                args += ["--ffmpeg-location", str(self._ffmpeg_location)]
        args += [
            "-o",
            "-",
            "--no-playlist",
            "--no-part",
            "--no-warnings",
            "--newline",
            "--",
            request.url,
        ]
        return args

    # ------------------------------------------------------------------
    # Protocol methods
    # ------------------------------------------------------------------

    async def describe(self, url: str) -> dict[str, Any]:
        """Dump metadata for *url* as a dict.

        Raises
        ------
        ToolUnavailableError
            When the executable cannot be started.
        ToolTimeoutError
            When the dump exceeds the describe timeout.
        VideoUnavailableError
            When yt-dlp reports the video as private, removed, etc.
        ToolExecutionError
            For any other nonzero exit.
        MalformedOutputError
            When yt-dlp exits cleanly but stdout is not a JSON object.
        """
        run = await run_to_completion(
            self.build_describe_args(url),
            timeout=self._describe_timeout,
            url=url,
            operation="describe",
        )
        if run.returncode != 0:
            raise classify_failure(
                run.stderr,
                url=url,
                operation="describe",
                returncode=run.returncode,
            )

        try:
            info: Any = json.loads(run.stdout)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise MalformedOutputError(
                "yt-dlp returned output that is not valid JSON.",
                url=url,
                operation="describe",
                diagnostic=run.stdout[:500].decode("utf-8", "replace"),
            ) from exc

        if not isinstance(info, dict):
            raise MalformedOutputError(
                "yt-dlp returned an unexpected data structure.",
                url=url,
                operation="describe",
                diagnostic=type(info).__name__,
            )
        return info

    async def open_stream(self, request: ExtractionRequest) -> ProcessByteSource:
        """Spawn yt-dlp writing *request* to stdout and return at once."""
        process = await spawn(self.build_download_args(request))
        logger.debug("yt-dlp streaming pid=%s url=%s", process.pid, request.url)
        return ProcessByteSource(
            process,
            label="yt-dlp",
            url=request.url,
            chunk_size=self._chunk_size,
            classify=classify_failure,
        )
