"""In-memory test doubles and raw-data factories shared by the test suite."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

from ytd_relay.core.models import ExtractionRequest


# ---------------------------------------------------------------------------
# Raw yt-dlp shaped data
# ---------------------------------------------------------------------------

def raw_format(
    *,
    format_id: str = "137",
    ext: str = "mp4",
    height: int | None = 1080,
    fps: int | float | None = 30,
    filesize: int | None = 50_000_000,
    vcodec: str | None = "avc1.640028",
    acodec: str | None = "none",
    **extra: Any,
) -> dict[str, Any]:
    """Factory for a raw format dict matching yt-dlp output shape."""
    d: dict[str, Any] = {
        "format_id": format_id,
        "ext": ext,
        "height": height,
        "fps": fps,
        "filesize": filesize,
        "vcodec": vcodec,
        "acodec": acodec,
    }
    d.update(extra)
    return d


def combined(format_id: str = "18", height: int | None = 360, **extra: Any) -> dict[str, Any]:
    return raw_format(
        format_id=format_id, height=height, vcodec="avc1", acodec="mp4a", **extra,
    )


def video_only(format_id: str = "137", height: int | None = 1080, **extra: Any) -> dict[str, Any]:
    return raw_format(
        format_id=format_id, height=height, vcodec="avc1", acodec="none", **extra,
    )


def audio_only(format_id: str = "140", **extra: Any) -> dict[str, Any]:
    extra.setdefault("ext", "m4a")
    return raw_format(
        format_id=format_id, height=None, fps=None, vcodec="none", acodec="mp4a", **extra,
    )


def sample_info(
    *,
    formats: list[dict[str, Any]] | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """Minimal valid info dict."""
    info: dict[str, Any] = {
        "id": "abc123",
        "title": "Sample Video",
        "thumbnail": "https://i.ytimg.com/vi/abc123/hq.jpg",
        "duration": 180,
        "uploader": "Sample Channel",
        "webpage_url": "https://www.youtube.com/watch?v=abc123",
        "formats": (
            formats
            if formats is not None
            else [combined("18", 360), video_only("137", 1080), audio_only("140")]
        ),
    }
    info.update(overrides)
    return info


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class FakeByteSource:
    """Scripted :class:`ByteSource`.

    Returns *chunks* in order, then raises *read_error* if set, else
    reports end of stream.  ``finish`` raises *finish_error* if set.
    """

    def __init__(
        self,
        chunks: Iterable[bytes] = (),
        *,
        read_error: BaseException | None = None,
        finish_error: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self.chunks = list(chunks)
        self.read_error = read_error
        self.finish_error = finish_error
        self.delay = delay
        self.reads = 0
        self.finished = False
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    async def read(self) -> bytes:
        self.reads += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.chunks:
            return self.chunks.pop(0)
        if self.read_error is not None:
            raise self.read_error
        return b""

    async def finish(self) -> None:
        self.finished = True
        if self.finish_error is not None:
            raise self.finish_error

    async def close(self) -> None:
        self.close_count += 1


class FakeExtractor:
    """Scripted :class:`Extractor` recording every call."""

    name = "fake"

    def __init__(
        self,
        info: dict[str, Any] | None = None,
        *,
        error: BaseException | None = None,
        source: FakeByteSource | None = None,
        open_error: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self.info = info if info is not None else sample_info()
        self.error = error
        self.source = source
        self.open_error = open_error
        self.delay = delay
        self.describe_calls: list[str] = []
        self.requests: list[ExtractionRequest] = []

    async def describe(self, url: str) -> dict[str, Any]:
        self.describe_calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.info

    async def open_stream(self, request: ExtractionRequest) -> FakeByteSource:
        self.requests.append(request)
        if self.open_error is not None:
            raise self.open_error
        if self.source is None:
            self.source = FakeByteSource([b"media-bytes"])
        return self.source


class FakeClock:
    """Manually advanced clock for cache tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
