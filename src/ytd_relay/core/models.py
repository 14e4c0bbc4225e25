"""Domain models for ytd-relay.

All models are **frozen** dataclasses — immutable value objects with no
behaviour beyond data access and a few derived properties.  They carry
zero I/O and no dependency on external packages, which is what lets the
resolution cache hand the same instance to many callers safely.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Track composition
# ---------------------------------------------------------------------------

class FormatKind(str, enum.Enum):
    """Which tracks a format carries.

    There is deliberately no ``NONE`` member: records with neither a
    video nor an audio track are dropped during normalization.
    """

    BOTH = "both"
    VIDEO = "video"
    AUDIO = "audio"

    @classmethod
    def classify(cls, has_video: bool, has_audio: bool) -> FormatKind | None:
        """Map track presence to a kind, or ``None`` for an empty record."""
        if has_video and has_audio:
            return cls.BOTH
        if has_video:
            return cls.VIDEO
        if has_audio:
            return cls.AUDIO
        return None


# ---------------------------------------------------------------------------
# Individual format descriptor
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FormatDescriptor:
    """One selectable encoding variant of a source video."""

    format_id: str
    """Extractor identifier, stable within one extraction response."""

    ext: str
    """Container extension (e.g. ``mp4``, ``webm``)."""

    has_video: bool
    has_audio: bool

    height: int | None = None
    """Vertical resolution in pixels; only used for ranking."""

    label: str = ""
    """Short human-readable quality label (``1080p``, ``audio``...)."""

    fps: int | None = None
    filesize: int | None = None
    vcodec: str = "none"
    acodec: str = "none"

    def __post_init__(self) -> None:
        if not (self.has_video or self.has_audio):
            raise ValueError(
                f"Format {self.format_id!r} carries neither video nor audio."
            )

    @property
    def kind(self) -> FormatKind:
        kind = FormatKind.classify(self.has_video, self.has_audio)
        if kind is None:
            raise ValueError(
                f"Format {self.format_id!r} carries neither video nor audio."
            )
        return kind

    @property
    def needs_merge(self) -> bool:
        """Video-only formats must be combined with a separate audio track."""
        return self.kind is FormatKind.VIDEO


# ---------------------------------------------------------------------------
# Per-URL resolution result
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ResolvedMedia:
    """Metadata and ranked formats for a single source URL."""

    title: str
    thumbnail_url: str
    duration: int | None
    """Duration in seconds, or ``None`` if unavailable."""

    author_name: str
    author_avatar_url: str
    """Empty string when the extractor does not report an avatar."""

    formats: tuple[FormatDescriptor, ...]
    """Presentation order: combined, then video-only, then audio-only."""

    merge_capable: bool
    """Whether this process can mux separate audio and video tracks."""

    source_id: str = ""
    webpage_url: str = ""
    description: str = ""
    extractor: str = ""
    view_count: int | None = None
    like_count: int | None = None

    def find_format(self, format_id: str) -> FormatDescriptor | None:
        """Return the descriptor with *format_id*, or ``None``."""
        return next(
            (fmt for fmt in self.formats if fmt.format_id == format_id),
            None,
        )


# ---------------------------------------------------------------------------
# Cache bookkeeping
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached :class:`ResolvedMedia` with its insertion time."""

    key: str
    value: ResolvedMedia
    inserted_at: float
    """Clock reading (seconds) at insertion; monotonic by default."""


# ---------------------------------------------------------------------------
# Extractor requests
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ExtractionRequest:
    """Transient description of one download invocation."""

    url: str
    format_id: str | None = None
    """``None`` lets the extractor choose the best variant."""

    ext: str = ""
    """Container of the selected format, when known."""

    merge: bool = False
    """Pair the selected format with the best audio track and remux."""

    merge_format: str = "mp4"
    """Output container requested when *merge* is set."""


# ---------------------------------------------------------------------------
# Stream lifecycle
# ---------------------------------------------------------------------------

class StreamState(str, enum.Enum):
    """States of a :class:`~ytd_relay.core.stream_proxy.StreamRelay`."""

    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED_BEFORE_FIRST_BYTE = "failed_before_first_byte"
    FAILED_AFTER_FIRST_BYTE = "failed_after_first_byte"
