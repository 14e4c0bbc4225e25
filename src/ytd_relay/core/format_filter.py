"""Pure format deduplication, ranking, and selection logic.

Every function in this module is a **pure** transformation — no I/O,
no side effects, fully deterministic, and trivially unit-testable.

Pipeline order (enforced by :func:`select_formats`):

1. **Deduplicate** — collapse repeated ``format_id`` values.
2. **Partition** — split by kind: combined, video-only, audio-only.
3. **Sort** — combined and video-only by height desc (stable).
4. **Gate** — drop video-only formats when merging is impossible.
5. **Cap** — bound each partition and concatenate.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ytd_relay.core.models import FormatDescriptor, FormatKind


@dataclass(frozen=True, slots=True)
class FormatLimits:
    """Per-kind display caps that bound response size."""

    combined: int = 10
    video_only: int = 5
    audio_only: int = 3


DEFAULT_LIMITS = FormatLimits()


# ---------------------------------------------------------------------------
# 1. Deduplicate
# ---------------------------------------------------------------------------

def deduplicate_formats(
    formats: Sequence[FormatDescriptor],
) -> list[FormatDescriptor]:
    """Remove repeated ``format_id`` entries; the first occurrence wins."""
    seen: set[str] = set()
    result: list[FormatDescriptor] = []
    for fmt in formats:
        if fmt.format_id not in seen:
            seen.add(fmt.format_id)
            result.append(fmt)
    return result


# ---------------------------------------------------------------------------
# 2. Partition
# ---------------------------------------------------------------------------

def partition_by_kind(
    formats: Sequence[FormatDescriptor],
) -> dict[FormatKind, list[FormatDescriptor]]:
    """Split *formats* by kind, preserving relative order inside each."""
    groups: dict[FormatKind, list[FormatDescriptor]] = {
        kind: [] for kind in FormatKind
    }
    for fmt in formats:
        groups[fmt.kind].append(fmt)
    return groups


# ---------------------------------------------------------------------------
# 3. Sort
# ---------------------------------------------------------------------------

def _height_key(fmt: FormatDescriptor) -> tuple[int, int]:
    """Known heights first, tallest first; unknown heights last."""
    if fmt.height is None:
        return (1, 0)
    return (0, -fmt.height)


def sort_by_height(formats: Sequence[FormatDescriptor]) -> list[FormatDescriptor]:
    """Sort by height descending; equal heights keep source order."""
    return sorted(formats, key=_height_key)


# ---------------------------------------------------------------------------
# Composite pipeline
# ---------------------------------------------------------------------------

def select_formats(
    formats: Sequence[FormatDescriptor],
    *,
    merge_capable: bool,
    limits: FormatLimits = DEFAULT_LIMITS,
) -> list[FormatDescriptor]:
    """Run the full deduplicate → partition → sort → gate → cap pipeline.

    The result lists combined formats, then video-only formats (only
    when *merge_capable*), then audio-only formats.  Returns an empty
    list when nothing survives.
    """
    groups = partition_by_kind(deduplicate_formats(formats))

    combined = sort_by_height(groups[FormatKind.BOTH])[: limits.combined]
    video_only: list[FormatDescriptor] = []
    if merge_capable:
        video_only = sort_by_height(groups[FormatKind.VIDEO])[: limits.video_only]
    audio_only = groups[FormatKind.AUDIO][: limits.audio_only]

    return [*combined, *video_only, *audio_only]


# ---------------------------------------------------------------------------
# Format selector strings
# ---------------------------------------------------------------------------

def build_format_spec(format_id: str | None, ext: str = "", *, merge: bool) -> str:
    """Build the yt-dlp format selector for a download.

    Rules
    -----
    * Without *merge* the selector is exactly *format_id* (``best`` when
      no id was chosen) — no audio pairing.
    * With *merge*, ``mp4`` video prefers ``m4a`` audio and ``webm``
      video prefers ``webm`` audio, each falling back to any audio.
    * Unknown containers pair with the best audio of any container.
    """
    if format_id is None:
        return "bestvideo*+bestaudio/best" if merge else "best"
    if not merge:
        return format_id

    normalized_ext = ext.lower()
    if normalized_ext == "mp4":
        return f"{format_id}+bestaudio[ext=m4a]/{format_id}+bestaudio"
    if normalized_ext == "webm":
        return f"{format_id}+bestaudio[ext=webm]/{format_id}+bestaudio"
    return f"{format_id}+bestaudio"
