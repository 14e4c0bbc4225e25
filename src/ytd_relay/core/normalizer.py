"""Raw extractor output → domain models.

Every function here is a **pure** transformation of yt-dlp's info-dict
shape: no I/O, deterministic, tolerant of missing or mistyped fields.
Ranking and selection live in :mod:`ytd_relay.core.format_filter`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ytd_relay.core.models import FormatDescriptor, FormatKind, ResolvedMedia

ABSENT: str = "none"
"""Marker yt-dlp uses for a codec or extension that is not present."""


# ---------------------------------------------------------------------------
# Track detection
# ---------------------------------------------------------------------------

def _marker_presence(value: object) -> bool | None:
    """Interpret a codec/ext field: ``None`` means "not reported"."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text.lower() != ABSENT


def _positive_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = int(value)
    return number if number > 0 else None


def detect_tracks(raw: Mapping[str, Any]) -> tuple[bool, bool]:
    """Return ``(has_video, has_audio)`` for one raw format record.

    The codec field decides first; ``video_ext`` / ``audio_ext`` are
    consulted when the codec is not reported.  An unreported video track
    is assumed present only when the record has a picture size; an
    unreported audio track is assumed absent.
    """
    has_video = _marker_presence(raw.get("vcodec"))
    if has_video is None:
        has_video = _marker_presence(raw.get("video_ext"))
    if has_video is None:
        has_video = (
            _positive_int(raw.get("height")) is not None
            or _positive_int(raw.get("width")) is not None
        )

    has_audio = _marker_presence(raw.get("acodec"))
    if has_audio is None:
        has_audio = _marker_presence(raw.get("audio_ext"))
    if has_audio is None:
        has_audio = False

    return has_video, has_audio


# ---------------------------------------------------------------------------
# Single format
# ---------------------------------------------------------------------------

def _label(kind: FormatKind, height: int | None, raw: Mapping[str, Any]) -> str:
    if kind is not FormatKind.AUDIO and height is not None:
        return f"{height}p"
    note = raw.get("format_note")
    if isinstance(note, str) and note.strip():
        return note.strip()
    if kind is FormatKind.AUDIO:
        abr = _positive_int(raw.get("abr"))
        return f"audio {abr}k" if abr else "audio"
    return "unknown"


def normalize_format(raw: Mapping[str, Any], position: int = 0) -> FormatDescriptor | None:
    """Convert one raw format dict, or return ``None`` to drop it.

    Records with neither track are dropped.  A record without a
    ``format_id`` gets ``#<position>``, its index in the raw listing, so
    ids stay stable within one response.
    """
    format_id = raw.get("format_id")
    if format_id is None or not str(format_id).strip():
        format_id = f"#{position}"

    has_video, has_audio = detect_tracks(raw)
    kind = FormatKind.classify(has_video, has_audio)
    if kind is None:
        return None

    height = _positive_int(raw.get("height")) if has_video else None

    raw_fps = raw.get("fps")
    fps = round(raw_fps) if isinstance(raw_fps, (int, float)) and raw_fps else None

    raw_size = raw.get("filesize")
    if raw_size is None:
        raw_size = raw.get("filesize_approx")
    filesize = _positive_int(raw_size)

    return FormatDescriptor(
        format_id=str(format_id),
        ext=str(raw.get("ext") or "unknown"),
        has_video=has_video,
        has_audio=has_audio,
        height=height,
        label=_label(kind, height, raw),
        fps=fps,
        filesize=filesize,
        vcodec=str(raw.get("vcodec") or ABSENT),
        acodec=str(raw.get("acodec") or ABSENT),
    )


def normalize_formats(raw_formats: Iterable[object]) -> list[FormatDescriptor]:
    """Normalize a raw ``formats`` list, skipping malformed entries.

    Source order is preserved; ranking relies on it for tie-breaks.
    """
    result: list[FormatDescriptor] = []
    for position, entry in enumerate(raw_formats):
        if not isinstance(entry, Mapping):
            continue
        descriptor = normalize_format(entry, position)
        if descriptor is not None:
            result.append(descriptor)
    return result


def extract_raw_formats(info: Mapping[str, Any]) -> list[object]:
    """Safely pull the ``formats`` list from a raw info dict.

    Single-format extractions (common for short-form platforms) report
    the format fields at the top level instead of a ``formats`` list.
    """
    raw: object = info.get("formats")
    if isinstance(raw, list):
        return list(raw)
    if info.get("format_id") is not None:
        return [info]
    return []


# ---------------------------------------------------------------------------
# Top-level metadata
# ---------------------------------------------------------------------------

def _first_text(info: Mapping[str, Any], *keys: str, default: str = "") -> str:
    for key in keys:
        value = info.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return default


def _thumbnail(info: Mapping[str, Any]) -> str:
    direct = _first_text(info, "thumbnail")
    if direct:
        return direct
    thumbnails = info.get("thumbnails")
    if isinstance(thumbnails, list):
        # yt-dlp orders thumbnails worst to best.
        for thumb in reversed(thumbnails):
            if isinstance(thumb, Mapping) and isinstance(thumb.get("url"), str):
                return thumb["url"]
    return ""


def _optional_int(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(round(value))


def build_resolved_media(
    info: Mapping[str, Any],
    formats: Iterable[FormatDescriptor],
    *,
    merge_capable: bool,
) -> ResolvedMedia:
    """Assemble a :class:`ResolvedMedia` from an info dict and ranked formats."""
    description = _first_text(info, "description")
    return ResolvedMedia(
        title=_first_text(info, "title", default="") or description or "Untitled",
        thumbnail_url=_thumbnail(info),
        duration=_optional_int(info.get("duration")),
        author_name=_first_text(
            info, "uploader", "channel", "uploader_id", default="Unknown",
        ),
        author_avatar_url=_first_text(info, "uploader_avatar", "channel_avatar"),
        formats=tuple(formats),
        merge_capable=merge_capable,
        source_id=str(info.get("id") or ""),
        webpage_url=_first_text(info, "webpage_url", "original_url"),
        description=description,
        extractor=_first_text(info, "extractor_key", "extractor"),
        view_count=_optional_int(info.get("view_count")),
        like_count=_optional_int(info.get("like_count")),
    )
