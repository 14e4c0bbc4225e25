"""Tests for raw → domain normalization (core/normalizer.py).

Pure functions, no mocking needed.
"""

from __future__ import annotations

from typing import Any

import pytest

from fakes import audio_only, combined, raw_format, sample_info, video_only
from ytd_relay.core.models import FormatKind
from ytd_relay.core.normalizer import (
    build_resolved_media,
    detect_tracks,
    extract_raw_formats,
    normalize_format,
    normalize_formats,
)


# ---------------------------------------------------------------------------
# detect_tracks
# ---------------------------------------------------------------------------

class TestDetectTracks:
    @pytest.mark.parametrize(
        ("vcodec", "acodec", "expected"),
        [
            ("avc1", "mp4a", (True, True)),
            ("avc1", "none", (True, False)),
            ("none", "opus", (False, True)),
            ("none", "none", (False, False)),
            ("NONE", "mp4a", (False, True)),
        ],
    )
    def test_codec_markers(self, vcodec: str, acodec: str, expected: tuple[bool, bool]) -> None:
        assert detect_tracks({"vcodec": vcodec, "acodec": acodec}) == expected

    def test_missing_codecs_fall_back_to_ext_fields(self) -> None:
        raw = {"video_ext": "mp4", "audio_ext": "none"}
        assert detect_tracks(raw) == (True, False)

    def test_missing_everything_with_height_is_video(self) -> None:
        assert detect_tracks({"height": 720}) == (True, False)

    def test_missing_everything_without_size_is_nothing(self) -> None:
        assert detect_tracks({}) == (False, False)

    def test_empty_codec_treated_as_unreported(self) -> None:
        assert detect_tracks({"vcodec": "", "acodec": "", "audio_ext": "m4a"}) == (False, True)


# ---------------------------------------------------------------------------
# normalize_format
# ---------------------------------------------------------------------------

class TestNormalizeFormat:
    def test_video_only(self) -> None:
        fmt = normalize_format(video_only("137", 1080))
        assert fmt is not None
        assert fmt.kind is FormatKind.VIDEO
        assert fmt.height == 1080
        assert fmt.label == "1080p"
        assert fmt.fps == 30
        assert fmt.filesize == 50_000_000

    def test_audio_only_label_uses_bitrate(self) -> None:
        fmt = normalize_format(audio_only("140", abr=129.5))
        assert fmt is not None
        assert fmt.kind is FormatKind.AUDIO
        assert fmt.height is None
        assert fmt.label == "audio 129k"

    def test_format_note_used_without_height(self) -> None:
        fmt = normalize_format(combined("hd", height=None, format_note="HD"))
        assert fmt is not None
        assert fmt.label == "HD"

    def test_filesize_approx_fallback(self) -> None:
        fmt = normalize_format(video_only(filesize=None, filesize_approx=1234))
        assert fmt is not None
        assert fmt.filesize == 1234

    def test_no_tracks_dropped(self) -> None:
        assert normalize_format(raw_format(vcodec="none", acodec="none")) is None

    @pytest.mark.parametrize("format_id", [None, "", "   "])
    def test_missing_format_id_uses_position(self, format_id: Any) -> None:
        fmt = normalize_format(raw_format(format_id=format_id), 4)
        assert fmt is not None
        assert fmt.format_id == "#4"

    def test_missing_format_id_key(self) -> None:
        raw = raw_format()
        del raw["format_id"]
        fmt = normalize_format(raw)
        assert fmt is not None
        assert fmt.format_id == "#0"

    def test_numeric_format_id_stringified(self) -> None:
        fmt = normalize_format(raw_format(format_id=22))  # type: ignore[arg-type]
        assert fmt is not None
        assert fmt.format_id == "22"

    def test_missing_ext_is_unknown(self) -> None:
        raw = combined()
        del raw["ext"]
        fmt = normalize_format(raw)
        assert fmt is not None
        assert fmt.ext == "unknown"


class TestNormalizeFormats:
    def test_skips_non_mappings_and_keeps_order(self) -> None:
        formats = normalize_formats(
            [audio_only("140"), "garbage", None, combined("18"), video_only("137")],
        )
        assert [f.format_id for f in formats] == ["140", "18", "137"]

    def test_records_without_ids_keep_listing_position(self) -> None:
        formats = normalize_formats([
            {"height": 1080, "vcodec": "x", "acodec": "none"},
            {"height": 1080, "vcodec": "x", "acodec": "y"},
            {"height": None, "vcodec": "none", "acodec": "z"},
        ])
        assert [(f.format_id, f.kind.value, f.height) for f in formats] == [
            ("#0", "video", 1080),
            ("#1", "both", 1080),
            ("#2", "audio", None),
        ]

    def test_extract_raw_formats_list(self) -> None:
        info = sample_info()
        assert len(extract_raw_formats(info)) == 3

    def test_extract_raw_formats_top_level_single_format(self) -> None:
        info = {"id": "1", "format_id": "http-832", "vcodec": "avc1", "acodec": "mp4a"}
        assert extract_raw_formats(info) == [info]

    def test_extract_raw_formats_absent(self) -> None:
        assert extract_raw_formats({"id": "1", "formats": "nope"}) == []


# ---------------------------------------------------------------------------
# build_resolved_media
# ---------------------------------------------------------------------------

class TestBuildResolvedMedia:
    def test_parses_all_fields(self) -> None:
        info = sample_info(
            uploader_avatar="https://yt3.ggpht.com/a.jpg",
            view_count=1000,
            like_count=10,
            extractor_key="Youtube",
            description="desc",
        )
        media = build_resolved_media(info, [], merge_capable=True)
        assert media.title == "Sample Video"
        assert media.thumbnail_url == "https://i.ytimg.com/vi/abc123/hq.jpg"
        assert media.duration == 180
        assert media.author_name == "Sample Channel"
        assert media.author_avatar_url == "https://yt3.ggpht.com/a.jpg"
        assert media.merge_capable is True
        assert media.source_id == "abc123"
        assert media.webpage_url == "https://www.youtube.com/watch?v=abc123"
        assert media.extractor == "Youtube"
        assert media.view_count == 1000
        assert media.like_count == 10

    def test_title_falls_back_to_description(self) -> None:
        info = sample_info(title="", description="A tweet text")
        assert build_resolved_media(info, [], merge_capable=False).title == "A tweet text"

    def test_title_defaults_to_untitled(self) -> None:
        info = sample_info()
        del info["title"]
        assert build_resolved_media(info, [], merge_capable=False).title == "Untitled"

    def test_author_fallback_chain(self) -> None:
        info = sample_info(uploader=None, channel=None, uploader_id="@handle")
        assert build_resolved_media(info, [], merge_capable=False).author_name == "@handle"

    def test_author_defaults_to_unknown(self) -> None:
        info = sample_info()
        del info["uploader"]
        assert build_resolved_media(info, [], merge_capable=False).author_name == "Unknown"

    def test_missing_avatar_is_empty_string(self) -> None:
        media = build_resolved_media(sample_info(), [], merge_capable=False)
        assert media.author_avatar_url == ""

    def test_thumbnail_from_thumbnails_list(self) -> None:
        info = sample_info(
            thumbnail=None,
            thumbnails=[{"url": "https://low.jpg"}, {"url": "https://high.jpg"}],
        )
        assert build_resolved_media(info, [], merge_capable=False).thumbnail_url == "https://high.jpg"

    def test_float_duration_rounded(self) -> None:
        info = sample_info(duration=61.6)
        assert build_resolved_media(info, [], merge_capable=False).duration == 62

    def test_missing_duration_is_none(self) -> None:
        info = sample_info()
        del info["duration"]
        assert build_resolved_media(info, [], merge_capable=False).duration is None
