"""Smoke tests — verify package wiring.

These tests prove that:
* The CLI entry point is importable and callable.
* The exception hierarchy is correctly structured.
* Version is accessible.
* Exit codes are defined.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from ytd_relay import __version__
from ytd_relay.cli import exit_codes
from ytd_relay.cli.app import main
from ytd_relay.exceptions import (
    ConfigurationError,
    DependencyMissingError,
    FormatSelectionError,
    InvalidURLError,
    MalformedOutputError,
    StreamTruncatedError,
    ToolExecutionError,
    ToolTimeoutError,
    ToolUnavailableError,
    VideoUnavailableError,
    YtdRelayError,
    append_ytdlp_upgrade_suggestion,
)


# ---------------------------------------------------------------------------
# Version
# ---------------------------------------------------------------------------

class TestVersion:
    def test_version_is_string(self) -> None:
        assert isinstance(__version__, str)

    def test_version_is_semver_like(self) -> None:
        parts = __version__.split(".")
        assert len(parts) == 3
        assert all(part.isdigit() for part in parts)


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------

class TestExceptions:
    @pytest.mark.parametrize(
        "exc_class",
        [
            InvalidURLError,
            ConfigurationError,
            DependencyMissingError,
            ToolUnavailableError,
            ToolExecutionError,
            VideoUnavailableError,
            MalformedOutputError,
            ToolTimeoutError,
            FormatSelectionError,
            StreamTruncatedError,
        ],
    )
    def test_all_exceptions_inherit_from_base(
        self, exc_class: type[YtdRelayError]
    ) -> None:
        assert issubclass(exc_class, YtdRelayError)

    def test_video_unavailable_is_execution_error(self) -> None:
        assert issubclass(VideoUnavailableError, ToolExecutionError)

    def test_hint_is_stored(self) -> None:
        err = YtdRelayError("boom", hint="try this")
        assert str(err) == "boom"
        assert err.hint == "try this"

    def test_hint_defaults_to_none(self) -> None:
        assert YtdRelayError("boom").hint is None

    def test_execution_error_carries_context(self) -> None:
        err = ToolExecutionError(
            "Could not fetch.",
            url="https://x.com/a/status/1",
            operation="describe",
            diagnostic="ERROR: rate limited",
            returncode=1,
        )
        assert str(err) == "Could not fetch."
        assert err.url == "https://x.com/a/status/1"
        assert err.operation == "describe"
        assert err.diagnostic == "ERROR: rate limited"
        assert err.returncode == 1

    def test_truncated_error_defaults_to_download(self) -> None:
        err = StreamTruncatedError("cut", bytes_relayed=42)
        assert err.operation == "download"
        assert err.bytes_relayed == 42

    def test_upgrade_suggestion_appended_once(self) -> None:
        hint = append_ytdlp_upgrade_suggestion("Retry later.")
        assert hint.startswith("Retry later.")
        assert "pip install --upgrade yt-dlp" in hint
        assert append_ytdlp_upgrade_suggestion(hint) == hint


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

class TestExitCodes:
    def test_success_is_zero(self) -> None:
        assert exit_codes.SUCCESS == 0

    def test_general_error_is_one(self) -> None:
        assert exit_codes.GENERAL_ERROR == 1

    def test_unexpected_error_is_two(self) -> None:
        assert exit_codes.UNEXPECTED_ERROR == 2

    def test_stream_truncated_is_three(self) -> None:
        assert exit_codes.STREAM_TRUNCATED == 3

    def test_keyboard_interrupt_is_130(self) -> None:
        assert exit_codes.KEYBOARD_INTERRUPT == 130


# ---------------------------------------------------------------------------
# CLI routing
# ---------------------------------------------------------------------------

class TestCLIRouting:
    def test_no_args_returns_success(self) -> None:
        """No arguments should print help and exit 0."""
        assert main([]) == exit_codes.SUCCESS

    def test_version_flag(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0

    @patch("ytd_relay.cli.app.configure_logging")
    @patch("ytd_relay.cli.app._handle_doctor", return_value=exit_codes.SUCCESS)
    def test_doctor_routes_to_doctor(self, mock_doc: object, _mock_log: object) -> None:
        assert main(["doctor"]) == exit_codes.SUCCESS
        mock_doc.assert_called_once()  # type: ignore[attr-defined]

    @patch("ytd_relay.cli.app.configure_logging")
    def test_url_routes_to_url_handler(
        self, _mock_log: object, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        from ytd_relay.cli import app as app_module

        seen: list[str] = []

        def _fake_handler(args: object) -> int:
            seen.append(args.target)  # type: ignore[attr-defined]
            return exit_codes.SUCCESS

        monkeypatch.setattr(app_module, "_handle_url", _fake_handler)
        code = main(["https://www.youtube.com/watch?v=dQw4w9WgXcQ"])
        assert code == exit_codes.SUCCESS
        assert seen == ["https://www.youtube.com/watch?v=dQw4w9WgXcQ"]
