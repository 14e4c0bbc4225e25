"""Tests for the ``ytd-relay doctor`` command (cli/doctor.py).

All external dependencies (ffmpeg, yt-dlp) are mocked — no system
dependency, no internet.

Coverage:
* Doctor runs and returns SUCCESS when an extractor is available.
* Doctor returns GENERAL_ERROR when no yt-dlp variant can be used.
* Individual check functions return correct tuples.
* Plain-text fallback when Rich is missing.
* CLI routing dispatches to ``run_doctor``.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from ytd_relay.cli import exit_codes
from ytd_relay.config import RelaySettings
from ytd_relay.infra.ffmpeg_detector import FfmpegStatus


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _mock_ffmpeg_found() -> FfmpegStatus:
    return FfmpegStatus(
        found=True,
        path=Path("/usr/bin/ffmpeg"),
        version_hint="found at /usr/bin/ffmpeg",
        install_commands=(),
    )


def _mock_ffmpeg_missing() -> FfmpegStatus:
    return FfmpegStatus(
        found=False,
        path=None,
        version_hint="not found",
        install_commands=("winget install Gyan.FFmpeg",),
    )


def _which_only_ytdlp(name: str) -> str | None:
    return "/usr/bin/yt-dlp" if name == "yt-dlp" else None


# ---------------------------------------------------------------------------
# Individual check functions
# ---------------------------------------------------------------------------

class TestPythonVersionCheck:
    def test_returns_tuple(self) -> None:
        from ytd_relay.cli.doctor import _python_version_check

        label, value, status = _python_version_check()
        assert label == "Python"
        assert isinstance(value, str)
        assert "OK" in status or "FAIL" in status


class TestYtdlpLibraryCheck:
    @patch.dict("sys.modules", {"yt_dlp": None, "yt_dlp.version": None})
    def test_not_installed_is_warning(self) -> None:
        from ytd_relay.cli.doctor import _ytdlp_library_check

        label, value, status = _ytdlp_library_check()
        assert label == "yt-dlp (lib)"
        assert value == "not installed"
        assert "WARN" in status


class TestYtdlpExecutableCheck:
    @patch("ytd_relay.cli.doctor.shutil.which", return_value="/usr/local/bin/yt-dlp")
    def test_found(self, _mock: MagicMock) -> None:
        from ytd_relay.cli.doctor import _ytdlp_executable_check

        label, value, status = _ytdlp_executable_check(RelaySettings())
        assert label == "yt-dlp (exe)"
        assert value == "/usr/local/bin/yt-dlp"
        assert "OK" in status

    @patch("ytd_relay.cli.doctor.shutil.which", return_value=None)
    def test_missing_is_warning(self, mock_which: MagicMock) -> None:
        from ytd_relay.cli.doctor import _ytdlp_executable_check

        settings = RelaySettings(ytdlp_command=("/opt/bin/yt-dlp", "--ignore-config"))
        _label, value, status = _ytdlp_executable_check(settings)
        assert value == "not found"
        assert "WARN" in status
        mock_which.assert_called_once_with("/opt/bin/yt-dlp")


class TestFfmpegCheck:
    def test_found(self) -> None:
        from ytd_relay.cli.doctor import _ffmpeg_check

        label, value, status = _ffmpeg_check(_mock_ffmpeg_found())
        assert label == "ffmpeg"
        assert value == str(Path("/usr/bin/ffmpeg"))
        assert "OK" in status

    def test_missing(self) -> None:
        from ytd_relay.cli.doctor import _ffmpeg_check

        label, value, status = _ffmpeg_check(_mock_ffmpeg_missing())
        assert label == "ffmpeg"
        assert "no merging" in value
        assert "WARN" in status


class TestBackendCheck:
    @patch("ytd_relay.bootstrap.shutil.which", side_effect=_which_only_ytdlp)
    def test_process_selected(self, _mock: MagicMock) -> None:
        from ytd_relay.cli.doctor import _backend_check

        label, value, status = _backend_check(RelaySettings(), _mock_ffmpeg_found())
        assert label == "Backend"
        assert value == "process (auto)"
        assert "OK" in status

    @patch("ytd_relay.bootstrap.importlib.util.find_spec", return_value=None)
    @patch("ytd_relay.bootstrap.shutil.which", return_value=None)
    def test_nothing_available_fails(self, _which: MagicMock, _spec: MagicMock) -> None:
        from ytd_relay.cli.doctor import _backend_check

        _label, value, status = _backend_check(RelaySettings(), _mock_ffmpeg_found())
        assert "not found" in value
        assert "FAIL" in status


class TestOsCheck:
    def test_returns_tuple(self) -> None:
        from ytd_relay.cli.doctor import _os_check

        label, value, status = _os_check()
        assert label == "OS"
        assert isinstance(value, str)
        assert "OK" in status

    @patch("ytd_relay.cli.doctor.platform.machine", return_value="arm64")
    @patch("ytd_relay.cli.doctor.platform.release", return_value="23.4.0")
    @patch("ytd_relay.cli.doctor.platform.system", return_value="Darwin")
    def test_darwin_is_displayed_as_macos(
        self,
        _mock_system: MagicMock,
        _mock_release: MagicMock,
        _mock_machine: MagicMock,
    ) -> None:
        from ytd_relay.cli.doctor import _os_check

        _label, value, _status = _os_check()
        assert "macOS" in value
        assert "Darwin" not in value


class TestYtdrelayVersionCheck:
    def test_returns_current_version(self) -> None:
        from ytd_relay.cli.doctor import _ytdrelay_version_check
        from ytd_relay.version import __version__

        label, value, status = _ytdrelay_version_check()
        assert label == "ytd-relay"
        assert value == __version__
        assert "OK" in status


class TestCollectChecks:
    @patch("ytd_relay.bootstrap.shutil.which", side_effect=_which_only_ytdlp)
    def test_row_order(self, _mock: MagicMock) -> None:
        from ytd_relay.cli.doctor import collect_checks

        labels = [label for label, _, _ in collect_checks(RelaySettings(), _mock_ffmpeg_found())]
        assert labels == [
            "ytd-relay", "Python", "yt-dlp (lib)", "yt-dlp (exe)", "ffmpeg", "Backend", "OS",
        ]


# ---------------------------------------------------------------------------
# run_doctor integration
# ---------------------------------------------------------------------------

class TestRunDoctor:
    @patch("ytd_relay.bootstrap.shutil.which", side_effect=_which_only_ytdlp)
    @patch("ytd_relay.cli.doctor.detect_ffmpeg")
    def test_all_pass_returns_success(self, mock_detect: MagicMock, _which: MagicMock) -> None:
        from ytd_relay.cli.doctor import run_doctor

        mock_detect.return_value = _mock_ffmpeg_found()
        assert run_doctor(RelaySettings()) == exit_codes.SUCCESS

    @patch("ytd_relay.bootstrap.shutil.which", side_effect=_which_only_ytdlp)
    @patch("ytd_relay.cli.doctor.detect_ffmpeg")
    def test_ffmpeg_missing_still_succeeds(self, mock_detect: MagicMock, _which: MagicMock) -> None:
        """ffmpeg missing is a WARN, not a FAIL; merging is simply disabled."""
        from ytd_relay.cli.doctor import run_doctor

        mock_detect.return_value = _mock_ffmpeg_missing()
        assert run_doctor(RelaySettings()) == exit_codes.SUCCESS

    @patch("ytd_relay.bootstrap.importlib.util.find_spec", return_value=None)
    @patch("ytd_relay.bootstrap.shutil.which", return_value=None)
    @patch("ytd_relay.cli.doctor.detect_ffmpeg")
    def test_no_extractor_returns_general_error(
        self, mock_detect: MagicMock, _which: MagicMock, _spec: MagicMock,
    ) -> None:
        from ytd_relay.cli.doctor import run_doctor

        mock_detect.return_value = _mock_ffmpeg_found()
        assert run_doctor(RelaySettings()) == exit_codes.GENERAL_ERROR

    @patch("ytd_relay.cli.doctor.detect_ffmpeg")
    def test_configured_ffmpeg_location_probed(self, mock_detect: MagicMock) -> None:
        from ytd_relay.cli.doctor import run_doctor

        mock_detect.return_value = _mock_ffmpeg_found()
        run_doctor(RelaySettings(ffmpeg_location="/opt/ffmpeg"))
        mock_detect.assert_called_once_with("/opt/ffmpeg")

    @patch("ytd_relay.cli.doctor.platform.machine", return_value="arm64")
    @patch("ytd_relay.cli.doctor.platform.release", return_value="23.4.0")
    @patch("ytd_relay.cli.doctor.platform.system", return_value="Darwin")
    @patch("ytd_relay.cli.doctor.detect_ffmpeg")
    @patch.dict("sys.modules", {"rich": None, "rich.table": None, "rich.console": None})
    def test_darwin_plain_output_shows_macos_and_brew_guidance(
        self,
        mock_detect: MagicMock,
        _mock_system: MagicMock,
        _mock_release: MagicMock,
        _mock_machine: MagicMock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        from ytd_relay.cli.doctor import run_doctor

        mock_detect.return_value = FfmpegStatus(
            found=False,
            path=None,
            version_hint="not found",
            install_commands=("brew install ffmpeg",),
        )

        _ = run_doctor(RelaySettings())
        captured = capsys.readouterr()
        assert "macOS" in captured.err
        assert "brew install ffmpeg" in captured.err
        assert captured.out == ""


# ---------------------------------------------------------------------------
# CLI routing
# ---------------------------------------------------------------------------

class TestDoctorRouting:
    @patch("ytd_relay.cli.app.configure_logging")
    @patch("ytd_relay.cli.doctor.run_doctor", return_value=exit_codes.SUCCESS)
    def test_main_dispatches_doctor(self, mock_run: MagicMock, _logging: MagicMock) -> None:
        from ytd_relay.cli.app import main

        assert main(["doctor"]) == exit_codes.SUCCESS
        mock_run.assert_called_once()
        (settings,) = mock_run.call_args.args
        assert isinstance(settings, RelaySettings)

    @patch("ytd_relay.cli.app.configure_logging")
    @patch("ytd_relay.cli.doctor.run_doctor", return_value=exit_codes.GENERAL_ERROR)
    def test_doctor_is_case_insensitive(self, mock_run: MagicMock, _logging: MagicMock) -> None:
        from ytd_relay.cli.app import main

        assert main(["DOCTOR"]) == exit_codes.GENERAL_ERROR
        mock_run.assert_called_once()
