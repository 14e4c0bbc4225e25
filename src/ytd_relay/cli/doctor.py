"""``ytd-relay doctor`` — environment diagnostics command.

Gathers system information and renders a Rich table summarising
whether the runtime environment can resolve and relay media: which
yt-dlp variants are installed, which one would be used, and whether
ffmpeg makes merging possible.

This module lives in the CLI layer — it may import from ``infra``,
``core`` and ``bootstrap``, and it renders via Rich.  No business logic
resides here; it purely collects and displays diagnostic data.
"""

from __future__ import annotations

import platform
import shutil
import sys

from ytd_relay.bootstrap import select_extractor
from ytd_relay.cli import exit_codes
from ytd_relay.cli.console import console
from ytd_relay.config import RelaySettings
from ytd_relay.exceptions import ToolUnavailableError
from ytd_relay.infra.ffmpeg_detector import FfmpegStatus, detect_ffmpeg
from ytd_relay.version import __version__

Check = tuple[str, str, str]


# ---------------------------------------------------------------------------
# Diagnostic collectors
# ---------------------------------------------------------------------------

def _python_version_check() -> Check:
    """Return (label, value, status) for the Python version row."""
    version = platform.python_version()
    ok = sys.version_info[:2] >= (3, 10)
    status = "[green]OK[/green]" if ok else "[red]FAIL (>=3.10 required)[/red]"
    return "Python", version, status


def _ytdlp_library_check() -> Check:
    """Return (label, value, status) for the yt-dlp Python package row."""
    try:
        from yt_dlp.version import __version__ as ydl_ver

        return "yt-dlp (lib)", ydl_ver, "[green]OK[/green]"
    except ImportError:
        pass

    # Fallback: yt-dlp installed but version submodule unavailable.
    try:
        import yt_dlp  # noqa: F401

        return "yt-dlp (lib)", "unknown", "[green]OK[/green]"
    except ImportError:
        return "yt-dlp (lib)", "not installed", "[yellow]WARN[/yellow]"


def _ytdlp_executable_check(settings: RelaySettings) -> Check:
    """Return (label, value, status) for the yt-dlp executable row."""
    found = shutil.which(settings.ytdlp_command[0])
    if found is None:
        return "yt-dlp (exe)", "not found", "[yellow]WARN[/yellow]"
    return "yt-dlp (exe)", found, "[green]OK[/green]"


def _ffmpeg_check(status_obj: FfmpegStatus) -> Check:
    """Return (label, value, status) for the ffmpeg row."""
    if status_obj.found:
        path_str = str(status_obj.path) if status_obj.path else "found"
        return "ffmpeg", path_str, "[green]OK[/green]"
    return "ffmpeg", "not found (no merging)", "[yellow]WARN[/yellow]"


def _backend_check(settings: RelaySettings, ffmpeg: FfmpegStatus) -> Check:
    """Return (label, value, status) for the extractor selection row."""
    try:
        extractor = select_extractor(settings, ffmpeg.path)
    except ToolUnavailableError as exc:
        return "Backend", str(exc), "[red]FAIL[/red]"
    return "Backend", f"{extractor.name} ({settings.backend})", "[green]OK[/green]"


def _os_check() -> Check:
    """Return (label, value, status) for the OS row."""
    system_raw = platform.system()
    system_display = {
        "Windows": "Windows",
        "Linux": "Linux",
        "Darwin": "macOS",
    }.get(system_raw, system_raw)
    release = platform.release()
    machine = platform.machine()
    value = f"{system_display} {release} ({machine})"
    return "OS", value, "[green]OK[/green]"


def _ytdrelay_version_check() -> Check:
    """Return (label, value, status) for the ytd-relay version row."""
    return "ytd-relay", __version__, "[green]OK[/green]"


def _status_plain(status: str) -> str:
    """Convert rich-markup status to plain text."""
    if "FAIL" in status:
        return "FAIL"
    if "WARN" in status:
        return "WARN"
    if "OK" in status:
        return "OK"
    return status


def _print_plain_doctor_table(checks: list[Check]) -> None:
    """Render doctor output without Rich."""
    print("\nytd-relay doctor", file=sys.stderr)
    print("=" * 60, file=sys.stderr)
    print(f"{'Component':<14} {'Value':<34} {'Status':<8}", file=sys.stderr)
    print("-" * 60, file=sys.stderr)
    for label, value, status in checks:
        plain_status = _status_plain(status)
        print(f"{label:<14} {value:<34} {plain_status:<8}", file=sys.stderr)
    print(file=sys.stderr)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def collect_checks(settings: RelaySettings, ffmpeg: FfmpegStatus) -> list[Check]:
    """Run every diagnostic and return the table rows in display order."""
    return [
        _ytdrelay_version_check(),
        _python_version_check(),
        _ytdlp_library_check(),
        _ytdlp_executable_check(settings),
        _ffmpeg_check(ffmpeg),
        _backend_check(settings, ffmpeg),
        _os_check(),
    ]


def run_doctor(settings: RelaySettings | None = None) -> int:
    """Execute all diagnostic checks and render a Rich summary table.

    Returns
    -------
    int
        :data:`exit_codes.SUCCESS` when all critical checks pass,
        :data:`exit_codes.GENERAL_ERROR` if a critical check fails.
    """
    if settings is None:
        settings = RelaySettings.from_env()
    ffmpeg_status = detect_ffmpeg(settings.ffmpeg_location)
    checks = collect_checks(settings, ffmpeg_status)

    has_failure = any("FAIL" in status for _, _, status in checks)

    rich_available = True
    try:
        from rich.table import Table
    except ModuleNotFoundError:
        rich_available = False

    if rich_available:
        table = Table(
            title="ytd-relay doctor",
            show_header=True,
            header_style="bold cyan",
            border_style="dim",
        )
        table.add_column("Component", style="bold", min_width=12)
        table.add_column("Value", min_width=20)
        table.add_column("Status", justify="center", min_width=8)

        for label, value, status in checks:
            table.add_row(label, value, status)

        console.print()
        console.print(table)
        console.print()
    else:
        _print_plain_doctor_table(checks)

    # Show ffmpeg install guidance when missing.
    if not ffmpeg_status.found and ffmpeg_status.install_commands:
        console.print("ffmpeg is not installed; video-only formats will not be offered.")
        console.print("Install using one of the following commands:\n")
        for cmd in ffmpeg_status.install_commands:
            console.print(f"  {cmd}")
        console.print()

    if has_failure:
        console.print("Some checks failed.")
        return exit_codes.GENERAL_ERROR

    console.print("All checks passed.")
    return exit_codes.SUCCESS
