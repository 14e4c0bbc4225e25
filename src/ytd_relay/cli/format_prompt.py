"""Interactive format selection UI for the CLI layer.

This module is responsible for:

* Rendering a Rich table showing the ranked formats of a
  :class:`~ytd_relay.core.models.ResolvedMedia`.
* Prompting the user to select a format via questionary arrow keys.
* Returning the selected ``format_id`` as a string.

All display-related logic lives here — no business logic, no
downloading, no metadata parsing.
"""

from __future__ import annotations

from typing import Any

from ytd_relay.cli.console import console
from ytd_relay.core.models import FormatDescriptor, FormatKind, ResolvedMedia
from ytd_relay.exceptions import DependencyMissingError, FormatSelectionError

_KIND_LABELS: dict[FormatKind, str] = {
    FormatKind.BOTH: "video+audio",
    FormatKind.VIDEO: "video only",
    FormatKind.AUDIO: "audio only",
}


def _import_questionary() -> Any:
    """Import questionary lazily for interactive selection."""
    try:
        import questionary
    except ModuleNotFoundError as exc:
        raise DependencyMissingError(
            "questionary is not installed. Install with: pip install questionary",
        ) from exc
    return questionary


def _import_rich_table() -> type[Any]:
    """Import rich table lazily for format rendering."""
    try:
        from rich.table import Table
    except ModuleNotFoundError as exc:
        raise DependencyMissingError(
            "rich is not installed. Install with: pip install rich",
        ) from exc
    return Table


# ---------------------------------------------------------------------------
# Presentation helpers (pure transforms — no I/O themselves)
# ---------------------------------------------------------------------------

def format_filesize(filesize: int | None) -> str:
    """Convert bytes to a human-readable MB string, or ``"Unknown"``."""
    if filesize is None:
        return "Unknown"
    mb = filesize / (1024 * 1024)
    return f"{mb:.1f} MB"


def format_duration(duration: int | None) -> str:
    """Render seconds as ``"1h 02m 03s"`` / ``"4m 05s"``, or ``"Unknown"``."""
    if duration is None:
        return "Unknown"
    minutes, seconds = divmod(duration, 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {seconds:02d}s"
    return f"{minutes}m {seconds:02d}s"


def _quality(fmt: FormatDescriptor) -> str:
    quality = fmt.label or (f"{fmt.height}p" if fmt.height else "Unknown")
    if fmt.fps and fmt.has_video:
        quality = f"{quality} {fmt.fps}fps"
    return quality


def _merge_note(fmt: FormatDescriptor) -> str:
    return "+ best audio" if fmt.needs_merge else ""


def build_choice_label(index: int, fmt: FormatDescriptor) -> str:
    """Build the single-line label shown in the questionary selector.

    Format: ``"  1.  1080p 30fps    video only   mp4    150.3 MB"``
    """
    return (
        f"  {index + 1}.  {_quality(fmt):<14} {_KIND_LABELS[fmt.kind]:<12} "
        f"{fmt.ext:<6} {format_filesize(fmt.filesize)} {_merge_note(fmt)}"
    ).rstrip()


# ---------------------------------------------------------------------------
# Rich table display
# ---------------------------------------------------------------------------

def display_format_table(media: ResolvedMedia) -> None:
    """Print the media header and a Rich table of its formats."""
    table_class = _import_rich_table()

    console.print()
    console.print(f"[bold cyan]Title:[/bold cyan]    {media.title}")
    console.print(f"[bold cyan]Author:[/bold cyan]   {media.author_name}")
    if media.duration is not None:
        console.print(f"[bold cyan]Duration:[/bold cyan] {format_duration(media.duration)}")
    if not media.merge_capable:
        console.print("[dim]ffmpeg not found: video-only formats are hidden.[/dim]")
    console.print()

    table = table_class(
        title="Available Formats",
        show_header=True,
        header_style="bold magenta",
        border_style="dim",
    )
    table.add_column("#", justify="right", style="dim", width=4)
    table.add_column("ID", justify="left", min_width=6)
    table.add_column("Kind", justify="left", min_width=11)
    table.add_column("Quality", justify="left", min_width=10)
    table.add_column("Container", justify="left", min_width=8)
    table.add_column("Size", justify="right", min_width=10)
    table.add_column("Merge", justify="left")

    for i, fmt in enumerate(media.formats, start=1):
        table.add_row(
            str(i),
            fmt.format_id,
            _KIND_LABELS[fmt.kind],
            _quality(fmt),
            fmt.ext,
            format_filesize(fmt.filesize),
            _merge_note(fmt),
        )

    console.print(table)
    console.print()


# ---------------------------------------------------------------------------
# Public prompt function
# ---------------------------------------------------------------------------

def prompt_format_selection(media: ResolvedMedia) -> str:
    """Display formats and prompt the user for an interactive selection.

    Returns
    -------
    str
        The ``format_id`` of the user's chosen format.

    Raises
    ------
    KeyboardInterrupt
        If the user presses Ctrl+C during selection.
    FormatSelectionError
        If the user cancels the prompt (Esc / None return).
    """
    questionary = _import_questionary()

    display_format_table(media)

    choices = [
        questionary.Choice(
            title=build_choice_label(i, fmt),
            value=fmt.format_id,
        )
        for i, fmt in enumerate(media.formats)
    ]

    selected: str | None = questionary.select(
        "Select format to download:",
        choices=choices,
        use_arrow_keys=True,
        use_shortcuts=False,
    ).ask()  # Returns None on Ctrl+C / Esc

    if selected is None:
        raise FormatSelectionError(
            "No format selected.",
            hint="Use arrow keys to pick a format, then press Enter.",
        )

    return selected
