"""CLI application entry point and command routing for ytd-relay.

This module is the **sole error boundary** for the entire application.
It catches :class:`~ytd_relay.exceptions.YtdRelayError`, ``KeyboardInterrupt``,
and any unexpected ``Exception``, rendering user-friendly messages via Rich
and returning well-defined exit codes.

Architecture notes
------------------
* No business logic lives here — all work is delegated to the services
  assembled by :func:`ytd_relay.bootstrap.build_runtime`.
* ``print()`` is forbidden outside the CLI layer; Rich console is used
  exclusively, on stderr, so ``-o -`` can stream media to stdout.
* Questionary cannot prompt inside a running event loop, so describing
  and streaming run in two separate :func:`asyncio.run` calls; the
  second describe is a cache hit.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from ytd_relay.cli import exit_codes
from ytd_relay.cli.console import configure_logging, console
from ytd_relay.exceptions import (
    DependencyMissingError,
    StreamTruncatedError,
    YtdRelayError,
)
from ytd_relay.version import __version__

if TYPE_CHECKING:
    from ytd_relay.bootstrap import Runtime
    from ytd_relay.config import RelaySettings
    from ytd_relay.core.stream_proxy import StreamRelay

logger = logging.getLogger(__name__)

STDOUT_TARGET = "-"
BEST_FORMAT = "best"


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser.

    Sub-commands are not used; the CLI supports:
    * ``ytd-relay <url>``               — interactive download
    * ``ytd-relay <url> --list``        — show formats only
    * ``ytd-relay <url> -f ID [-o P]``  — non-interactive download
    * ``ytd-relay doctor``              — environment diagnostics
    * ``ytd-relay --version``
    """
    parser = argparse.ArgumentParser(
        prog="ytd-relay",
        description="Resolve video URLs and relay the chosen format.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "target",
        nargs="?",
        default=None,
        help="Video URL to resolve, or 'doctor' to run diagnostics.",
    )
    parser.add_argument(
        "-f",
        "--format",
        dest="format_id",
        default=None,
        help=f"Format id to download without prompting ('{BEST_FORMAT}' for the best variant).",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help=f"Output file or directory; '{STDOUT_TARGET}' writes to standard output.",
    )
    parser.add_argument(
        "-l",
        "--list",
        action="store_true",
        help="List the available formats and exit.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_settings() -> RelaySettings:
    """Load ``.env`` then read settings from the environment."""
    try:
        from dotenv import find_dotenv, load_dotenv
    except ModuleNotFoundError as exc:
        raise DependencyMissingError(
            "python-dotenv is not installed. Install with: pip install python-dotenv",
        ) from exc
    from ytd_relay.config import RelaySettings

    # .env is looked up from the working directory upward.
    load_dotenv(find_dotenv(usecwd=True))
    return RelaySettings.from_env()


def _resolve_output(
    output: str | None,
    filename: str,
) -> Path | None:
    """Map the ``--output`` value to a file path (``None`` = stdout)."""
    if output == STDOUT_TARGET:
        return None
    if output is None:
        return Path.cwd() / filename
    path = Path(output).expanduser()
    if path.is_dir():
        return path / filename
    return path


async def _relay_to(
    runtime: Runtime,
    url: str,
    format_id: str | None,
    destination: Path | None,
    *,
    total: int | None,
) -> int:
    """Stream one download into *destination* (stdout when ``None``)."""
    from ytd_relay.core.cache import run_sweeper

    sweeper = asyncio.create_task(
        run_sweeper(runtime.cache, runtime.settings.sweep_interval),
    )
    try:
        relay = await runtime.downloads.begin_download(url, format_id)
        async with relay:
            if destination is None:
                await _copy(relay, sys.stdout.buffer)
                sys.stdout.buffer.flush()
            else:
                await _write_file(relay, destination, total=total)
        logger.debug("relayed %d bytes", relay.bytes_relayed)
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    return exit_codes.SUCCESS


async def _copy(relay: StreamRelay, sink: BinaryIO) -> None:
    async for chunk in relay:
        sink.write(chunk)


async def _write_file(relay: StreamRelay, destination: Path, *, total: int | None) -> None:
    """Write the relay into *destination*; a failed download leaves no file."""
    from ytd_relay.cli.progress import TransferProgress

    try:
        with destination.open("wb") as sink, TransferProgress(
            destination.name, total=total,
        ) as progress:
            async for chunk in relay:
                sink.write(chunk)
                progress.advance(len(chunk))
            progress.complete()
    except BaseException:
        destination.unlink(missing_ok=True)
        raise
    console.print(f"\n[bold green]Saved[/bold green] {destination}")


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------

def _handle_url(args: argparse.Namespace) -> int:
    """Describe *args.target*, pick a format, and relay it.

    Flow:
    1. Build the runtime (extractor probing, ffmpeg probe, cache).
    2. Describe the URL for display.
    3. Prompt for a format unless ``--format`` was given.
    4. Stream the selected format with Rich progress.
    """
    from ytd_relay.bootstrap import build_runtime
    from ytd_relay.exceptions import FormatSelectionError, append_ytdlp_upgrade_suggestion
    from ytd_relay.utils import safe_filename

    url: str = args.target
    runtime = build_runtime(_load_settings())

    console.print(f"\n[bold]Fetching metadata…[/bold]  {url}\n")
    media = asyncio.run(runtime.metadata.describe(url))

    if args.list:
        from ytd_relay.cli.format_prompt import display_format_table

        display_format_table(media)
        return exit_codes.SUCCESS

    if not media.formats:
        raise FormatSelectionError(
            "No downloadable formats were found for this video.",
            hint=append_ytdlp_upgrade_suggestion(
                "The video may be region-locked or require sign-in.",
            ),
        )

    if args.format_id is None:
        from ytd_relay.cli.format_prompt import prompt_format_selection

        format_id: str | None = prompt_format_selection(media)
    elif args.format_id.strip().lower() == BEST_FORMAT:
        format_id = None
    else:
        format_id = args.format_id

    descriptor = media.find_format(format_id) if format_id is not None else None
    if descriptor is None or descriptor.needs_merge:
        ext = runtime.settings.merge_format if runtime.merge_capable else "mp4"
        total = None
    else:
        ext = descriptor.ext
        total = descriptor.filesize
    destination = _resolve_output(
        args.output, safe_filename(media.title, ext, fallback=media.source_id or "download"),
    )

    console.print(
        f"[bold green]Starting download…[/bold green]  "
        f"format={format_id or BEST_FORMAT}\n"
    )
    return asyncio.run(
        _relay_to(runtime, url, format_id, destination, total=total),
    )


def _handle_doctor() -> int:
    """Dispatch the ``doctor`` diagnostics command."""
    from ytd_relay.cli.doctor import run_doctor

    return run_doctor(_load_settings())


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    """Run the ytd-relay CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.  Accepting *argv* enables deterministic testing without
        monkeypatching.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.target is None:
        parser.print_help()
        return exit_codes.SUCCESS

    configure_logging(args.verbose)

    target: str = args.target

    if target.lower() == "doctor":
        return _handle_doctor()

    return _handle_url(args)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def _render_error(exc: YtdRelayError) -> None:
    console.print(f"[bold red]Error:[/bold red] {exc}")
    if exc.hint:
        console.print(f"[yellow]Hint:[/yellow] {exc.hint}")
    diagnostic = getattr(exc, "diagnostic", "")
    if diagnostic:
        logger.debug("tool diagnostic:\n%s", diagnostic)


def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except StreamTruncatedError as exc:
        _render_error(exc)
        console.print(
            f"[yellow]The download stopped after {exc.bytes_relayed} bytes; "
            "the output is incomplete.[/yellow]"
        )
        sys.exit(exit_codes.STREAM_TRUNCATED)
    except YtdRelayError as exc:
        _render_error(exc)
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {exc}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
