"""Rich-based progress display for relayed downloads.

The relay hands the CLI one chunk at a time; :class:`TransferProgress`
turns those chunk sizes into a Rich :class:`~rich.progress.Progress`
bar.  The total is the descriptor's reported size when known (merged
downloads have none and show a byte counter only).

Design
------
* Shutdown-safe: after :meth:`TransferProgress.stop`, further calls to
  :meth:`TransferProgress.advance` are silently ignored.
* No ``print()`` — Rich handles all rendering, on stderr.
"""

from __future__ import annotations

from typing import Any

from ytd_relay.cli.console import get_rich_console
from ytd_relay.exceptions import DependencyMissingError


class TransferProgress:
    """Byte-count progress bar for a single download.

    Usage::

        with TransferProgress("video.mp4", total=size) as progress:
            async for chunk in relay:
                sink.write(chunk)
                progress.advance(len(chunk))
    """

    def __init__(self, description: str, *, total: int | None = None) -> None:
        try:
            from rich.progress import (
                BarColumn,
                DownloadColumn,
                Progress,
                SpinnerColumn,
                TextColumn,
                TimeRemainingColumn,
                TransferSpeedColumn,
            )
        except ModuleNotFoundError as exc:
            raise DependencyMissingError(
                "rich is not installed. Install with: pip install rich",
            ) from exc

        self._progress: Any = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=get_rich_console(),
            transient=False,
        )
        self._description = _shorten(description)
        self._total = total
        self._task_id: Any = None
        self._started: bool = False

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> TransferProgress:
        self.start()
        return self

    def __exit__(self, *_args: object) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the Rich progress display."""
        if not self._started:
            self._progress.start()
            self._task_id = self._progress.add_task(
                self._description, total=self._total,
            )
            self._started = True

    def stop(self) -> None:
        """Stop the Rich progress display (idempotent)."""
        if self._started:
            self._progress.stop()
            self._started = False

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def advance(self, nbytes: int) -> None:
        """Record *nbytes* more bytes written."""
        if not self._started:
            return
        self._progress.update(self._task_id, advance=nbytes)

    def complete(self) -> None:
        """Fill the bar once the stream finished cleanly."""
        if not self._started:
            return
        task = self._progress.tasks[0]
        if task.total is not None:
            self._progress.update(self._task_id, completed=task.total)


def _shorten(name: str, limit: int = 50) -> str:
    if len(name) > limit:
        return name[: limit - 3] + "..."
    return name
