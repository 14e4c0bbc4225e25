"""CLI console helpers with optional Rich support.

This module intentionally avoids module-level imports of optional UI
dependencies so bootstrap paths (``--help``, ``--version``) remain
functional even when Rich is not installed.  Everything renders to
stderr: stdout may be carrying media bytes (``-o -``).
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from ytd_relay.exceptions import DependencyMissingError

LOG_FORMAT = "%(name)s: %(message)s"


def _load_rich_console_class() -> type[Any]:
	"""Return ``rich.console.Console`` class or raise ``DependencyMissingError``."""
	try:
		from rich.console import Console
	except ModuleNotFoundError as exc:
		raise DependencyMissingError(
			"rich is not installed. Install with: pip install rich",
		) from exc
	return Console


def get_rich_console() -> Any:
	"""Create a Rich console instance targeting stderr."""
	console_class = _load_rich_console_class()
	return console_class(stderr=True)


class _ConsoleProxy:
	"""Minimal ``print``-compatible proxy with Rich fallback."""

	def print(self, *objects: object) -> None:
		"""Render with Rich when available, else plain stderr print."""
		try:
			rich_console = get_rich_console()
		except DependencyMissingError:
			print(*objects, file=sys.stderr)
			return
		rich_console.print(*objects)


console = _ConsoleProxy()


def configure_logging(verbose: bool = False) -> None:
	"""Route library logging to stderr.

	WARNING and above by default, everything with *verbose*.  Uses
	Rich's handler when available.
	"""
	level = logging.DEBUG if verbose else logging.WARNING
	try:
		from rich.logging import RichHandler
	except ModuleNotFoundError:
		logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)
		return

	logging.basicConfig(
		level=level,
		format=LOG_FORMAT,
		datefmt="[%X]",
		handlers=[
			RichHandler(
				console=get_rich_console(),
				show_path=False,
				rich_tracebacks=verbose,
			),
		],
		force=True,
	)
