"""Child-process lifecycle for extraction and muxing tools.

Everything here runs on the asyncio event loop: waiting for a process to
exit and waiting for its next output chunk both yield to the scheduler,
so any number of invocations proceed side by side without a shared lock.

Rules
-----
* Every spawned process is reaped on every exit path — normal
  completion, timeout, caller cancellation, and exceptions.
* Diagnostic output (stderr) is drained continuously and logged; it is
  never mixed into payload bytes.
* Spawn failures become :class:`~ytd_relay.exceptions.ToolUnavailableError`.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from ytd_relay.exceptions import (
    ToolExecutionError,
    ToolTimeoutError,
    ToolUnavailableError,
)

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES: int = 40
"""Number of trailing stderr lines kept as the failure diagnostic."""

TERMINATE_GRACE: float = 2.0
"""Seconds between SIGTERM and SIGKILL when stopping a child."""

EXIT_TIMEOUT: float = 30.0
"""Seconds a child may linger after closing stdout before it is killed."""

_LINE_BREAK = re.compile(rb"[\r\n]")
_MAX_PARTIAL_LINE = 8192


# ---------------------------------------------------------------------------
# Spawning and reaping
# ---------------------------------------------------------------------------

async def spawn(argv: Sequence[str]) -> asyncio.subprocess.Process:
    """Start *argv* with piped stdout/stderr.

    Raises
    ------
    ToolUnavailableError
        When the executable is missing or cannot be run.
    """
    logger.debug("spawning: %s", " ".join(argv))
    try:
        return await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ToolUnavailableError(
            f"Cannot run {argv[0]!r}: {exc.strerror or exc}",
            hint="Check that the tool is installed and on PATH.",
        ) from exc


async def terminate(process: asyncio.subprocess.Process) -> None:
    """Stop *process* if it is still running and reap it."""
    if process.returncode is not None:
        return
    try:
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE)
            return
        except asyncio.TimeoutError:
            pass
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()
    logger.debug("terminated pid %s", process.pid)


# ---------------------------------------------------------------------------
# Run to completion
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class CompletedRun:
    """Outcome of :func:`run_to_completion`."""

    returncode: int
    stdout: bytes
    stderr: str


async def run_to_completion(
    argv: Sequence[str],
    *,
    timeout: float | None,
    url: str = "",
    operation: str = "",
) -> CompletedRun:
    """Run *argv*, collecting stdout and stderr, within *timeout* seconds.

    Raises
    ------
    ToolUnavailableError
        When the executable cannot be started.
    ToolTimeoutError
        When the process did not exit in time.  It has been killed.
    """
    process = await spawn(argv)
    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(), timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise ToolTimeoutError(
            f"{argv[0]} did not finish within {timeout:g}s.",
            url=url,
            operation=operation,
            hint="The site may be slow or blocking requests; try again later.",
        ) from exc
    finally:
        await terminate(process)

    text = stderr.decode("utf-8", "replace")
    for line in text.splitlines():
        if line.strip():
            logger.debug("[%s] %s", argv[0], line)
    return CompletedRun(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout,
        stderr=text,
    )


# ---------------------------------------------------------------------------
# Continuous stderr drain
# ---------------------------------------------------------------------------

class StderrDrain:
    """Read a child's stderr until EOF, logging it and keeping a tail."""

    def __init__(self, stream: asyncio.StreamReader | None, *, label: str) -> None:
        self._label = label
        self._tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._task: asyncio.Task[None] | None = None
        if stream is not None:
            self._task = asyncio.ensure_future(self._run(stream))

    @property
    def text(self) -> str:
        return "\n".join(self._tail)

    async def _run(self, stream: asyncio.StreamReader) -> None:
        partial = b""
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            *lines, partial = _LINE_BREAK.split(partial + chunk)
            for line in lines:
                self._record(line)
            if len(partial) > _MAX_PARTIAL_LINE:
                self._record(partial)
                partial = b""
        self._record(partial)

    def _record(self, raw: bytes) -> None:
        line = raw.decode("utf-8", "replace").strip()
        if line:
            self._tail.append(line)
            logger.debug("[%s] %s", self._label, line)

    async def wait(self, timeout: float = TERMINATE_GRACE) -> None:
        """Give the drain a moment to reach EOF after the child exits."""
        if self._task is None or self._task.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug("[%s] stderr still open after exit", self._label)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()


# ---------------------------------------------------------------------------
# Streaming byte source
# ---------------------------------------------------------------------------

class ProcessByteSource:
    """:class:`~ytd_relay.core.protocols.ByteSource` over a child's stdout.

    Reads are pull-driven: asyncio stops reading the pipe once its
    internal buffer is full, which in turn blocks the child on write.
    A nonzero exit is reported through *classify* when given, so each
    tool can map its own diagnostics to specific error types.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        *,
        label: str,
        url: str = "",
        operation: str = "download",
        chunk_size: int = 64 * 1024,
        classify: Callable[..., ToolExecutionError] | None = None,
    ) -> None:
        self._process = process
        self._label = label
        self._url = url
        self._operation = operation
        self._chunk_size = chunk_size
        self._classify = classify
        self._drain = StderrDrain(process.stderr, label=label)
        self._closed = False

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def diagnostic(self) -> str:
        return self._drain.text

    async def read(self) -> bytes:
        if self._process.stdout is None:
            return b""
        return await self._process.stdout.read(self._chunk_size)

    async def finish(self) -> None:
        """Wait for exit after EOF and raise on a nonzero status."""
        try:
            returncode = await asyncio.wait_for(
                self._process.wait(), timeout=EXIT_TIMEOUT,
            )
        except asyncio.TimeoutError as exc:
            await self.close()
            raise ToolTimeoutError(
                f"{self._label} closed its output but did not exit.",
                url=self._url,
                operation=self._operation,
                diagnostic=self._drain.text,
            ) from exc
        await self._drain.wait()
        if returncode != 0 and self._classify is not None:
            raise self._classify(
                self._drain.text,
                url=self._url,
                operation=self._operation,
                returncode=returncode,
            )
        if returncode != 0:
            raise ToolExecutionError(
                f"{self._label} exited with status {returncode}.",
                url=self._url,
                operation=self._operation,
                diagnostic=self._drain.text,
                returncode=returncode,
            )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await terminate(self._process)
        finally:
            self._drain.cancel()
