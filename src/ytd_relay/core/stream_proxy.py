"""Pull-driven relay from a :class:`ByteSource` to whoever iterates it.

State machine
-------------
``streaming`` → ``completed``
``streaming`` → ``failed_before_first_byte`` — nothing was committed,
the boundary can still answer with a clean error.
``streaming`` → ``failed_after_first_byte`` — part of the payload is
already out; the only option left is to close the connection, so the
failure surfaces as :class:`~ytd_relay.exceptions.StreamTruncatedError`.

The relay never reads ahead of its consumer: each iteration step pulls
exactly one chunk, which keeps memory bounded by the source's own pipe
or socket buffer however slow the consumer is.  Closing the relay (or
abandoning the iteration) terminates the producer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from types import TracebackType

from ytd_relay.core.models import StreamState
from ytd_relay.core.protocols import ByteSource
from ytd_relay.exceptions import (
    StreamTruncatedError,
    ToolExecutionError,
    ToolTimeoutError,
    YtdRelayError,
)

logger = logging.getLogger(__name__)


class StreamRelay:
    """Async byte iterator with first-byte failure separation.

    Usage::

        relay = StreamRelay(source, url=url)
        await relay.prime()          # may still raise a clean error
        async for chunk in relay:    # bytes are committed from here on
            sink.write(chunk)
    """

    def __init__(
        self,
        source: ByteSource,
        *,
        url: str = "",
        first_byte_timeout: float | None = None,
    ) -> None:
        self._source = source
        self._url = url
        self._first_byte_timeout = first_byte_timeout
        self._state = StreamState.STREAMING
        self._bytes_relayed = 0
        self._pending: bytes = b""
        self._primed = False
        self._closed = False

    @property
    def state(self) -> StreamState:
        return self._state

    @property
    def bytes_relayed(self) -> int:
        return self._bytes_relayed

    # ------------------------------------------------------------------
    # First byte
    # ------------------------------------------------------------------

    async def prime(self) -> None:
        """Wait for the first chunk before anything is committed.

        Idempotent.  On failure the source is closed, the state becomes
        ``failed_before_first_byte`` and a typed error is raised.

        Raises
        ------
        ToolTimeoutError
            If no byte arrived within the first-byte budget.
        ToolExecutionError
            If the producer failed without emitting any payload.
        """
        if self._primed:
            return
        self._primed = True
        try:
            chunk = await asyncio.wait_for(
                self._source.read(), timeout=self._first_byte_timeout,
            )
            if not chunk:
                await self._source.finish()
                self._state = StreamState.COMPLETED
                logger.warning("producer finished without payload: %s", self._url)
                await self.aclose()
                return
            self._pending = chunk
        except asyncio.TimeoutError as exc:
            await self._fail_before_first_byte()
            raise ToolTimeoutError(
                "Timed out waiting for the first media bytes.",
                url=self._url,
                operation="download",
                hint="The source may be slow or throttled; try again later.",
            ) from exc
        except YtdRelayError:
            await self._fail_before_first_byte()
            raise
        except Exception as exc:
            await self._fail_before_first_byte()
            raise ToolExecutionError(
                f"Unexpected stream error: {exc}",
                url=self._url,
                operation="download",
                diagnostic=repr(exc),
            ) from exc
        except BaseException:
            await self._fail_before_first_byte()
            raise

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        await self.prime()
        try:
            if self._pending:
                chunk, self._pending = self._pending, b""
                self._bytes_relayed += len(chunk)
                yield chunk
            while self._state is StreamState.STREAMING:
                chunk = await self._read_committed()
                if not chunk:
                    await self._complete()
                    break
                self._bytes_relayed += len(chunk)
                yield chunk
        finally:
            await self.aclose()

    async def _read_committed(self) -> bytes:
        try:
            return await self._source.read()
        except Exception as exc:
            raise self._truncated(exc) from exc

    async def _complete(self) -> None:
        try:
            await self._source.finish()
        except Exception as exc:
            raise self._truncated(exc) from exc
        self._state = StreamState.COMPLETED
        logger.debug(
            "stream completed: %s (%d bytes)", self._url, self._bytes_relayed,
        )

    def _truncated(self, exc: Exception) -> StreamTruncatedError:
        self._state = StreamState.FAILED_AFTER_FIRST_BYTE
        diagnostic = getattr(exc, "diagnostic", "") or str(exc)
        logger.error(
            "stream truncated after %d bytes for %s: %s",
            self._bytes_relayed, self._url, diagnostic,
        )
        return StreamTruncatedError(
            "The media stream ended early; the received file is incomplete.",
            bytes_relayed=self._bytes_relayed,
            url=self._url,
            diagnostic=diagnostic,
        )

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def _fail_before_first_byte(self) -> None:
        self._state = StreamState.FAILED_BEFORE_FIRST_BYTE
        await self.aclose()

    async def aclose(self) -> None:
        """Release the source; kills the producer if it is still running."""
        if self._closed:
            return
        self._closed = True
        if self._state is StreamState.STREAMING:
            logger.info(
                "consumer left after %d bytes, terminating producer: %s",
                self._bytes_relayed, self._url,
            )
        await self._source.close()

    async def __aenter__(self) -> StreamRelay:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
