"""Core metadata service — orchestrates extraction, ranking, and caching.

This is the "describe" entry point consumed by the boundary layer.  It
depends on an :class:`~ytd_relay.core.protocols.Extractor` and a
:class:`~ytd_relay.core.cache.ResolutionCache` injected at construction
time (dependency inversion), keeping the core free of any
external-system imports.

Guarantees
----------
* Pure orchestration — no filesystem access, no ``print()``.
* Only :class:`~ytd_relay.exceptions.YtdRelayError` subclasses escape.
* A cache hit never reaches the extractor.
* Concurrent describes for the same canonical key share one extractor
  call; failures reach every waiter and are never cached.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlsplit

from ytd_relay.core.cache import ResolutionCache
from ytd_relay.core.canonical import canonical_key
from ytd_relay.core.format_filter import DEFAULT_LIMITS, FormatLimits, select_formats
from ytd_relay.core.models import ResolvedMedia
from ytd_relay.core.normalizer import (
    build_resolved_media,
    extract_raw_formats,
    normalize_formats,
)
from ytd_relay.core.protocols import Extractor
from ytd_relay.exceptions import InvalidURLError, ToolExecutionError, YtdRelayError

logger = logging.getLogger(__name__)


def validate_url(url: str | None) -> str:
    """Return the stripped *url* or raise :class:`InvalidURLError`."""
    stripped = (url or "").strip()
    if not stripped:
        raise InvalidURLError("URL must not be empty.")
    if not stripped.startswith(("http://", "https://")):
        raise InvalidURLError(
            f"Invalid URL: {stripped}",
            hint="URL must start with http:// or https://",
        )
    if not urlsplit(stripped).hostname:
        raise InvalidURLError(
            f"Invalid URL: {stripped}",
            hint="The URL has no host name.",
        )
    return stripped


class MetadataService:
    """Resolve URLs into cached, ranked :class:`ResolvedMedia` results.

    Parameters
    ----------
    extractor:
        Any object satisfying the :class:`Extractor` protocol.
    cache:
        Shared resolution cache.
    merge_capable:
        Whether the process can mux separate tracks.  Probed once at
        startup and applied to every result.
    limits:
        Per-kind display caps.
    """

    def __init__(
        self,
        extractor: Extractor,
        cache: ResolutionCache,
        *,
        merge_capable: bool,
        limits: FormatLimits = DEFAULT_LIMITS,
    ) -> None:
        self._extractor: Extractor = extractor
        self._cache: ResolutionCache = cache
        self._merge_capable: bool = merge_capable
        self._limits: FormatLimits = limits
        self._inflight: dict[str, asyncio.Future[ResolvedMedia]] = {}
        self._waiters: dict[asyncio.Future[ResolvedMedia], int] = {}

    @property
    def merge_capable(self) -> bool:
        return self._merge_capable

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def describe(self, url: str) -> ResolvedMedia:
        """Return metadata and ranked formats for *url*.

        Raises
        ------
        InvalidURLError
            If *url* is empty or malformed.
        ToolUnavailableError
            If the extraction tool cannot be started.
        ToolExecutionError
            If the extraction tool fails.
        MalformedOutputError
            If the extraction tool output cannot be parsed.
        ToolTimeoutError
            If the extraction tool exceeds its time budget.
        """
        url = validate_url(url)
        key = canonical_key(url)

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("cache hit: %s", key)
            return cached

        pending = self._inflight.get(key)
        if pending is None:
            logger.debug("cache miss: %s", key)
            pending = asyncio.ensure_future(self._resolve(url, key))
            self._inflight[key] = pending
            pending.add_done_callback(
                lambda done: self._forget_inflight(key, done),
            )
        else:
            logger.debug("joining in-flight describe: %s", key)

        # One waiter giving up must not cancel the shared extraction;
        # the last one leaving cancels it so its child process is reaped.
        self._waiters[pending] = self._waiters.get(pending, 0) + 1
        try:
            return await asyncio.shield(pending)
        except asyncio.CancelledError:
            if self._waiters[pending] == 1 and not pending.done():
                logger.debug("last waiter cancelled, abandoning describe: %s", key)
                if self._inflight.get(key) is pending:
                    del self._inflight[key]
                pending.cancel()
            raise
        finally:
            self._release_waiter(pending)

    def build(self, info: dict[str, Any]) -> ResolvedMedia:
        """Normalize and rank a raw info dict (no caching, no I/O)."""
        descriptors = normalize_formats(extract_raw_formats(info))
        ranked = select_formats(
            descriptors,
            merge_capable=self._merge_capable,
            limits=self._limits,
        )
        return build_resolved_media(
            info, ranked, merge_capable=self._merge_capable,
        )

    # ------------------------------------------------------------------
    # Extraction (safe boundary)
    # ------------------------------------------------------------------

    async def _resolve(self, url: str, key: str) -> ResolvedMedia:
        info = await self._fetch(url)
        media = self.build(info)
        self._cache.put(key, media)
        logger.debug(
            "cached %s with %d formats", key, len(media.formats),
        )
        return media

    async def _fetch(self, url: str) -> dict[str, Any]:
        """Call the extractor and ensure only our exceptions escape."""
        try:
            return await self._extractor.describe(url)
        except YtdRelayError as exc:
            logger.warning("describe failed for %s: %s", url, exc)
            raise
        except Exception as exc:
            raise ToolExecutionError(
                f"Unexpected extractor error: {exc}",
                url=url,
                operation="describe",
                diagnostic=repr(exc),
            ) from exc

    def _release_waiter(self, pending: asyncio.Future[ResolvedMedia]) -> None:
        remaining = self._waiters[pending] - 1
        if remaining:
            self._waiters[pending] = remaining
        else:
            del self._waiters[pending]

    def _forget_inflight(
        self, key: str, done: asyncio.Future[ResolvedMedia],
    ) -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]
        if not done.cancelled():
            # Mark the exception retrieved even if every waiter left.
            done.exception()
