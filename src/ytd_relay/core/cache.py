"""Time-bounded cache of :class:`ResolvedMedia` results.

The cache is an explicitly owned component: one instance is built at
startup and handed to the services that need it, so tests can swap in
their own.  Expiry is lazy on read; :meth:`ResolutionCache.sweep` (or
the :func:`run_sweeper` background coroutine) bounds memory between
reads.  Insertion order doubles as eviction order when a size cap is
set.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from ytd_relay.core.models import CacheEntry, ResolvedMedia

logger = logging.getLogger(__name__)

DEFAULT_TTL: float = 300.0
DEFAULT_MAX_ENTRIES: int = 256


class ResolutionCache:
    """Thread-safe TTL cache keyed by canonical source identifier.

    Parameters
    ----------
    ttl:
        Maximum age in seconds after which an entry is stale.
    max_entries:
        Upper bound on stored entries; the oldest insertion is evicted
        first.  ``None`` disables the cap.
    clock:
        Zero-argument callable returning seconds.  Defaults to
        :func:`time.monotonic`.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        *,
        max_entries: int | None = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, key: str) -> ResolvedMedia | None:
        """Return the fresh value for *key*, or ``None``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not self._is_fresh(entry, self._clock()):
                del self._entries[key]
                logger.debug("cache expired: %s", key)
                return None
            return entry.value

    def put(self, key: str, value: ResolvedMedia) -> None:
        """Store *value* under *key*, replacing any previous entry."""
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(
                key=key, value=value, inserted_at=self._clock(),
            )
            if self._max_entries is not None:
                while len(self._entries) > self._max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("cache evicted: %s", evicted)

    def sweep(self) -> int:
        """Drop every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            stale = [
                key for key, entry in self._entries.items()
                if not self._is_fresh(entry, now)
            ]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("cache sweep removed %d entries", len(stale))
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at < self._ttl


async def run_sweeper(cache: ResolutionCache, interval: float) -> None:
    """Sweep *cache* every *interval* seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        cache.sweep()
