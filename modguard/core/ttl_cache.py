"""
Time-bounded memoization keyed per entry.

Each entry remembers when it was fetched and is refetched from the supplied
source once it is older than the configured TTL. There is no eviction and
no size bound: entries live until they are refreshed or the cache is reset.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, Optional, Sized, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_TTL_SECONDS = 300


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    """A cached value and the time it was fetched.

    Entries are replaced on refresh, never modified in place.
    """
    value: V
    fetched_at_ms: int


@dataclass(frozen=True)
class CacheStats:
    """Introspection counters for a cache."""
    key_count: int
    total_item_count: int


class TTLCache(Generic[K, V]):
    """Per-key cache whose entries expire a fixed time after their fetch.

    Lookups for a missing or stale key call the fetch function outside the
    lock, so a slow fetch never blocks other keys. Concurrent misses for
    the same key may each call the fetch function; there is no
    deduplication of in-flight fetches.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], int] = now_millis,
        name: str = "cache"
    ):
        """Create an empty cache.

        Args:
            ttl_seconds: Maximum entry age before a refetch
            clock: Returns the current time in epoch milliseconds
            name: Label used in log messages

        Raises:
            ValueError: If ttl_seconds is not positive
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")

        self.ttl_ms = int(ttl_seconds * 1000)
        self.name = name
        self._clock = clock
        self._entries: Dict[K, CacheEntry[V]] = {}
        self._lock = threading.Lock()

    def get(self, key: K, fetch_fn: Callable[[K], V]) -> V:
        """Return the value for key, fetching it if missing or expired.

        Args:
            key: Cache key
            fetch_fn: Called with key to produce a fresh value

        Returns:
            The cached or freshly fetched value

        Raises:
            Exception: Whatever fetch_fn raises. Nothing is stored in that
                case and any previous entry is left as it was.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)

        if entry is not None:
            age = now - entry.fetched_at_ms
            if age < self.ttl_ms:
                logger.debug("%s hit for %r (age %dms)", self.name, key, age)
                return entry.value
            logger.debug("%s entry for %r expired (age %dms)", self.name, key, age)
        else:
            logger.debug("%s miss for %r", self.name, key)

        value = fetch_fn(key)

        fetched_at = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(value=value, fetched_at_ms=fetched_at)
        return value

    def peek(self, key: K) -> Optional[CacheEntry[V]]:
        """Return the raw entry for key, expired or not, without fetching."""
        with self._lock:
            return self._entries.get(key)

    def reset(self) -> None:
        """Drop every entry."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("%s reset (%d entries dropped)", self.name, count)

    def stats(self) -> CacheStats:
        """Count keys and the items held across all values.

        Collections (sets, lists) contribute their length, anything else
        counts as one item.
        """
        with self._lock:
            values = [entry.value for entry in self._entries.values()]

        total = 0
        for value in values:
            if isinstance(value, Sized) and not isinstance(value, (str, bytes)):
                total += len(value)
            else:
                total += 1
        return CacheStats(key_count=len(values), total_item_count=total)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
