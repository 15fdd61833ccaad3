"""
Unit tests for the TTL cache.

Tests hit/miss behaviour, expiry, failure handling and reset.
"""

import threading

import pytest

from modguard.core.ttl_cache import CacheEntry, CacheStats, TTLCache


class FakeClock:
    """Controllable millisecond clock."""

    def __init__(self, start: int = 1_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


class CountingFetch:
    """Fetch function that records its calls."""

    def __init__(self, result=None):
        self.calls = []
        self.result = result

    def __call__(self, key):
        self.calls.append(key)
        if self.result is not None:
            return self.result
        return {f"{key}-{len(self.calls)}"}


class TestCacheLookup:
    """Test cached lookups within and past the TTL."""

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl_seconds=300, clock=self.clock)

    def test_new_key_has_no_entry(self):
        """Test that keys never looked up hold no entry."""
        assert self.cache.peek("pics") is None
        assert len(self.cache) == 0

    def test_first_get_fetches_once(self):
        """Test that the first lookup triggers exactly one fetch."""
        fetch = CountingFetch()

        value = self.cache.get("pics", fetch)

        assert fetch.calls == ["pics"]
        assert value == {"pics-1"}

    def test_second_get_within_ttl_is_cached(self):
        """Test that a repeat lookup inside the window returns the same object."""
        fetch = CountingFetch()

        first = self.cache.get("pics", fetch)
        self.clock.advance(299_999)
        second = self.cache.get("pics", fetch)

        assert second is first
        assert len(fetch.calls) == 1

    def test_expired_entry_is_refetched(self):
        """Test that an entry at or past its TTL is refetched and restamped."""
        fetch = CountingFetch()

        self.cache.get("pics", fetch)
        self.clock.advance(300_000)
        value = self.cache.get("pics", fetch)

        assert len(fetch.calls) == 2
        assert value == {"pics-2"}
        assert self.cache.peek("pics").fetched_at_ms == self.clock.now

    def test_ttl_restarts_after_refresh(self):
        """Test that the window is measured from the last successful fetch."""
        fetch = CountingFetch()

        self.cache.get("pics", fetch)
        self.clock.advance(400_000)
        self.cache.get("pics", fetch)
        self.clock.advance(200_000)
        self.cache.get("pics", fetch)

        assert len(fetch.calls) == 2

    def test_keys_are_independent(self):
        """Test that refreshing one key leaves another untouched."""
        fetch = CountingFetch()

        self.cache.get("pics", fetch)
        self.clock.advance(200_000)
        self.cache.get("news", fetch)
        self.clock.advance(150_000)

        self.cache.get("pics", fetch)
        self.cache.get("news", fetch)

        assert fetch.calls == ["pics", "news", "pics"]

    def test_entry_records_fetch_time(self):
        """Test that stored entries carry value and fetch timestamp."""
        self.cache.get("pics", CountingFetch(result={"alice"}))

        entry = self.cache.peek("pics")
        assert entry == CacheEntry(value={"alice"}, fetched_at_ms=self.clock.now)


class TestFetchFailure:
    """Test that failed fetches store nothing."""

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl_seconds=60, clock=self.clock)

    def test_failure_propagates_and_stores_nothing(self):
        """Test that a failing fetch raises and leaves no entry."""
        def failing(key):
            raise ConnectionError("provider down")

        with pytest.raises(ConnectionError, match="provider down"):
            self.cache.get("pics", failing)

        assert self.cache.peek("pics") is None

    def test_failure_keeps_expired_entry(self):
        """Test that an expired entry survives a failed refresh unchanged."""
        self.cache.get("pics", CountingFetch(result={"alice"}))
        original = self.cache.peek("pics")
        self.clock.advance(120_000)

        def failing(key):
            raise TimeoutError("slow")

        with pytest.raises(TimeoutError):
            self.cache.get("pics", failing)

        assert self.cache.peek("pics") is original

    def test_retry_after_failure_fetches_again(self):
        """Test that no negative entry blocks the next attempt."""
        calls = []

        def flaky(key):
            calls.append(key)
            if len(calls) == 1:
                raise ConnectionError("first call fails")
            return {"bob"}

        with pytest.raises(ConnectionError):
            self.cache.get("pics", flaky)

        assert self.cache.get("pics", flaky) == {"bob"}
        assert len(calls) == 2


class TestResetAndStats:
    """Test reset and introspection."""

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = TTLCache(ttl_seconds=300, clock=self.clock)

    def test_reset_forces_fresh_fetch(self):
        """Test that reset makes the next lookup fetch regardless of TTL."""
        fetch = CountingFetch()
        self.cache.get("pics", fetch)

        self.cache.reset()
        self.cache.get("pics", fetch)

        assert len(fetch.calls) == 2

    def test_reset_clears_all_entries(self):
        """Test that reset drops every key."""
        fetch = CountingFetch()
        self.cache.get("pics", fetch)
        self.cache.get("news", fetch)

        self.cache.reset()

        assert len(self.cache) == 0
        assert self.cache.stats() == CacheStats(key_count=0, total_item_count=0)

    def test_stats_counts_keys_and_items(self):
        """Test that stats sum the sizes of collection values."""
        self.cache.get("pics", CountingFetch(result=frozenset({"a", "b", "c"})))
        self.cache.get("news", CountingFetch(result=frozenset({"d"})))

        assert self.cache.stats() == CacheStats(key_count=2, total_item_count=4)

    def test_stats_counts_scalar_values_once(self):
        """Test that non-collection values count as a single item."""
        self.cache.get("answer", lambda key: 42)
        self.cache.get("name", lambda key: "modguard")

        assert self.cache.stats() == CacheStats(key_count=2, total_item_count=2)


class TestConstruction:
    """Test cache configuration."""

    def test_ttl_converted_to_millis(self):
        assert TTLCache(ttl_seconds=5).ttl_ms == 5000

    def test_default_ttl_is_five_minutes(self):
        assert TTLCache().ttl_ms == 300_000

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_non_positive_ttl_rejected(self, ttl):
        with pytest.raises(ValueError, match="ttl_seconds must be > 0"):
            TTLCache(ttl_seconds=ttl)


class TestConcurrentAccess:
    """Test behaviour under concurrent lookups."""

    def test_concurrent_misses_may_each_fetch(self):
        """Test that concurrent misses are not deduplicated but all succeed."""
        cache = TTLCache(ttl_seconds=300)
        barrier = threading.Barrier(4)
        calls = []
        results = []

        def fetch(key):
            calls.append(key)
            return frozenset({"alice"})

        def worker():
            barrier.wait()
            results.append(cache.get("pics", fetch))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert 1 <= len(calls) <= 4
        assert results == [frozenset({"alice"})] * 4
        assert len(cache) == 1

    def test_slow_fetch_does_not_block_other_keys(self):
        """Test that a pending fetch for one key leaves other keys usable."""
        cache = TTLCache(ttl_seconds=300)
        started = threading.Event()
        release = threading.Event()

        def slow_fetch(key):
            started.set()
            release.wait(timeout=5)
            return "slow"

        thread = threading.Thread(target=cache.get, args=("slow", slow_fetch))
        thread.start()
        started.wait(timeout=5)

        assert cache.get("fast", lambda key: "fast") == "fast"

        release.set()
        thread.join()
        assert cache.peek("slow").value == "slow"
