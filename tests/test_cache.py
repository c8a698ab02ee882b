"""Tests for the TTL cache store."""

from datetime import timedelta

from conftest import ManualClock, make_cache


class TestGetAndSet:
    def test_miss_returns_none(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        assert cache.get("/api/items") is None
        assert cache.get_stats().misses == 1

    def test_hit_returns_data(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        cache.set("/api/items", {"items": [1, 2]})
        assert cache.get("/api/items") == {"items": [1, 2]}
        assert cache.get_stats().hits == 1

    def test_values_are_copied_in_and_out(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        payload = {"items": [1]}
        cache.set("k", payload)

        payload["items"].append(2)
        assert cache.get("k") == {"items": [1]}

        read = cache.get("k")
        read["items"].append(3)
        assert cache.get("k") == {"items": [1]}


class TestExpiry:
    async def test_live_until_ttl_then_evicted_on_read(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        cache.set("k", "v", ttl=timedelta(seconds=1))

        await clock.advance(1.0)
        assert cache.get("k") == "v"  # stale only once strictly past the TTL

        await clock.advance(0.1)
        assert cache.get("k") is None
        assert len(cache) == 0
        assert cache.get_stats().expirations == 1

    async def test_default_ttl_is_five_minutes(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        cache.set("k", "v")

        await clock.advance(299)
        assert cache.get("k") == "v"
        await clock.advance(2)
        assert cache.get("k") is None

    async def test_cleanup_expired_removes_unread_entries(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        cache.set("short", 1, ttl=timedelta(seconds=1))
        cache.set("long", 2, ttl=timedelta(seconds=10))

        await clock.advance(5)
        assert cache.cleanup_expired() == 1
        assert len(cache) == 1
        assert cache.has("long")
        assert not cache.has("short")


class TestClear:
    def test_clear_single_key(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.clear("a") == 1
        assert cache.get("a") is None
        assert cache.get("b") == 2

    def test_clear_missing_key_is_noop(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        assert cache.clear("missing") == 0

    def test_clear_all(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.clear() == 2
        assert len(cache) == 0

    def test_invalidate_by_pattern(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        cache.set("/api/users?page=1", 1)
        cache.set("/api/users?page=2", 2)
        cache.set("/api/orders", 3)

        assert cache.invalidate("/api/users") == 2
        assert cache.get("/api/orders") == 3


class TestSizeBound:
    async def test_oldest_entry_is_evicted(self, clock: ManualClock) -> None:
        cache = make_cache(clock, max_size=2)
        cache.set("a", 1)
        await clock.advance(1)
        cache.set("b", 2)
        await clock.advance(1)
        cache.set("c", 3)

        assert not cache.has("a")
        assert cache.has("b") and cache.has("c")
        assert cache.get_stats().evictions == 1

    def test_overwrite_does_not_evict(self, clock: ManualClock) -> None:
        cache = make_cache(clock, max_size=1)
        cache.set("a", 1)
        cache.set("a", 2)
        assert cache.get("a") == 2
        assert cache.get_stats().evictions == 0


class TestSweeper:
    async def test_start_and_stop(self, clock: ManualClock) -> None:
        cache = make_cache(clock)
        cache.start_sweeper(interval=60)
        assert cache.sweeper_running

        cache.start_sweeper(interval=60)  # idempotent
        cache.stop_sweeper()
        assert not cache.sweeper_running


def test_stats_to_dict(clock: ManualClock) -> None:
    cache = make_cache(clock)
    cache.set("a", 1)
    cache.get("a")
    cache.get("b")

    stats = cache.get_stats().to_dict()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["size"] == 1
    assert stats["hit_rate"] == "50.00%"
