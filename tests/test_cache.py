"""In-memory cache fallback and the usage counters built on it."""

import time

from sourcescout.cache import InMemoryCache, hash_key
from sourcescout.usage import CacheUsageTracker


def test_entries_expire(monkeypatch):
    cache = InMemoryCache()
    cache.set("k", {"value": 1}, ttl=10)
    assert cache.get("k") == {"value": 1}

    now = time.time()
    monkeypatch.setattr(time, "time", lambda: now + 11)
    assert cache.get("k") is None


def test_incr_counts_and_keeps_first_expiry():
    cache = InMemoryCache()

    assert cache.incr("n", ttl=60) == 1
    assert cache.incr("n", ttl=60) == 2
    assert cache.get_int("n") == 2
    assert cache.get_int("missing") == 0
    assert cache.get("n") is None


def test_hash_key_is_stable_and_prefixed():
    assert hash_key("search", ["ice", 1]) == hash_key("search", ["ice", 1])
    assert hash_key("search", ["ice", 1]).startswith("search:")
    assert hash_key("search", ["ice", 1]) != hash_key("search", ["ice", 0])


def test_usage_tracker_counts_enhanced_separately():
    tracker = CacheUsageTracker(InMemoryCache())

    assert tracker.record_search("u1", enhanced=False) == 1
    assert tracker.record_search("u1", enhanced=True) == 2

    assert tracker.searches_this_month("u1") == 2
    assert tracker.enhanced_searches_today("u1") == 1
    assert tracker.enhanced_searches_today("u2") == 0


def test_monthly_counter_lives_for_a_month(monkeypatch):
    """The monthly bucket outlives a day; the Boss Mode bucket does not."""

    tracker = CacheUsageTracker(InMemoryCache())
    tracker.record_search("u1", enhanced=True)

    now = time.time()
    monkeypatch.setattr(time, "time", lambda: now + 2 * 24 * 60 * 60)
    assert tracker.searches_this_month("u1") == 1
    assert tracker.enhanced_searches_today("u1") == 0
