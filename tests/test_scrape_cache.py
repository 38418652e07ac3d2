from __future__ import annotations

import threading
import time
import unittest

from app.scraping.cache import RequestDeduplicator, ScrapeResultCache, build_cache_key, describe_cache


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestBuildCacheKey(unittest.TestCase):
    def test_supplier_only(self) -> None:
        self.assertEqual(build_cache_key("bunnings"), "bunnings")

    def test_url_order_is_irrelevant(self) -> None:
        first = build_cache_key("bunnings", "timber", ["https://b", "https://a"])
        second = build_cache_key("bunnings", "timber", ["https://a", "https://b"])
        self.assertEqual(first, second)
        self.assertEqual(first, "bunnings:timber:https://a|https://b")

    def test_input_urls_not_mutated(self) -> None:
        urls = ["https://z", "https://a"]
        build_cache_key("bunnings", None, urls)
        self.assertEqual(urls, ["https://z", "https://a"])


class TestScrapeResultCache(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.cache: ScrapeResultCache[str] = ScrapeResultCache(ttl_seconds=60, max_size=3, clock=self.clock)

    def test_get_returns_stored_value(self) -> None:
        self.cache.set("a", "A")
        self.assertEqual(self.cache.get("a"), "A")

    def test_entry_expires_after_ttl(self) -> None:
        self.cache.set("a", "A")
        self.clock.advance(60.5)
        self.assertIsNone(self.cache.get("a"))
        self.assertEqual(len(self.cache), 0)

    def test_per_entry_ttl_override(self) -> None:
        self.cache.set("short", "S", ttl_seconds=5)
        self.cache.set("long", "L")
        self.clock.advance(10)
        self.assertIsNone(self.cache.get("short"))
        self.assertEqual(self.cache.get("long"), "L")

    def test_least_recently_used_is_evicted(self) -> None:
        self.cache.set("a", "A")
        self.cache.set("b", "B")
        self.cache.set("c", "C")
        self.cache.get("a")
        self.cache.set("d", "D")

        self.assertIsNone(self.cache.get("b"))
        self.assertEqual(self.cache.get("a"), "A")
        self.assertEqual(self.cache.get("d"), "D")
        self.assertEqual(len(self.cache), 3)

    def test_overwrite_at_capacity_does_not_evict(self) -> None:
        self.cache.set("a", "A")
        self.cache.set("b", "B")
        self.cache.set("c", "C")
        self.cache.set("a", "A2")
        self.assertEqual(len(self.cache), 3)
        self.assertEqual(self.cache.get("b"), "B")
        self.assertEqual(self.cache.get("a"), "A2")

    def test_prune_removes_only_expired(self) -> None:
        self.cache.set("old", "O")
        self.clock.advance(50)
        self.cache.set("new", "N")
        self.clock.advance(20)

        self.assertEqual(self.cache.prune(), 1)
        self.assertEqual(self.cache.get("new"), "N")

    def test_delete_and_clear(self) -> None:
        self.cache.set("a", "A")
        self.cache.set("b", "B")
        self.assertTrue(self.cache.delete("a"))
        self.assertFalse(self.cache.delete("a"))
        self.cache.clear()
        self.assertEqual(len(self.cache), 0)

    def test_stats_track_hits_and_misses(self) -> None:
        self.cache.set("a", "A")
        self.cache.get("a")
        self.cache.get("missing")
        stats = self.cache.stats()
        self.assertEqual((stats.hits, stats.misses, stats.size), (1, 1, 1))
        self.assertEqual(stats.hit_rate, 0.5)
        self.assertEqual(describe_cache(self.cache)["oldest_key"], "a")


class TestRequestDeduplicator(unittest.TestCase):
    def test_concurrent_callers_share_one_factory_call(self) -> None:
        deduplicator: RequestDeduplicator[list[int]] = RequestDeduplicator()
        calls = 0
        calls_lock = threading.Lock()
        release = threading.Event()

        def factory() -> list[int]:
            nonlocal calls
            with calls_lock:
                calls += 1
            release.wait(timeout=5)
            return [1, 2, 3]

        results: list[list[int]] = []
        results_lock = threading.Lock()

        def caller() -> None:
            value = deduplicator.deduplicate("key", factory)
            with results_lock:
                results.append(value)

        threads = [threading.Thread(target=caller) for _ in range(8)]
        for thread in threads:
            thread.start()

        deadline = time.monotonic() + 5
        while not deduplicator.is_pending("key") and time.monotonic() < deadline:
            time.sleep(0.01)
        # Give the other callers time to join the in-flight request.
        time.sleep(0.2)
        release.set()
        for thread in threads:
            thread.join(timeout=5)

        self.assertEqual(calls, 1)
        self.assertEqual(len(results), 8)
        self.assertTrue(all(value is results[0] for value in results))
        self.assertEqual(deduplicator.pending_count(), 0)

    def test_error_propagates_and_is_not_retained(self) -> None:
        deduplicator: RequestDeduplicator[str] = RequestDeduplicator()

        def failing() -> str:
            raise RuntimeError("upstream down")

        with self.assertRaises(RuntimeError):
            deduplicator.deduplicate("key", failing)

        self.assertFalse(deduplicator.is_pending("key"))
        self.assertEqual(deduplicator.deduplicate("key", lambda: "ok"), "ok")

    def test_pending_entry_removed_before_result_is_returned(self) -> None:
        deduplicator: RequestDeduplicator[str] = RequestDeduplicator()
        self.assertEqual(deduplicator.deduplicate("key", lambda: "value"), "value")
        self.assertFalse(deduplicator.is_pending("key"))
