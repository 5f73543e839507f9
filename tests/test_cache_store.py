from datetime import UTC, datetime, timedelta
import unittest

from cache_store import TTLCache


class _FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 2, 25, 15, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


class TTLCacheTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _FakeClock()
        self.cache = TTLCache(default_ttl_seconds=60, clock=self.clock)

    def test_put_get_hit(self) -> None:
        self.cache.put("k", {"v": 1})
        self.assertEqual(self.cache.get("k"), {"v": 1})

    def test_default_ttl_expiry(self) -> None:
        self.cache.put("k", 123)
        self.clock.now += timedelta(seconds=61)
        self.assertIsNone(self.cache.get("k"))
        self.assertEqual(self.cache.stats()["expirations"], 1)

    def test_explicit_ttl_overrides_default(self) -> None:
        self.cache.put("k", 123, ttl_seconds=600)
        self.clock.now += timedelta(seconds=120)
        self.assertEqual(self.cache.get("k"), 123)

    def test_lookup_reports_age(self) -> None:
        self.cache.put("k", [1])
        stored = self.clock.now
        self.clock.now += timedelta(seconds=45)
        result = self.cache.lookup("k")
        self.assertTrue(result.hit)
        self.assertEqual(result.value, [1])
        self.assertEqual(result.stored_at, stored)
        self.assertEqual(result.age_seconds, 45.0)

    def test_miss_has_no_metadata(self) -> None:
        result = self.cache.lookup("missing")
        self.assertFalse(result.hit)
        self.assertIsNone(result.stored_at)

    def test_non_positive_ttl_is_not_stored(self) -> None:
        self.cache.put("k", 1, ttl_seconds=0)
        self.assertIsNone(self.cache.get("k"))

    def test_purge_expired(self) -> None:
        self.cache.put("old", 1, ttl_seconds=10)
        self.cache.put("fresh", 2, ttl_seconds=100)
        self.clock.now += timedelta(seconds=30)
        self.assertEqual(self.cache.purge_expired(), 1)
        self.assertEqual(self.cache.stats()["entries"], 1)
        self.assertEqual(self.cache.get("fresh"), 2)

    def test_clear(self) -> None:
        self.cache.put("k", 1)
        self.cache.clear()
        self.assertIsNone(self.cache.get("k"))

    def test_stats_hit_ratio(self) -> None:
        self.cache.put("k", 1)
        self.cache.get("k")
        self.cache.get("missing")
        stats = self.cache.stats()
        self.assertEqual(stats["hits"], 1)
        self.assertEqual(stats["misses"], 1)
        self.assertEqual(stats["hit_ratio"], 0.5)
        self.assertEqual(stats["default_ttl_seconds"], 60)


if __name__ == "__main__":
    unittest.main()
