"""Tests for the per-key snapshot cache."""

import threading

import pytest

from market_structure.engine import analyze
from market_structure.snapshot_cache import SnapshotCache


@pytest.fixture
def empty_result():
    return analyze([])


class TestSnapshotCache:
    def test_get_before_publish(self):
        assert SnapshotCache().get("BTCUSDT", "1h") is None

    def test_publish_increments_version(self, empty_result):
        cache = SnapshotCache()

        first = cache.publish("BTCUSDT", "1h", empty_result)
        second = cache.publish("BTCUSDT", "1h", empty_result)

        assert (first.version, second.version) == (1, 2)
        assert cache.get("BTCUSDT", "1h") is second
        assert second.published_at >= first.published_at

    def test_keys_are_independent(self, empty_result):
        cache = SnapshotCache()
        cache.publish("BTCUSDT", "1h", empty_result)
        cache.publish("ETHUSDT", "1h", empty_result)

        assert cache.get("ETHUSDT", "1h").version == 1
        assert sorted(cache.keys()) == [("BTCUSDT", "1h"), ("ETHUSDT", "1h")]
        assert cache.writer_lock("BTCUSDT", "1h") is not cache.writer_lock("ETHUSDT", "1h")
        assert cache.writer_lock("BTCUSDT", "1h") is cache.writer_lock("BTCUSDT", "1h")

    def test_failed_compute_publishes_nothing(self, empty_result):
        cache = SnapshotCache()
        cache.publish("BTCUSDT", "1h", empty_result)

        def compute(previous):
            raise RuntimeError("source down")

        with pytest.raises(RuntimeError):
            cache.update("BTCUSDT", "1h", compute)
        assert cache.get("BTCUSDT", "1h").version == 1

    def test_update_sees_previous_snapshot(self, empty_result):
        cache = SnapshotCache()
        seen = []

        def compute(previous):
            seen.append(previous)
            return empty_result

        cache.update("BTCUSDT", "1h", compute)
        cache.update("BTCUSDT", "1h", compute)

        assert seen[0] is None
        assert seen[1].version == 1

    def test_invalidate(self, empty_result):
        cache = SnapshotCache()
        cache.publish("BTCUSDT", "1h", empty_result)
        cache.invalidate("BTCUSDT", "1h")
        cache.invalidate("BTCUSDT", "4h")
        assert cache.get("BTCUSDT", "1h") is None

    def test_concurrent_writers_are_serialized(self, empty_result):
        """Every update for one key gets its own version."""
        cache = SnapshotCache()
        versions = []
        versions_lock = threading.Lock()

        def worker():
            for _ in range(25):
                snapshot = cache.update("BTCUSDT", "1h", lambda previous: empty_result)
                with versions_lock:
                    versions.append(snapshot.version)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert cache.get("BTCUSDT", "1h").version == 200
        assert sorted(versions) == list(range(1, 201))
