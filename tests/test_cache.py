"""
Unit tests for QRCodeCache
"""
from qr_feedback.services.cache import QRCodeCache

from tests.conftest import make_record


class Ticker:
    def __init__(self):
        self.value = 0.0

    def __call__(self):
        return self.value


class TestQRCodeCache:
    """Per-id entries and the listing snapshot"""

    def test_hit_within_ttl(self, clock):
        ticker = Ticker()
        cache = QRCodeCache(ttl_seconds=180, clock=ticker)
        cache.put(make_record(clock))

        ticker.value = 179.9
        assert cache.get("qr-1").context == "Table 5"

    def test_miss_after_ttl(self, clock):
        ticker = Ticker()
        cache = QRCodeCache(ttl_seconds=180, clock=ticker)
        cache.put(make_record(clock))

        ticker.value = 180
        assert cache.get("qr-1") is None
        assert len(cache) == 0

    def test_returns_copies(self, clock):
        cache = QRCodeCache()
        cache.put(make_record(clock))

        first = cache.get("qr-1")
        first.current_scans = 50
        assert cache.get("qr-1").current_scans == 0

    def test_stored_value_is_a_copy(self, clock):
        cache = QRCodeCache()
        record = make_record(clock)
        cache.put(record)
        record.context = "Changed"
        assert cache.get("qr-1").context == "Table 5"

    def test_snapshot_expires(self, clock):
        ticker = Ticker()
        cache = QRCodeCache(ttl_seconds=180, clock=ticker)
        cache.put_all([make_record(clock, "a"), make_record(clock, "b")])
        assert [r.id for r in cache.get_all()] == ["a", "b"]

        ticker.value = 200
        assert cache.get_all() is None

    def test_invalidate_drops_entry_and_snapshot(self, clock):
        cache = QRCodeCache()
        cache.put(make_record(clock, "a"))
        cache.put(make_record(clock, "b"))
        cache.put_all([make_record(clock, "a"), make_record(clock, "b")])

        cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.get("b") is not None
        assert cache.get_all() is None

    def test_clear_is_idempotent(self, clock):
        cache = QRCodeCache()
        cache.put(make_record(clock))
        cache.clear()
        cache.clear()
        assert cache.get("qr-1") is None
        assert cache.get_all() is None
