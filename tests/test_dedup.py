"""
Tests para api/dedup.py — Deduplicación de reentregas por MessageSid.
"""

from api.dedup import RecentMessageCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestRecentMessageCache:
    def test_unknown_sid_not_seen(self):
        assert RecentMessageCache().seen("SM1") is False

    def test_remembered_sid_seen(self):
        cache = RecentMessageCache()
        cache.remember("SM1")
        assert cache.seen("SM1") is True

    def test_empty_sid_never_tracked(self):
        cache = RecentMessageCache()
        cache.remember("")
        assert cache.seen("") is False

    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = RecentMessageCache(ttl_seconds=10, clock=clock)
        cache.remember("SM1")

        clock.now = 5
        assert cache.seen("SM1") is True
        clock.now = 11
        assert cache.seen("SM1") is False

    def test_evicts_oldest_over_capacity(self):
        cache = RecentMessageCache(max_entries=2)
        cache.remember("SM1")
        cache.remember("SM2")
        cache.remember("SM3")

        assert cache.seen("SM1") is False
        assert cache.seen("SM2") is True
        assert cache.seen("SM3") is True
