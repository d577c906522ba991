from spacebot.database.db_cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TTLCache(default_ttl=30, clock=clock)
    cache.set("automations:1:MEMBER_JOIN", ["rule"])

    clock.now = 29
    assert cache.get("automations:1:MEMBER_JOIN") == ["rule"]

    clock.now = 30
    assert cache.get("automations:1:MEMBER_JOIN") is None
    assert len(cache) == 0


def test_zero_ttl_disables_caching():
    cache = TTLCache(default_ttl=0)
    cache.set("key", "value")
    assert cache.get("key") is None


def test_invalidate_by_prefix():
    cache = TTLCache()
    cache.set("automations:1:MEMBER_JOIN", [])
    cache.set("automations:1:MESSAGE_CREATE", [])
    cache.set("automations:12:MEMBER_JOIN", [])

    assert cache.invalidate("automations:1:") == 2
    assert cache.get("automations:12:MEMBER_JOIN") == []
    assert cache.invalidate() == 1
    assert len(cache) == 0
