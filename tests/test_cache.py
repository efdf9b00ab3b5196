from image_sync.utils.cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_value_expires_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=10, clock=clock)
    cache.set("a", b"1")
    clock.now += 9.9
    assert cache.get("a") == b"1"
    clock.now += 0.2
    assert cache.get("a") is None
    assert len(cache) == 0


def test_oldest_entry_is_evicted_when_full():
    cache = TTLCache(ttl_seconds=60, max_entries=2, clock=FakeClock())
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")  # "b" becomes least recently used
    cache.set("c", 3)
    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache


def test_zero_ttl_disables_caching():
    cache = TTLCache(ttl_seconds=0)
    cache.set("a", 1)
    assert cache.get("a") is None


def test_clear():
    cache = TTLCache(ttl_seconds=60)
    cache.set("a", 1)
    cache.clear()
    assert cache.get("a") is None
