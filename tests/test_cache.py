from office_finder.core.cache import CacheLayer, cache_key, normalize_text


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_cache_key_normalizes_case_and_whitespace():
    assert cache_key("Passport  Renewal", " Kothrud,  Pune ") == "passport renewal|kothrud, pune"
    assert cache_key("passport renewal", "kothrud, pune") == cache_key("PASSPORT RENEWAL", "Kothrud, Pune")
    assert normalize_text(None) == ""


def test_put_then_get_before_expiry():
    clock = FakeClock()
    cache = CacheLayer(default_ttl=60, clock=clock)

    entry = cache.put("k", [{"name": "PSK"}])

    assert entry.expires_at == 1060.0
    clock.now = 1059.0
    assert cache.get("k").results == [{"name": "PSK"}]


def test_expired_entry_is_removed_on_read():
    clock = FakeClock()
    cache = CacheLayer(default_ttl=60, clock=clock)
    cache.put("k", [{"name": "PSK"}])

    clock.now = 1060.0

    assert cache.get("k") is None
    assert len(cache) == 0


def test_explicit_ttl_overrides_default():
    clock = FakeClock()
    cache = CacheLayer(default_ttl=60, clock=clock)
    cache.put("k", [{}], ttl=5)

    clock.now = 1006.0

    assert cache.get("k") is None


def test_put_overwrites_and_copies_results():
    cache = CacheLayer(clock=FakeClock())
    results = [{"name": "A"}]
    cache.put("k", results)
    results.append({"name": "B"})

    assert len(cache.get("k").results) == 1

    cache.put("k", [{"name": "C"}])
    assert cache.get("k").results == [{"name": "C"}]
    assert len(cache) == 1


def test_invalidate():
    cache = CacheLayer(clock=FakeClock())
    cache.put("k", [{}])

    assert cache.invalidate("k") is True
    assert cache.invalidate("k") is False
    assert cache.get("k") is None


def test_missing_key_returns_none():
    assert CacheLayer().get("nope") is None
