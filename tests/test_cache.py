import json

from imagebed.cache import CacheStore
from imagebed.storage import MemoryJsonStore

PAYLOAD = {"url": "https://img.example.com/1.jpg", "fileName": "one", "size": "2 KB"}


def test_save_then_lookup_within_ttl(settings, clock):
    cache = CacheStore(settings, clock=clock)
    assert cache.save("abc123", PAYLOAD).ok
    clock.advance(settings.cache_ttl - 1)
    assert cache.lookup("abc123") == PAYLOAD


def test_entry_file_layout(settings, clock):
    CacheStore(settings, clock=clock).save("abc123", PAYLOAD)
    stored = json.loads((settings.cache_dir / "abc123.json").read_text())
    assert stored == {"timestamp": int(clock.now), "data": PAYLOAD}


def test_expired_entry_is_absent_and_purged(settings, clock):
    cache = CacheStore(settings, clock=clock)
    cache.save("abc123", PAYLOAD)
    path = settings.cache_dir / "abc123.json"
    assert path.exists()

    clock.advance(settings.cache_ttl)

    assert cache.lookup("abc123") is None
    assert not path.exists()


def test_unknown_hash_is_absent(settings, clock):
    assert CacheStore(settings, clock=clock).lookup("missing") is None


def test_disabled_cache_is_a_no_op(settings, clock):
    settings = settings.model_copy(update={"enable_cache": False})
    store = MemoryJsonStore()
    cache = CacheStore(settings, store=store, clock=clock)
    assert cache.save("abc123", PAYLOAD).ok
    assert "abc123" not in store
    assert cache.lookup("abc123") is None


def test_memory_store_substitutes_for_files(settings, clock):
    store = MemoryJsonStore()
    cache = CacheStore(settings, store=store, clock=clock)
    cache.save("abc123", PAYLOAD)
    assert cache.lookup("abc123") == PAYLOAD
    clock.advance(settings.cache_ttl + 5)
    assert cache.lookup("abc123") is None
    assert "abc123" not in store
    assert not settings.cache_dir.exists()


def test_entry_without_numeric_timestamp_is_absent_and_purged(settings, clock):
    settings.cache_dir.mkdir()
    path = settings.cache_dir / "abc123.json"
    path.write_text(json.dumps({"timestamp": "yesterday", "data": {}}))

    assert CacheStore(settings, clock=clock).lookup("abc123") is None
    assert not path.exists()


def test_entry_rewritten_during_purge_survives(settings, clock):
    fresh = dict(PAYLOAD, fileName="fresh")

    class ResavingStore(MemoryJsonStore):
        # Another handler stores a fresh result just before the purge takes the lock.
        def remove(self, key, when=None):
            self._items[key] = {"timestamp": int(clock.now), "data": fresh}
            super().remove(key, when)

    cache = CacheStore(settings, store=ResavingStore(), clock=clock)
    cache.save("abc123", PAYLOAD)
    clock.advance(settings.cache_ttl + 1)

    assert cache.lookup("abc123") is None
    assert cache.lookup("abc123") == fresh
