from types import SimpleNamespace

from wala import cache as cache_module
from wala.cache import RegionCache


def test_get_or_load_caches_until_evicted():
    c = RegionCache(ttl_seconds=60)
    calls = []

    def loader():
        calls.append(1)
        return {'value': len(calls)}

    assert c.get_or_load('products', 'k', loader) == {'value': 1}
    assert c.get_or_load('products', 'k', loader) == {'value': 1}
    assert len(calls) == 1
    assert c.hits == 1 and c.misses == 1

    c.evict('products')
    assert c.get_or_load('products', 'k', loader) == {'value': 2}


def test_evict_only_touches_one_region():
    c = RegionCache()
    c.set('products', 1, 'p')
    c.set('purchases', 1, 'q')
    c.evict('products')
    assert c.get('products', 1) is None
    assert c.get('purchases', 1) == 'q'
    assert c.size('purchases') == 1


def test_none_is_not_cached():
    c = RegionCache()
    assert c.get_or_load('products', 'missing', lambda: None) is None
    assert c.size('products') == 0


def test_entries_expire_after_ttl(monkeypatch):
    clock = [100.0]
    monkeypatch.setattr(cache_module, 'time', SimpleNamespace(monotonic=lambda: clock[0]))
    c = RegionCache(ttl_seconds=10)
    c.set('products', 'k', 'v')
    clock[0] += 5
    assert c.get('products', 'k') == 'v'
    clock[0] += 6
    assert c.get('products', 'k', 'gone') == 'gone'


def test_clear_resets_counters():
    c = RegionCache()
    c.get('r', 'x')
    c.clear()
    assert c.hits == 0 and c.misses == 0


def test_result_loaded_across_an_eviction_is_not_kept():
    c = RegionCache()

    def loader():
        # a write lands while the read is still in flight
        c.evict('products')
        return {'sold': False}

    assert c.get_or_load('products', 'p1', loader) == {'sold': False}
    assert c.size('products') == 0
    assert c.get_or_load('products', 'p1', lambda: {'sold': True}) == {'sold': True}
