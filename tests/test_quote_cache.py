"""
Tests for the caller-owned TTL cache.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from options_strategy_bt.data import QuoteCache


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def test_get_within_ttl():
    clock = FakeClock()
    cache = QuoteCache(ttl_seconds=10, clock=clock)
    cache.put("k", 1)
    clock.now = 9.9
    assert cache.get("k") == 1


def test_entry_expires_at_ttl():
    clock = FakeClock()
    cache = QuoteCache(ttl_seconds=10, clock=clock)
    cache.put("k", 1)
    clock.now = 10.0
    assert cache.get("k") is None
    assert len(cache) == 0


def test_get_or_load_calls_loader_once_per_ttl():
    clock = FakeClock()
    cache = QuoteCache(ttl_seconds=5, clock=clock)
    calls = []

    def loader():
        calls.append(clock.now)
        return {"loaded": len(calls)}

    assert cache.get_or_load("chains", loader) == {"loaded": 1}
    clock.now = 4.0
    assert cache.get_or_load("chains", loader) == {"loaded": 1}
    clock.now = 6.0
    assert cache.get_or_load("chains", loader) == {"loaded": 2}
    assert calls == [0.0, 6.0]


def test_clear():
    cache = QuoteCache()
    cache.put("a", 1)
    cache.put("b", 2)
    assert len(cache) == 2
    cache.clear()
    assert cache.get("a") is None


def test_separate_instances_do_not_share():
    a = QuoteCache()
    b = QuoteCache()
    a.put("k", 1)
    assert b.get("k") is None


def test_rejects_non_positive_ttl():
    with pytest.raises(ValueError):
        QuoteCache(ttl_seconds=0)


def test_concurrent_misses_load_once():
    cache = QuoteCache(ttl_seconds=60)
    calls = []
    start = threading.Barrier(4)

    def loader():
        calls.append(threading.get_ident())
        time.sleep(0.2)
        return {"chains": 1}

    def worker():
        start.wait()
        return cache.get_or_load("k", loader)

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda _: worker(), range(4)))

    assert len(calls) == 1
    assert all(r is results[0] for r in results)


def test_failed_load_is_not_cached():
    cache = QuoteCache(ttl_seconds=60)

    def broken():
        raise OSError("disk")

    with pytest.raises(OSError):
        cache.get_or_load("k", broken)
    assert cache.get_or_load("k", lambda: 7) == 7


def test_repr_is_short():
    cache = QuoteCache(ttl_seconds=5)
    cache.put("k", list(range(1000)))
    assert repr(cache) == "QuoteCache(ttl_seconds=5.0, entries=1)"
