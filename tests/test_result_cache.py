import pytest

from models.classification import ClassificationResult
from services.result_cache import ResultCache, fingerprint


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _result(scan_id="scan", risk="low"):
    return ClassificationResult(risk=risk, confidence=0.9, analysis="ok", scan_id=scan_id)


def test_fingerprint_is_stable_and_uses_prefix_only():
    payload = "A" * 1000
    assert fingerprint(payload) == fingerprint(payload)
    assert fingerprint(payload + "tail differs") == fingerprint(payload + "something else")
    assert fingerprint("abc") != fingerprint("abd")


def test_fingerprint_matches_known_values():
    # 31-multiplier rolling hash, signed 32-bit, base 36
    assert fingerprint("") == "0"
    assert fingerprint("a") == "2p"
    assert fingerprint("hello") == "1n1e4y"


def test_round_trip_within_ttl_returns_equal_result():
    cache = ResultCache(capacity=3, ttl_seconds=60, clock=FakeClock())
    result = _result()
    cache.put("fp1", result)
    assert cache.get("fp1") == result
    assert "fp1" in cache


def test_get_returns_a_copy():
    cache = ResultCache(clock=FakeClock())
    cache.put("fp1", _result())
    first = cache.get("fp1")
    first.cached = True
    assert cache.get("fp1").cached is False


def test_expired_entry_is_a_miss_and_removed():
    clock = FakeClock()
    cache = ResultCache(ttl_seconds=24 * 60 * 60, clock=clock)
    cache.put("fp1", _result())
    clock.advance(24 * 60 * 60 + 1)
    assert cache.get("fp1") is None
    assert len(cache) == 0


def test_capacity_evicts_exactly_the_oldest_inserted():
    cache = ResultCache(capacity=3, clock=FakeClock())
    for key in ("a", "b", "c"):
        cache.put(key, _result(scan_id=key))
    cache.get("a")  # reads do not refresh insertion order
    cache.put("d", _result(scan_id="d"))

    assert len(cache) == 3
    assert cache.get("a") is None
    assert [cache.get(k).scan_id for k in ("b", "c", "d")] == ["b", "c", "d"]


def test_reinserting_existing_key_does_not_evict():
    cache = ResultCache(capacity=2, clock=FakeClock())
    cache.put("a", _result(scan_id="a1"))
    cache.put("b", _result(scan_id="b"))
    cache.put("a", _result(scan_id="a2"))
    assert len(cache) == 2
    assert cache.get("a").scan_id == "a2"
    assert cache.get("b").scan_id == "b"


def test_prune_drops_only_expired_entries():
    clock = FakeClock()
    cache = ResultCache(ttl_seconds=10, clock=clock)
    cache.put("old", _result())
    clock.advance(6)
    cache.put("new", _result())
    clock.advance(5)
    assert cache.prune() == 1
    assert "new" in cache
    assert "old" not in cache


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        ResultCache(capacity=0)
