"""
Tests for the validation result cache.
"""
import pytest

from engine.cache import ValidationCache
from models.validation import ValidationResult

from tests.helpers import make_shift


def key(n):
    return ValidationCache.make_key(f"s-{n}", [make_shift(f"shift-{n}", "a")])


def test_key_is_independent_of_shift_order():
    first = make_shift("s1", "a")
    second = make_shift("s2", "b")

    assert (ValidationCache.make_key("x", [first, second])
            == ValidationCache.make_key("x", [second, first]))


def test_key_changes_with_assignee():
    shift = make_shift("s1", "a")
    moved = make_shift("s1", "b")

    assert ValidationCache.make_key("x", [shift]) != ValidationCache.make_key("x", [moved])


def test_least_recently_used_entry_is_evicted():
    cache = ValidationCache(max_size=2)
    results = [ValidationResult() for _ in range(3)]
    cache.put(key(0), results[0])
    cache.put(key(1), results[1])

    assert cache.get(key(0)) is results[0]
    cache.put(key(2), results[2])

    assert key(0) in cache
    assert key(1) not in cache
    assert len(cache) == 2


def test_hits_and_misses_are_counted():
    cache = ValidationCache()
    cache.put(key(0), ValidationResult())

    cache.get(key(0))
    cache.get(key(1))

    assert cache.stats() == {"size": 1, "max_size": 50, "hits": 1, "misses": 1}


def test_invalidate_drops_everything():
    cache = ValidationCache()
    cache.put(key(0), ValidationResult())

    cache.invalidate()

    assert len(cache) == 0
    assert cache.get(key(0)) is None


def test_size_must_be_positive():
    with pytest.raises(ValueError):
        ValidationCache(max_size=0)
