"""
EvaluationCache unit tests
"""

import pytest

from stratopt.optimization.cache import EvaluationCache


class TestEvaluationCache:
    """Bounded LRU behaviour and hit accounting"""

    def test_hit_and_miss_counting(self):
        cache = EvaluationCache(max_size=4)
        assert cache.get("a") is None
        cache.put("a", {"sharpeRatio": 1.0})

        assert cache.get("a") == {"sharpeRatio": 1.0}
        assert (cache.hits, cache.misses) == (1, 1)
        assert cache.hit_rate == pytest.approx(0.5)

    def test_least_recently_used_evicted(self):
        cache = EvaluationCache(max_size=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")
        cache.put("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache
        assert len(cache) == 2

    def test_record_hit_counts_without_lookup(self):
        cache = EvaluationCache()
        cache.record_hit()
        assert cache.hit_rate == 1.0

    def test_empty_hit_rate(self):
        assert EvaluationCache().hit_rate == 0.0

    def test_clear_resets_stats(self):
        cache = EvaluationCache()
        cache.put("a", 1)
        cache.get("a")
        cache.clear()
        assert len(cache) == 0
        assert (cache.hits, cache.misses) == (0, 0)

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            EvaluationCache(max_size=0)
