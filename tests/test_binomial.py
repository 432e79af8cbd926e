"""
Test binomial scoring and the shared distribution cache.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from sitescore.phosphors.binomial import (
    BinomialDistribution,
    BinomialScorer,
    DistributionCache,
)
from sitescore.phosphors.fragments import FragmentIon, FragmentIonSet
from sitescore.phosphors.settings import AnnotationSettings
from sitescore.phosphors.spectrum import Spectrum


class CountingFactory:
    def __init__(self):
        self.calls = []

    def __call__(self, n, p):
        self.calls.append((n, p))
        return BinomialDistribution(n, p)


class TestBinomialDistribution:
    def test_bounds(self):
        distribution = BinomialDistribution(10, 0.1)
        assert distribution.descending_cumulative_probability(0) == 1.0
        assert distribution.descending_cumulative_probability(-3) == 1.0
        assert distribution.descending_cumulative_probability(11) == 0.0
        assert distribution.is_cache_empty()

    def test_values(self):
        distribution = BinomialDistribution(10, 0.1)
        assert distribution.descending_cumulative_probability(1) == pytest.approx(1 - 0.9**10)
        assert distribution.descending_cumulative_probability(10) == pytest.approx(0.1**10)
        assert not distribution.is_cache_empty()

    def test_monotonic(self):
        distribution = BinomialDistribution(20, 0.3)
        values = [distribution.descending_cumulative_probability(k) for k in range(22)]
        assert all(a >= b for a, b in zip(values, values[1:]))


class TestDistributionCache:
    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            DistributionCache(0)

    def test_capacity_bound(self):
        cache = DistributionCache(3)
        for i in range(1, 10):
            p = i / 100.0
            cache.add(p, 5, BinomialDistribution(5, p))
            assert len(cache) <= 3
            assert (p, 5) in cache

    def test_entries_by_n(self):
        cache = DistributionCache(2)
        cache.add(0.1, 5, BinomialDistribution(5, 0.1))
        cache.add(0.1, 6, BinomialDistribution(6, 0.1))
        assert len(cache) == 1
        assert cache.n_entries() == 2
        assert cache.get(0.1, 7) is None
        cache.clear()
        assert len(cache) == 0


class TestBinomialScorer:
    def test_no_match_scores_one(self):
        factory = CountingFactory()
        scorer = BinomialScorer(DistributionCache(), distribution_factory=factory)
        assert scorer.score_matches(0, 10, 0.1) == 1.0
        assert factory.calls == []
        assert len(scorer.cache) == 0

    def test_distribution_reused(self):
        factory = CountingFactory()
        scorer = BinomialScorer(DistributionCache(), distribution_factory=factory)
        first = scorer.score_matches(3, 10, 0.1)
        second = scorer.score_matches(4, 10, 0.1)
        assert len(factory.calls) == 1
        assert (0.1, 10) in scorer.cache
        assert first > second

    def test_unpopulated_distribution_not_cached(self):
        scorer = BinomialScorer(DistributionCache())
        assert scorer.score_matches(11, 10, 0.1) == 0.0
        assert (0.1, 10) not in scorer.cache

    def test_score_counts_matches(self):
        ions = FragmentIonSet()
        for position, mz in enumerate([200.0, 300.0, 400.0, 500.0], start=1):
            ions.add(FragmentIon("b", position, 1, mz))
        spectrum = Spectrum([200.01, 300.2, 400.03], [10.0, 20.0, 30.0])
        settings = AnnotationSettings(fragment_tolerance=0.05)
        scorer = BinomialScorer(DistributionCache())
        score = scorer.score(ions, spectrum, 0.1, ions.n_expected, settings)
        # 200 and 400 match, 300.2 is out of tolerance
        assert score == pytest.approx(BinomialDistribution(4, 0.1).descending_cumulative_probability(2))

    def test_concurrent_scoring(self):
        cache = DistributionCache(5)
        scorer = BinomialScorer(cache)
        tasks = [(k, 12, (i % 9 + 1) / 100.0) for i in range(200) for k in (1, 3)]
        expected = [
            BinomialDistribution(n, p).descending_cumulative_probability(k)
            for k, n, p in tasks
        ]
        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(lambda t: scorer.score_matches(*t), tasks))
        assert results == pytest.approx(expected)
        assert len(cache) <= 5
