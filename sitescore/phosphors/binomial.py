"""
Binomial scoring of fragment ion matches.

The PhosphoRS score of a peptide on a spectrum is P(X >= k) for
X ~ Bin(n, p): n expected ions, k matched ions and p the probability of a
random match. Distributions are kept in a bounded cache shared by every
call of a scorer.
"""

import logging
import threading
from typing import Callable, Dict, Optional

import numpy as np
from scipy.stats import binom

from .constants import DISTRIBUTION_CACHE_SIZE
from .fragments import SpectrumAnnotator

logger = logging.getLogger(__name__)


class BinomialDistribution:
    """Binomial distribution memoizing its descending cumulative probabilities."""

    def __init__(self, n: int, p: float):
        self.n = int(n)
        self.p = float(p)
        self._descending = None

    def is_cache_empty(self) -> bool:
        return self._descending is None

    def descending_cumulative_probability(self, k: int) -> float:
        """P(X >= k)."""
        if k <= 0:
            return 1.0
        if k > self.n:
            return 0.0
        if self._descending is None:
            # sf(k - 1) = P(X > k - 1) = P(X >= k), for k = 0..n
            self._descending = binom.sf(np.arange(-1, self.n), self.n, self.p)
        return float(self._descending[k])


class DistributionCache:
    """
    Bounded cache of binomial distributions, indexed by p then n.

    Reads are lock-free; inserts and evictions are serialized. When the
    number of p entries reaches capacity, arbitrary p entries are evicted.
    A reader racing an eviction at worst recomputes a distribution.
    """

    def __init__(self, capacity: int = DISTRIBUTION_CACHE_SIZE):
        if capacity < 1:
            raise ValueError("Distribution cache capacity must be at least 1.")
        self.capacity = capacity
        self._distributions: Dict[float, Dict[int, BinomialDistribution]] = {}
        self._lock = threading.Lock()

    def get(self, p: float, n: int) -> Optional[BinomialDistribution]:
        at_p = self._distributions.get(p)
        if at_p is None:
            return None
        return at_p.get(n)

    def add(self, p: float, n: int, distribution: BinomialDistribution) -> None:
        with self._lock:
            at_p = self._distributions.get(p)
            if at_p is None:
                if len(self._distributions) >= self.capacity:
                    for key in list(self._distributions):
                        del self._distributions[key]
                        if len(self._distributions) < self.capacity:
                            break
                    logger.debug(
                        f"Distribution cache full, evicted down to {len(self._distributions)} entries"
                    )
                # publish a populated dict so readers never see a partial entry
                self._distributions[p] = {n: distribution}
            else:
                at_p[n] = distribution

    def clear(self) -> None:
        with self._lock:
            self._distributions = {}

    def n_entries(self) -> int:
        return sum(len(at_p) for at_p in list(self._distributions.values()))

    def __len__(self) -> int:
        return len(self._distributions)

    def __contains__(self, key) -> bool:
        p, n = key
        return self.get(p, n) is not None


class BinomialScorer:
    """
    Scores a peptide's fragment ions against a spectrum.

    Args:
        cache: Distribution cache, a new one is created when None
        annotator: Spectrum annotator used to count matched ions
        distribution_factory: Callable (n, p) -> BinomialDistribution
    """

    def __init__(
        self,
        cache: Optional[DistributionCache] = None,
        annotator: Optional[SpectrumAnnotator] = None,
        distribution_factory: Callable[[int, float], BinomialDistribution] = BinomialDistribution,
    ):
        self.cache = cache if cache is not None else DistributionCache()
        self.annotator = annotator or SpectrumAnnotator()
        self.distribution_factory = distribution_factory

    def distribution(self, p: float, n: int):
        """Return the (p, n) distribution and whether it came from the cache."""
        distribution = self.cache.get(p, n)
        if distribution is not None:
            return distribution, True
        return self.distribution_factory(n, p), False

    def score(self, ions, spectrum, p: float, n: int, settings) -> float:
        """
        PhosphoRS score P (not -10 log P) of the ions on the spectrum.

        Returns exactly 1.0 when no ion matches.
        """
        k = self.annotator.count_matches(settings, spectrum, ions)
        return self.score_matches(k, n, p)

    def score_matches(self, k: int, n: int, p: float) -> float:
        if k == 0:
            return 1.0
        distribution, in_cache = self.distribution(p, n)
        result = distribution.descending_cumulative_probability(k)
        if not in_cache and not distribution.is_cache_empty():
            self.cache.add(p, n, distribution)
        return result
