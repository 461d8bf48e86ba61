"""Typosquat detection against a corpus of popular gems.

Each resolved gem is compared with every popular gem by normalised
Levenshtein similarity. A gem whose name is itself popular is never flagged;
otherwise the single most similar popular gem at or above the threshold is
reported.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

import Levenshtein

from .models import Dependency, PopularPackage, RiskLevel, TyposquatMatch

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.8
POPULAR_GEMS_CACHE_TTL = 3600

FALLBACK_POPULAR_GEMS: Tuple[PopularPackage, ...] = (
    PopularPackage("rails", 100_000_000),
    PopularPackage("bundler", 90_000_000),
    PopularPackage("rake", 80_000_000),
    PopularPackage("json", 70_000_000),
    PopularPackage("minitest", 60_000_000),
    PopularPackage("thread_safe", 50_000_000),
    PopularPackage("tzinfo", 45_000_000),
    PopularPackage("concurrent-ruby", 40_000_000),
    PopularPackage("i18n", 35_000_000),
    PopularPackage("activesupport", 30_000_000),
    PopularPackage("activerecord", 25_000_000),
    PopularPackage("actionpack", 20_000_000),
    PopularPackage("actionview", 18_000_000),
    PopularPackage("activemodel", 15_000_000),
    PopularPackage("rspec", 12_000_000),
    PopularPackage("puma", 10_000_000),
    PopularPackage("nokogiri", 8_000_000),
    PopularPackage("thor", 7_000_000),
    PopularPackage("sass", 6_000_000),
    PopularPackage("devise", 5_000_000),
)

# (minimum similarity, level), checked in order
RISK_THRESHOLDS = [
    (0.95, RiskLevel.CRITICAL),
    (0.90, RiskLevel.HIGH),
    (0.85, RiskLevel.MEDIUM),
]


def similarity(first: Optional[str], second: Optional[str]) -> float:
    """Case-insensitive normalised Levenshtein similarity in [0.0, 1.0]."""
    if not first or not second:
        return 0.0
    if first == second:
        return 1.0

    a, b = first.lower(), second.lower()
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


def risk_level(score: float) -> RiskLevel:
    for minimum, level in RISK_THRESHOLDS:
        if score >= minimum:
            return level
    return RiskLevel.LOW


@dataclass(frozen=True)
class PopularityCache:
    packages: Tuple[PopularPackage, ...]
    fetched_at: float


class TyposquatChecker:
    """Flags gems whose names are suspiciously close to popular gems.

    Args:
        popularity_source: Object with ``fetch_popular_packages()``; when None
            the built-in corpus is used
        clock: Monotonic time source in seconds
        ttl_seconds: Lifetime of the cached corpus
        threshold: Minimum similarity for a match
        silent_fallback: Log corpus fetch failures at DEBUG instead of WARNING
    """

    def __init__(
        self,
        popularity_source=None,
        clock: Callable[[], float] = time.monotonic,
        ttl_seconds: float = POPULAR_GEMS_CACHE_TTL,
        threshold: float = SIMILARITY_THRESHOLD,
        silent_fallback: bool = True,
    ):
        self.popularity_source = popularity_source
        self.clock = clock
        self.ttl_seconds = ttl_seconds
        self.threshold = threshold
        self.silent_fallback = silent_fallback
        self.cache: Optional[PopularityCache] = None

    def check_dependencies(self, dependencies: Iterable[Dependency]) -> List[TyposquatMatch]:
        popular = self.popular_packages()
        matches = []

        for dependency in dependencies:
            best = self._find_suspicious_match(dependency.name, popular)
            if best is None:
                continue
            target, score = best
            matches.append(
                TyposquatMatch(
                    gem_name=dependency.name,
                    version=dependency.version,
                    suspected_target=target.name,
                    similarity_score=score,
                    target_downloads=target.downloads,
                    risk_level=risk_level(score),
                )
            )

        logger.debug(f"Typosquat check flagged {len(matches)} gems against {len(popular)} popular gems")
        return matches

    def popular_packages(self) -> Tuple[PopularPackage, ...]:
        """Return the cached corpus, refreshing it when older than the TTL.

        A failed refresh returns the built-in list without caching it, so the
        next call tries the source again.
        """
        now = self.clock()
        if self.cache is not None and now - self.cache.fetched_at < self.ttl_seconds:
            return self.cache.packages

        if self.popularity_source is None:
            self.cache = PopularityCache(packages=FALLBACK_POPULAR_GEMS, fetched_at=now)
            return self.cache.packages

        packages = self._fetch_corpus()
        if packages is None:
            return FALLBACK_POPULAR_GEMS

        self.cache = PopularityCache(packages=packages, fetched_at=now)
        return self.cache.packages

    def _fetch_corpus(self) -> Optional[Tuple[PopularPackage, ...]]:
        """Fetch from the source; None when the result is unusable."""
        try:
            packages = tuple(self.popularity_source.fetch_popular_packages() or ())
        except Exception as e:
            self._log_fallback(f"Popular gems fetch failed, using built-in list: {e}")
            return None

        if not packages or not all(isinstance(p, PopularPackage) for p in packages):
            self._log_fallback("Popular gems source returned no usable data, using built-in list")
            return None

        return packages

    def _log_fallback(self, message: str) -> None:
        if self.silent_fallback:
            logger.debug(message)
        else:
            logger.warning(message)

    def _find_suspicious_match(
        self, gem_name: str, popular: Tuple[PopularPackage, ...]
    ) -> Optional[Tuple[PopularPackage, float]]:
        if any(p.name == gem_name for p in popular):
            return None

        best: Optional[Tuple[PopularPackage, float]] = None
        for candidate in popular:
            score = similarity(gem_name, candidate.name)
            if score >= self.threshold and (best is None or score > best[1]):
                best = (candidate, score)
        return best
