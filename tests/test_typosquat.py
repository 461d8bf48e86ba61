"""Tests for typosquat detection."""

import logging
from unittest.mock import MagicMock

import pytest

from gemguard.models import Dependency, PopularPackage, RiskLevel
from gemguard.typosquat import (
    FALLBACK_POPULAR_GEMS,
    TyposquatChecker,
    risk_level,
    similarity,
)


def _dep(name, version="1.0.0"):
    return Dependency(name, version, "https://rubygems.org")


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestSimilarity:

    def test_identical(self):
        assert similarity("rails", "rails") == 1.0

    def test_empty_inputs(self):
        assert similarity("", "rails") == 0.0
        assert similarity("rails", None) == 0.0

    def test_case_insensitive(self):
        assert similarity("Rails", "rails") == 1.0

    def test_one_edit_on_five_characters(self):
        assert similarity("railz", "rails") == pytest.approx(0.8)

    @pytest.mark.parametrize("a, b", [("rack", "rake"), ("nokogiri", "nokogirl"), ("x", "devise")])
    def test_bounded(self, a, b):
        assert 0.0 <= similarity(a, b) <= 1.0


class TestRiskLevel:

    @pytest.mark.parametrize(
        "score, expected",
        [
            (1.0, RiskLevel.CRITICAL),
            (0.95, RiskLevel.CRITICAL),
            (0.9499, RiskLevel.HIGH),
            (0.90, RiskLevel.HIGH),
            (0.8999, RiskLevel.MEDIUM),
            (0.85, RiskLevel.MEDIUM),
            (0.8499, RiskLevel.LOW),
            (0.8, RiskLevel.LOW),
        ],
    )
    def test_buckets(self, score, expected):
        assert risk_level(score) == expected


class TestTyposquatChecker:

    def test_flags_railz(self):
        matches = TyposquatChecker().check_dependencies([_dep("railz", "0.0.1")])

        assert len(matches) == 1
        match = matches[0]
        assert match.gem_name == "railz"
        assert match.version == "0.0.1"
        assert match.suspected_target == "rails"
        assert match.similarity_score == pytest.approx(0.8)
        assert match.target_downloads == 100_000_000
        assert match.risk_level == RiskLevel.LOW

    def test_popular_gem_is_never_flagged(self):
        assert TyposquatChecker().check_dependencies([_dep("rake"), _dep("rails"), _dep("json")]) == []

    def test_dissimilar_names_are_not_flagged(self):
        assert TyposquatChecker().check_dependencies([_dep("sidekiq"), _dep("pg")]) == []

    def test_best_match_wins(self):
        source = MagicMock()
        source.fetch_popular_packages.return_value = [
            PopularPackage("activesupport", 30),
            PopularPackage("activesupports", 1),
        ]
        checker = TyposquatChecker(popularity_source=source)

        matches = checker.check_dependencies([_dep("activesupporx")])

        assert matches[0].suspected_target == "activesupport"

    def test_tie_keeps_first_candidate(self):
        source = MagicMock()
        source.fetch_popular_packages.return_value = [PopularPackage("abcde", 5), PopularPackage("abcdf", 9)]
        checker = TyposquatChecker(popularity_source=source)

        matches = checker.check_dependencies([_dep("abcdx")])

        assert matches[0].suspected_target == "abcde"

    def test_threshold_is_configurable(self):
        checker = TyposquatChecker(threshold=0.9)

        assert checker.check_dependencies([_dep("railz")]) == []

    def test_uses_source_packages(self):
        source = MagicMock()
        source.fetch_popular_packages.return_value = [PopularPackage("sidekiq", 1_000)]
        checker = TyposquatChecker(popularity_source=source)

        matches = checker.check_dependencies([_dep("sidekiqq"), _dep("railz")])

        assert [m.gem_name for m in matches] == ["sidekiqq"]

    @pytest.mark.parametrize(
        "configure",
        [
            lambda s: setattr(s.fetch_popular_packages, "side_effect", RuntimeError("offline")),
            lambda s: setattr(s.fetch_popular_packages, "return_value", []),
            lambda s: setattr(s.fetch_popular_packages, "return_value", [{"name": "rails"}]),
        ],
    )
    def test_falls_back_to_builtin_list(self, configure):
        source = MagicMock()
        configure(source)
        checker = TyposquatChecker(popularity_source=source)

        assert checker.popular_packages() == FALLBACK_POPULAR_GEMS
        assert checker.check_dependencies([_dep("railz")])[0].suspected_target == "rails"

    def test_fallback_is_silent_by_default(self, caplog):
        source = MagicMock()
        source.fetch_popular_packages.side_effect = RuntimeError("offline")

        with caplog.at_level(logging.DEBUG, logger="gemguard.typosquat"):
            TyposquatChecker(popularity_source=source).popular_packages()

        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
        assert any("offline" in r.message for r in caplog.records)

    def test_fallback_can_warn(self, caplog):
        source = MagicMock()
        source.fetch_popular_packages.side_effect = RuntimeError("offline")

        with caplog.at_level(logging.WARNING, logger="gemguard.typosquat"):
            TyposquatChecker(popularity_source=source, silent_fallback=False).popular_packages()

        assert [r.levelname for r in caplog.records] == ["WARNING"]

    def test_corpus_is_cached_until_ttl_expires(self):
        source = MagicMock()
        source.fetch_popular_packages.return_value = [PopularPackage("sidekiq", 1)]
        clock = FakeClock()
        checker = TyposquatChecker(popularity_source=source, clock=clock, ttl_seconds=3600)

        checker.popular_packages()
        clock.now += 3599
        checker.popular_packages()
        assert source.fetch_popular_packages.call_count == 1

        clock.now += 1
        checker.popular_packages()
        assert source.fetch_popular_packages.call_count == 2

    def test_failed_refresh_is_retried_on_next_call(self):
        source = MagicMock()
        source.fetch_popular_packages.side_effect = [RuntimeError("offline"), [PopularPackage("sidekiq", 1)]]
        clock = FakeClock()
        checker = TyposquatChecker(popularity_source=source, clock=clock)

        assert checker.check_dependencies([_dep("sidekiqq")]) == []
        assert checker.cache is None

        clock.now += 60
        matches = checker.check_dependencies([_dep("sidekiqq")])

        assert source.fetch_popular_packages.call_count == 2
        assert [m.suspected_target for m in matches] == ["sidekiq"]
        assert checker.cache.packages == (PopularPackage("sidekiq", 1),)

    def test_builtin_list_is_cached_without_source(self):
        clock = FakeClock()
        checker = TyposquatChecker(clock=clock)

        checker.popular_packages()

        assert checker.cache.packages == FALLBACK_POPULAR_GEMS
        assert checker.cache.fetched_at == clock.now

    def test_exact_popular_name_is_exempt_despite_close_neighbour(self):
        source = MagicMock()
        source.fetch_popular_packages.return_value = [PopularPackage("rails", 1), PopularPackage("railz", 2)]
        checker = TyposquatChecker(popularity_source=source)

        assert checker.check_dependencies([_dep("railz"), _dep("rails")]) == []

    def test_fallback_corpus_contents(self):
        names = [p.name for p in FALLBACK_POPULAR_GEMS]

        assert len(names) == 20
        assert names[0] == "rails" and names[-1] == "devise"
        assert all(p.downloads > 0 for p in FALLBACK_POPULAR_GEMS)
