from gemguard.models import (
    Dependency,
    FixPlanEntry,
    FixResult,
    FixStatus,
    RiskLevel,
    Severity,
    TyposquatMatch,
    VulnerabilityRecord,
)


class TestDependency:

    def test_identity_ignores_dependency_names(self):
        a = Dependency("rack", "2.2.3", "https://rubygems.org", ("webrick",))
        b = Dependency("rack", "2.2.3", "https://rubygems.org")

        assert a == b
        assert len({a, b}) == 1

    def test_source_is_part_of_identity(self):
        assert Dependency("rack", "2.2.3", "https://rubygems.org") != Dependency("rack", "2.2.3", "https://gems.example")


class TestVulnerabilityRecord:

    def test_latest_fix(self):
        record = VulnerabilityRecord("GHSA-1", "rack", fixed_versions=("2.2.6.3", "3.0.4.2"))

        assert record.latest_fix == "3.0.4.2"
        assert VulnerabilityRecord("GHSA-2", "rack").latest_fix is None

    def test_severity_level(self):
        assert VulnerabilityRecord("GHSA-1", "rack", severity="MODERATE").severity_level == Severity.MEDIUM


def test_fix_result_to_dict():
    entry = FixPlanEntry("rack", "2.2.3", "2.2.8", "CVE-2023-27530", "HIGH")
    result = FixResult(FixStatus.DRY_RUN, [entry], "Dry run completed. 1 fixes planned.")

    assert result.to_dict() == {
        "status": "dry_run",
        "fixes": [{
            "gem_name": "rack",
            "current_version": "2.2.3",
            "target_version": "2.2.8",
            "vulnerability_id": "CVE-2023-27530",
            "severity": "HIGH",
        }],
        "failed": [],
        "message": "Dry run completed. 1 fixes planned.",
    }


def test_typosquat_match_to_dict_rounds_score():
    match = TyposquatMatch("railz", "0.0.1", "rails", 0.8000000001, 100, RiskLevel.LOW)

    assert match.to_dict()["similarity_score"] == 0.8
    assert match.to_dict()["risk_level"] == "low"
