import pytest

from gemguard.core.policy import ScanPolicy
from gemguard.models import Analysis, Dependency, VulnerabilityRecord, VulnerableDependency


def _vd(name, vuln_id, severity):
    return VulnerableDependency(
        dependency=Dependency(name, "1.0.0", "https://rubygems.org"),
        vulnerability=VulnerabilityRecord(id=vuln_id, package_name=name, severity=severity),
        recommended_fix=f"bundle update {name}",
    )


class TestScanPolicy:

    def test_from_config(self):
        policy = ScanPolicy.from_config({
            "ignore_vulnerabilities": ["CVE-1"],
            "ignore_gems": ["rack"],
            "severity_threshold": "high",
            "project_name": "shop",
        })

        assert policy.should_ignore_vulnerability("CVE-1")
        assert policy.should_ignore_gem("rack")
        assert not policy.should_ignore_gem("rails")
        assert policy.project_name() == "shop"

    def test_from_config_with_nulls(self):
        policy = ScanPolicy.from_config({"ignore_gems": None, "severity_threshold": None})

        assert policy.severity_threshold == "low"
        assert not policy.should_ignore_gem("rack")

    @pytest.mark.parametrize(
        "threshold, severity, expected",
        [
            ("low", "LOW", True),
            ("medium", "low", False),
            ("medium", "MODERATE", True),
            ("high", "medium", False),
            ("high", "CRITICAL", True),
            ("critical", "high", False),
            ("high", "", True),
            ("high", "UNKNOWN", True),
            ("bogus", "low", True),
        ],
    )
    def test_meets_severity_threshold(self, threshold, severity, expected):
        assert ScanPolicy(severity_threshold=threshold).meets_severity_threshold(severity) is expected

    def test_apply_filters_without_mutating(self):
        analysis = Analysis([
            _vd("rack", "CVE-1", "HIGH"),
            _vd("rails", "CVE-2", "LOW"),
            _vd("puma", "CVE-3", "CRITICAL"),
            _vd("nokogiri", "CVE-4", "HIGH"),
        ])
        policy = ScanPolicy(ignore_vulnerabilities=["CVE-3"], ignore_gems=["nokogiri"], severity_threshold="medium")

        filtered = policy.apply(analysis)

        assert [vd.vulnerability.id for vd in filtered.vulnerable_dependencies] == ["CVE-1"]
        assert analysis.vulnerability_count == 4


class TestProjectName:

    def test_first_gem_in_gemfile(self, tmp_path):
        (tmp_path / "Gemfile").write_text("source 'https://rubygems.org'\n\ngem \"sinatra\", '~> 3.0'\ngem 'puma'\n")

        assert ScanPolicy().project_name(str(tmp_path)) == "sinatra"

    def test_gemspec(self, tmp_path):
        (tmp_path / "Gemfile").write_text("source 'https://rubygems.org'\ngemspec\n")
        (tmp_path / "my_gem.gemspec").write_text("")

        assert ScanPolicy().project_name(str(tmp_path)) == "my_gem"

    def test_directory_name(self, tmp_path):
        project = tmp_path / "storefront"
        project.mkdir()

        assert ScanPolicy().project_name(str(project)) == "storefront"
