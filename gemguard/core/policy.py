"""Scan policy derived from configuration: ignore lists and severity threshold."""

import os
import re
from pathlib import Path
from typing import Iterable, Optional

from ..models import Analysis

SEVERITY_LEVELS = ["low", "medium", "high", "critical"]

GEMFILE_GEM = re.compile(r"""gem\s+['"]([^'"]+)['"]""")


class ScanPolicy:
    def __init__(
        self,
        ignore_vulnerabilities: Iterable[str] = (),
        ignore_gems: Iterable[str] = (),
        severity_threshold: str = "low",
        project_name: Optional[str] = None,
    ):
        self.ignore_vulnerabilities = set(ignore_vulnerabilities or ())
        self.ignore_gems = set(ignore_gems or ())
        self.severity_threshold = severity_threshold or "low"
        self.configured_project_name = project_name

    @classmethod
    def from_config(cls, config: dict) -> "ScanPolicy":
        return cls(
            ignore_vulnerabilities=config.get("ignore_vulnerabilities") or (),
            ignore_gems=config.get("ignore_gems") or (),
            severity_threshold=config.get("severity_threshold") or "low",
            project_name=config.get("project_name"),
        )

    def should_ignore_vulnerability(self, vulnerability_id: str) -> bool:
        return vulnerability_id in self.ignore_vulnerabilities

    def should_ignore_gem(self, gem_name: str) -> bool:
        return gem_name in self.ignore_gems

    def meets_severity_threshold(self, severity: Optional[str]) -> bool:
        """True when ``severity`` is at or above the threshold.

        Empty and unrecognised severities always pass.
        """
        if not severity:
            return True
        severity = severity.lower()
        threshold = self.severity_threshold.lower()
        if severity == "moderate":
            severity = "medium"
        if severity not in SEVERITY_LEVELS or threshold not in SEVERITY_LEVELS:
            return True
        return SEVERITY_LEVELS.index(severity) >= SEVERITY_LEVELS.index(threshold)

    def apply(self, analysis: Analysis) -> Analysis:
        """Return a new Analysis without ignored or below-threshold entries."""
        return Analysis([
            vd for vd in analysis.vulnerable_dependencies
            if not self.should_ignore_gem(vd.dependency.name)
            and not self.should_ignore_vulnerability(vd.vulnerability.id)
            and self.meets_severity_threshold(vd.vulnerability.severity)
        ])

    def project_name(self, project_dir: Optional[str] = None) -> str:
        """Configured name, else the first Gemfile gem, else a gemspec, else the directory name."""
        if self.configured_project_name:
            return self.configured_project_name

        directory = Path(project_dir or os.getcwd())
        gemfile = directory / "Gemfile"
        if gemfile.is_file():
            match = GEMFILE_GEM.search(gemfile.read_text(encoding="utf-8", errors="replace"))
            if match:
                return match.group(1)

        gemspecs = sorted(directory.glob("*.gemspec"))
        if gemspecs:
            return gemspecs[0].stem

        return directory.resolve().name
