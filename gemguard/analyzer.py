"""Correlates parsed dependencies with advisory records."""

import logging
import re
from typing import Callable, Iterable, List, Sequence

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from .models import Analysis, Dependency, VulnerabilityRecord, VulnerableDependency

logger = logging.getLogger(__name__)

VersionPredicate = Callable[[str, Sequence[str]], bool]

_OPERATOR = re.compile(r"^\s*(~>|>=|<=|!=|=|>|<)\s*(\S+)\s*$")


def always_affected(version: str, affected_versions: Sequence[str]) -> bool:
    """Treat every name match as affected."""
    return True


def _to_pep440_clause(clause: str) -> str:
    match = _OPERATOR.match(clause)
    if not match:
        # bare version
        return f"=={clause.strip()}"
    operator, bound = match.groups()
    if operator == "=":
        return f"=={bound}"
    if operator == "~>":
        # "~> 2" means ">= 2, < 3"; "~=" needs at least two release segments
        if "." not in bound:
            return f">={bound},<{int(bound) + 1}" if bound.isdigit() else f">={bound}"
        return f"~={bound}"
    return f"{operator}{bound}"


def requirement_predicate(version: str, affected_versions: Sequence[str]) -> bool:
    """Evaluate RubyGems-style requirements such as ``>= 6.1.0, < 6.1.3.1``.

    Each entry of ``affected_versions`` is either an exact version or a
    comma-separated requirement. Anything that cannot be parsed counts as
    affected, as does an empty list.
    """
    if not affected_versions:
        return True

    try:
        installed = Version(version)
    except InvalidVersion:
        return True

    for requirement in affected_versions:
        try:
            clauses = [_to_pep440_clause(part) for part in requirement.split(",") if part.strip()]
            specifier = SpecifierSet(",".join(clauses))
        except (InvalidSpecifier, ValueError):
            return True
        if specifier.contains(installed, prereleases=True):
            return True
    return False


class Analyzer:
    """Matches advisories to dependencies by exact gem name.

    ``version_predicate`` decides whether a name match actually affects the
    installed version. The default treats every match as affected.
    """

    def __init__(self, version_predicate: VersionPredicate = always_affected):
        self.version_predicate = version_predicate

    def analyze(
        self,
        dependencies: Iterable[Dependency],
        vulnerabilities: Iterable[VulnerabilityRecord],
    ) -> Analysis:
        vulnerabilities = list(vulnerabilities)
        vulnerable_dependencies: List[VulnerableDependency] = []

        for dependency in dependencies:
            matching = [v for v in vulnerabilities if v.package_name == dependency.name]
            for vulnerability in matching:
                if not self.version_predicate(dependency.version, vulnerability.affected_versions):
                    logger.debug(f"{vulnerability.id} does not affect {dependency.name} {dependency.version}")
                    continue
                vulnerable_dependencies.append(
                    VulnerableDependency(
                        dependency=dependency,
                        vulnerability=vulnerability,
                        recommended_fix=self.suggest_fix(dependency, vulnerability),
                    )
                )

        return Analysis(vulnerable_dependencies)

    @staticmethod
    def suggest_fix(dependency: Dependency, vulnerability: VulnerabilityRecord) -> str:
        if vulnerability.latest_fix:
            return f"bundle update {dependency.name} --to {vulnerability.latest_fix}"
        return f"bundle update {dependency.name}"
