"""Cross-validation of the DEPENDENCIES section against resolved specs."""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from gemguard.utils.exceptions import InvalidLockfileError

logger = logging.getLogger(__name__)

DEPENDENCY_LINE = re.compile(r"^  (?P<name>[^\s!(]+)(?P<pinned>!)?(?: \((?P<requirement>[^)]*)\))?$")


@dataclass(frozen=True)
class DeclaredDependency:
    """A top-level entry from the DEPENDENCIES section."""
    name: str
    requirement: Optional[str]
    pinned_source: bool
    line_number: int


def parse_declared_dependency(line: str, line_number: int) -> Optional[DeclaredDependency]:
    match = DEPENDENCY_LINE.match(line)
    if not match:
        return None
    return DeclaredDependency(
        name=match.group("name"),
        requirement=match.group("requirement"),
        pinned_source=bool(match.group("pinned")),
        line_number=line_number,
    )


class DependencySectionValidator:
    """Checks that every declared top-level dependency was resolved.

    Disabled by default. Gemspec-driven projects declare gems that are not
    resolved as specs, so only enable it for fully resolved lock files.
    """

    def __init__(self, enabled: bool = False):
        self.enabled = enabled

    def validate(
        self,
        raw_lines: Iterable[tuple],
        spec_names: Iterable[str],
        origin: str,
    ) -> List[DeclaredDependency]:
        """Validate DEPENDENCIES lines against resolved spec names.

        Args:
            raw_lines: ``(line_number, line)`` pairs from the DEPENDENCIES section
            spec_names: Names of all resolved specs
            origin: Lock file path used in error messages

        Returns:
            Parsed declared dependencies (empty when disabled)

        Raises:
            InvalidLockfileError: On a malformed entry or an unresolved dependency
        """
        if not self.enabled:
            return []

        resolved = set(spec_names)
        declared = []
        for line_number, line in raw_lines:
            entry = parse_declared_dependency(line, line_number)
            if entry is None:
                raise InvalidLockfileError(
                    f"Invalid Gemfile.lock at {origin}: malformed DEPENDENCIES entry on line {line_number}: {line.strip()!r}",
                    path=origin,
                    line_number=line_number,
                )
            # git/path gems ("name!") may be resolved under a different spec set
            if not entry.pinned_source and entry.name not in resolved:
                raise InvalidLockfileError(
                    f"Invalid Gemfile.lock at {origin}: dependency '{entry.name}' is not present in resolved specs",
                    path=origin,
                    line_number=line_number,
                )
            declared.append(entry)

        logger.debug(f"Validated {len(declared)} declared dependencies in {origin}")
        return declared
