"""
Gemfile.lock parsing.

Reads the Bundler lock file format into an ordered, deduplicated list of
``Dependency`` records:

    GEM
      remote: https://rubygems.org/
      specs:
        actionpack (6.1.0)
          actionview (= 6.1.0)
        nokogiri (1.15.4-x86_64-linux)

    DEPENDENCIES
      actionpack

    BUNDLED WITH
       2.4.10
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from gemguard.lockfile.validation import DependencySectionValidator
from gemguard.models import Dependency
from gemguard.utils.exceptions import FileError, InvalidLockfileError

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "https://rubygems.org"
TERMINAL_SECTION = "BUNDLED WITH"

SOURCE_SECTIONS = {"GEM", "GIT", "PATH", "PLUGIN SOURCE"}
OPAQUE_SECTIONS = {"PLATFORMS", "DEPENDENCIES", "RUBY VERSION", "BUNDLED WITH", "CHECKSUMS"}

SPEC_LINE = re.compile(r"^    (?P<name>[^\s()]+) \((?P<version>[^()\s]+)\)$")
SPEC_DEPENDENCY_LINE = re.compile(r"^      (?P<name>[^\s()]+)(?: \([^()]*\))?$")
SOURCE_OPTION_LINE = re.compile(r"^  (?P<key>[a-z_]+): ?(?P<value>.*)$")


@dataclass
class _SourceBlock:
    kind: str
    remote: Optional[str] = None
    in_specs: bool = False


@dataclass
class _RawSpec:
    name: str
    version: str
    source: str
    line_number: int
    dependency_names: List[str] = field(default_factory=list)


def split_platform(version: str) -> Tuple[str, Optional[str]]:
    """Split ``1.15.4-x86_64-linux`` into ``("1.15.4", "x86_64-linux")``.

    Gem versions never contain a hyphen, so the first one starts the platform.
    """
    number, _, platform = version.partition("-")
    return number, platform or None


def normalise_source(remote: Optional[str]) -> str:
    if not remote or ("://" not in remote and not remote.startswith("git@")):
        return DEFAULT_SOURCE
    return remote.rstrip("/")


class LockfileParser:
    """Parses a Gemfile.lock into ``Dependency`` records."""

    def __init__(self, dependency_validator: Optional[DependencySectionValidator] = None):
        self.dependency_validator = dependency_validator or DependencySectionValidator()

    def parse(self, lockfile_path: str) -> List[Dependency]:
        """Read and parse a lock file.

        Args:
            lockfile_path: Path to the Gemfile.lock

        Returns:
            Dependencies in lock file order, one per gem name

        Raises:
            FileError: If the file cannot be read
            InvalidLockfileError: If the content is malformed or truncated
        """
        try:
            content = Path(lockfile_path).read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise InvalidLockfileError(
                f"Invalid Gemfile.lock at {lockfile_path}: not valid UTF-8 ({e})",
                path=str(lockfile_path),
            ) from e
        except OSError as e:
            raise FileError(f"Cannot read {lockfile_path}: {e}", path=str(lockfile_path)) from e

        return self.parse_text(content, origin=str(lockfile_path))

    def parse_text(self, content: str, origin: str = "Gemfile.lock") -> List[Dependency]:
        """Parse lock file text already held in memory."""
        specs, dependency_lines = self._parse_sections(content, origin)

        # truncated files lose the trailing section
        if not (content.startswith(TERMINAL_SECTION) or f"\n{TERMINAL_SECTION}" in content):
            raise InvalidLockfileError(
                f"Invalid Gemfile.lock at {origin}: missing '{TERMINAL_SECTION}' section",
                path=origin,
            )

        dependencies = [
            Dependency(
                name=spec.name,
                version=spec.version,
                source=spec.source,
                dependency_names=tuple(spec.dependency_names),
            )
            for spec in specs
        ]

        self.dependency_validator.validate(dependency_lines, [d.name for d in dependencies], origin)

        unique = self._deduplicate(dependencies)
        logger.debug(f"Parsed {len(unique)} gems from {origin} ({len(dependencies) - len(unique)} platform duplicates)")
        return unique

    @staticmethod
    def _deduplicate(dependencies: List[Dependency]) -> List[Dependency]:
        """Keep the first dependency seen for each name, preserving order."""
        seen = set()
        unique = []
        for dependency in dependencies:
            if dependency.name in seen:
                continue
            seen.add(dependency.name)
            unique.append(dependency)
        return unique

    def _parse_sections(self, content: str, origin: str) -> Tuple[List[_RawSpec], List[Tuple[int, str]]]:
        specs: List[_RawSpec] = []
        dependency_lines: List[Tuple[int, str]] = []
        section: Optional[str] = None
        block: Optional[_SourceBlock] = None
        current: Optional[_RawSpec] = None

        for line_number, line in enumerate(content.splitlines(), start=1):
            if not line.strip():
                continue

            if not line.startswith(" "):
                section = line.strip()
                if section not in SOURCE_SECTIONS and section not in OPAQUE_SECTIONS:
                    raise self._error(origin, line_number, f"unknown section '{section}'")
                block = _SourceBlock(kind=section) if section in SOURCE_SECTIONS else None
                current = None
                continue

            if section is None:
                raise self._error(origin, line_number, "content before the first section")

            if block is None:
                if section == "DEPENDENCIES":
                    dependency_lines.append((line_number, line))
                continue

            if not block.in_specs:
                option = SOURCE_OPTION_LINE.match(line)
                if not option:
                    raise self._error(origin, line_number, f"malformed {block.kind} option {line.strip()!r}")
                if option.group("key") == "specs":
                    block.in_specs = True
                elif option.group("key") == "remote" and block.remote is None:
                    block.remote = option.group("value").strip()
                continue

            spec_match = SPEC_LINE.match(line)
            if spec_match:
                version = split_platform(spec_match.group("version"))[0]
                current = _RawSpec(
                    name=spec_match.group("name"),
                    version=version,
                    source=normalise_source(block.remote),
                    line_number=line_number,
                )
                specs.append(current)
                continue

            dependency_match = SPEC_DEPENDENCY_LINE.match(line)
            if dependency_match and current is not None:
                current.dependency_names.append(dependency_match.group("name"))
                continue

            raise self._error(origin, line_number, f"malformed spec entry {line.strip()!r}")

        return specs, dependency_lines

    @staticmethod
    def _error(origin: str, line_number: int, reason: str) -> InvalidLockfileError:
        return InvalidLockfileError(
            f"Invalid Gemfile.lock at {origin}: {reason} on line {line_number}",
            path=origin,
            line_number=line_number,
        )
