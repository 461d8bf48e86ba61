"""
Automated remediation of vulnerable gems.

Turns an analysis into a fix plan, optionally asks for confirmation, backs up
the lock file and upgrades each planned gem through a package manager:

    fixer = AutoFixer("Gemfile.lock", "Gemfile", BundlerPackageManager(), ConsoleConfirmer(console))
    result = fixer.fix_vulnerabilities(analysis.vulnerable_dependencies, interactive=True)

Planning, dry runs and cancellations never touch the filesystem.
"""

import logging
import re
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..models import FixOutcome, FixPlanEntry, FixResult, FixStatus, VulnerableDependency
from ..utils.exceptions import FileError

FIX_TARGET = re.compile(r"--to\s+([^\s]+)")
VERSION_SHAPE = re.compile(r"^\d+\.\d+(\.\d+)?")
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def extract_target_version(recommended_fix: str) -> Optional[str]:
    """Return the version after ``--to`` in a fix command, if any."""
    match = FIX_TARGET.search(recommended_fix or "")
    return match.group(1) if match else None


def is_plausible_version(version: Optional[str]) -> bool:
    return bool(version) and VERSION_SHAPE.match(version) is not None


class AutoFixer:
    """Plans and applies gem upgrades for vulnerable dependencies.

    Args:
        lockfile_path: Gemfile.lock to back up and update
        gemfile_path: Gemfile that must exist for Bundler to resolve
        package_manager: Object with ``upgrade(gem_name) -> bool`` and ``relock() -> bool``
        confirmer: Object with ``select_subset(plan) -> list``; used in interactive mode
        clock: Returns the current datetime, used for backup names
    """

    def __init__(
        self,
        lockfile_path: str,
        gemfile_path: str,
        package_manager,
        confirmer=None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.lockfile_path = Path(lockfile_path)
        self.gemfile_path = Path(gemfile_path)
        self.package_manager = package_manager
        self.confirmer = confirmer
        self.clock = clock
        self.backup_path: Optional[Path] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    def fix_vulnerabilities(
        self,
        vulnerable_dependencies: Iterable[VulnerableDependency],
        dry_run: bool = False,
        interactive: bool = False,
        backup: bool = True,
    ) -> FixResult:
        """
        Plan and apply upgrades.

        Returns:
            FixResult with status no_fixes_needed, dry_run, cancelled or completed

        Raises:
            FileError: If the Gemfile or lock file is missing, or the backup fails
        """
        self.check_files()

        plan = self.plan_fixes(vulnerable_dependencies)
        self.logger.debug(f"Planned {len(plan)} fixes")

        if not plan:
            self.logger.debug("State: no_fixes_needed")
            return FixResult(status=FixStatus.NO_FIXES_NEEDED, message="No automatic fixes available.")

        if dry_run:
            self.logger.debug("State: dry_run")
            return FixResult(
                status=FixStatus.DRY_RUN,
                fixes=plan,
                message=f"Dry run completed. {len(plan)} fixes planned.",
            )

        if interactive:
            if self.confirmer is None:
                raise ValueError("Interactive mode requires a confirmer")
            plan = list(self.confirmer.select_subset(plan))
            if not plan:
                self.logger.debug("State: cancelled")
                return FixResult(status=FixStatus.CANCELLED, message="Fix operation cancelled by user.")

        if backup:
            self.create_backup()

        outcomes = self.apply_fixes(plan)
        applied = [outcome.entry for outcome in outcomes if outcome.success]
        failed = [outcome.entry for outcome in outcomes if not outcome.success]

        message = f"Applied {len(applied)} fixes successfully."
        if failed:
            message += f" {len(failed)} fixes failed."

        self.logger.debug(f"State: completed ({len(applied)} applied, {len(failed)} failed)")
        return FixResult(status=FixStatus.COMPLETED, fixes=applied, message=message, failed=failed)

    def check_files(self) -> None:
        """Raise FileError unless both the Gemfile and the lock file exist."""
        if not self.gemfile_path.is_file():
            raise FileError(
                f"Gemfile not found at {self.gemfile_path}. Auto-fix requires a Gemfile.",
                path=str(self.gemfile_path),
            )
        if not self.lockfile_path.is_file():
            raise FileError(
                f"Gemfile.lock not found at {self.lockfile_path}. Run 'bundle install' first.",
                path=str(self.lockfile_path),
            )

    def plan_fixes(self, vulnerable_dependencies: Iterable[VulnerableDependency]) -> List[FixPlanEntry]:
        plan = []
        for vulnerable in vulnerable_dependencies:
            target = extract_target_version(vulnerable.recommended_fix)
            if not is_plausible_version(target):
                self.logger.debug(f"No automatic fix for {vulnerable.dependency.name} ({vulnerable.recommended_fix!r})")
                continue
            plan.append(
                FixPlanEntry(
                    gem_name=vulnerable.dependency.name,
                    current_version=vulnerable.dependency.version,
                    target_version=target,
                    vulnerability_id=vulnerable.vulnerability.id,
                    severity=vulnerable.vulnerability.severity,
                )
            )
        return plan

    def create_backup(self) -> Optional[Path]:
        """Copy the lock file once per fixer; later calls are no-ops."""
        if self.backup_path is not None:
            return None

        backup_path = Path(f"{self.lockfile_path}.backup.{self.clock().strftime(BACKUP_TIMESTAMP_FORMAT)}")
        try:
            shutil.copyfile(self.lockfile_path, backup_path)
        except OSError as e:
            raise FileError(f"Could not back up {self.lockfile_path}: {e}", path=str(backup_path)) from e

        self.backup_path = backup_path
        self.logger.info(f"Created backup: {backup_path}")
        return backup_path

    def apply_fixes(self, plan: List[FixPlanEntry]) -> List[FixOutcome]:
        outcomes = []
        for entry in plan:
            try:
                success = bool(self.package_manager.upgrade(entry.gem_name))
            except (subprocess.SubprocessError, OSError) as e:
                self.logger.error(f"Upgrade of {entry.gem_name} raised: {e}")
                success = False

            if success:
                self.logger.info(f"Updated {entry.gem_name} to {entry.target_version}")
            else:
                self.logger.warning(f"Failed to update {entry.gem_name}")
            outcomes.append(FixOutcome(entry=entry, success=success))

        if any(outcome.success for outcome in outcomes):
            self.logger.debug("Relocking after successful upgrades")
            if not self.package_manager.relock():
                self.logger.warning("bundle install did not complete successfully")

        return outcomes
