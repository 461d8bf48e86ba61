"""Bundler-backed package manager used by the auto fixer."""

import logging
import os
import subprocess
from typing import List, Optional


class BundlerPackageManager:
    """Runs ``bundle`` in the project directory.

    Both operations report success as a boolean. A missing ``bundle``
    executable counts as a failure and is logged.
    """

    def __init__(self, project_dir: Optional[str] = None, bundle_command: str = "bundle"):
        self.project_dir = project_dir or os.getcwd()
        self.bundle_command = bundle_command
        self.logger = logging.getLogger(self.__class__.__name__)

    def upgrade(self, gem_name: str) -> bool:
        """Run ``bundle update <gem> --conservative`` with output discarded."""
        return self._run(["update", gem_name, "--conservative"], quiet=True)

    def relock(self) -> bool:
        """Run ``bundle install`` so the lock file reflects applied upgrades."""
        return self._run(["install"], quiet=False)

    def _run(self, args: List[str], quiet: bool) -> bool:
        command = [self.bundle_command, *args]
        self.logger.debug(f"Running {' '.join(command)} in {self.project_dir}")
        try:
            result = subprocess.run(
                command,
                cwd=self.project_dir,
                stdout=subprocess.DEVNULL if quiet else None,
                stderr=subprocess.DEVNULL if quiet else None,
            )
        except (FileNotFoundError, OSError) as e:
            self.logger.error(f"Could not run {self.bundle_command}: {e}")
            return False

        if result.returncode != 0:
            self.logger.debug(f"{' '.join(command)} exited with {result.returncode}")
        return result.returncode == 0
