"""
GemGuard service layer.

Each ``execute_*`` method runs one CLI workflow end to end and returns the
process exit code:

    0  success, nothing to report
    1  vulnerabilities or suspicious gems found, or fixes failed
    2  unreadable or malformed input, or an unsupported format
"""
import json
import logging
import os
from typing import List, Optional

from rich.console import Console

from ..analyzer import Analyzer, always_affected, requirement_predicate
from ..fixer import AutoFixer, BundlerPackageManager, ConsoleConfirmer
from ..lockfile import LockfileParser
from ..models import Analysis, Dependency, FixStatus
from ..reporter import Reporter, analysis_to_dict
from ..rich_utils.ui_helpers import get_console
from ..sbom import SUPPORTED_FORMATS, SbomGenerator
from ..sources import OSVAdvisorySource, RubyGemsPopularitySource
from ..typosquat import TyposquatChecker
from ..utils.exceptions import FileError, InvalidLockfileError
from .config_manager import ConfigManager
from .policy import ScanPolicy

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_INPUT_ERROR = 2

logger = logging.getLogger(__name__)


def configure_logging(config: dict, verbose: bool = False) -> None:
    """Configure the root logger from the ``logging`` config section."""
    settings = config.get("logging") or {}
    level_name = "DEBUG" if verbose else str(settings.get("level") or "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.get("file"):
        handlers.append(logging.FileHandler(settings["file"]))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


class GemGuardService:
    """Runs scan, typosquat, fix and SBOM workflows."""

    def __init__(self, verbose: bool = False, console: Optional[Console] = None,
                 error_console: Optional[Console] = None):
        self.verbose = verbose
        self.config_manager = ConfigManager()
        self.console = console or get_console()
        self.error_console = error_console or get_console(stderr=True)
        self.reporter = Reporter(self.console)

    def load_config(self, config_path: Optional[str] = None, **overrides) -> dict:
        config = self.config_manager.discover_and_load_config(config_path)
        config = self.config_manager.merge_config_and_args(config, **overrides)
        configure_logging(config, self.verbose)
        return config

    def parse_lockfile(self, config: dict) -> List[Dependency]:
        lockfile = config.get("lockfile") or "Gemfile.lock"
        dependencies = LockfileParser().parse(lockfile)
        logger.info(f"Parsed {len(dependencies)} gems from {lockfile}")
        return dependencies

    def analyze(self, config: dict, dependencies: List[Dependency]) -> Analysis:
        """Fetch advisories and apply the configured ignore lists and threshold."""
        sources = self.config_manager.get(config, "scan.sources", ["osv"]) or []
        vulnerabilities = OSVAdvisorySource(config).fetch_for(dependencies) if "osv" in sources else []

        if self.config_manager.get(config, "scan.version_filtering", False):
            analyzer = Analyzer(version_predicate=requirement_predicate)
        else:
            analyzer = Analyzer(version_predicate=always_affected)

        analysis = analyzer.analyze(dependencies, vulnerabilities)
        return ScanPolicy.from_config(config).apply(analysis)

    def _report_error(self, error: Exception) -> int:
        self.error_console.print(f"❌ Error: {error}", style="bold red", markup=False)
        return EXIT_INPUT_ERROR

    def execute_scan(
        self,
        config_path: Optional[str] = None,
        lockfile: Optional[str] = None,
        output_format: Optional[str] = None,
        output_file: Optional[str] = None,
    ) -> int:
        try:
            config = self.load_config(config_path, lockfile=lockfile, format=output_format, output_file=output_file)
            dependencies = self.parse_lockfile(config)
            analysis = self.analyze(config, dependencies)
            self.reporter.report(analysis, config.get("format") or "table")
        except (FileError, InvalidLockfileError, ValueError) as e:
            return self._report_error(e)

        if config.get("output_file"):
            try:
                with open(config["output_file"], "w", encoding="utf-8") as f:
                    json.dump(analysis_to_dict(analysis), f, indent=2)
            except OSError as e:
                return self._report_error(FileError(f"Cannot write {config['output_file']}: {e}", path=config["output_file"]))
            self.error_console.print(f"📄 Report written to {config['output_file']}", style="dim", markup=False)

        if analysis.has_vulnerabilities and config.get("fail_on_vulnerabilities", True):
            return EXIT_FINDINGS
        return EXIT_OK

    def execute_typosquat(
        self,
        config_path: Optional[str] = None,
        lockfile: Optional[str] = None,
        output_format: Optional[str] = None,
    ) -> int:
        try:
            config = self.load_config(config_path, lockfile=lockfile, format=output_format)
            dependencies = self.parse_lockfile(config)
            checker = self.build_typosquat_checker(config)
            policy = ScanPolicy.from_config(config)
            matches = [
                m for m in checker.check_dependencies(dependencies)
                if not policy.should_ignore_gem(m.gem_name)
            ]
            self.reporter.report_typosquats(matches, config.get("format") or "table")
        except (FileError, InvalidLockfileError, ValueError) as e:
            return self._report_error(e)

        return EXIT_FINDINGS if matches else EXIT_OK

    def build_typosquat_checker(self, config: dict) -> TyposquatChecker:
        settings = config.get("typosquat") or {}
        source = RubyGemsPopularitySource(config) if settings.get("popular_gems_url") else None
        return TyposquatChecker(
            popularity_source=source,
            ttl_seconds=settings.get("cache_ttl_seconds", 3600),
            threshold=settings.get("threshold", 0.8),
            silent_fallback=settings.get("silent_fallback", True),
        )

    def execute_fix(
        self,
        config_path: Optional[str] = None,
        lockfile: Optional[str] = None,
        gemfile: Optional[str] = None,
        dry_run: bool = False,
        interactive: bool = False,
        backup: Optional[bool] = None,
        output_format: Optional[str] = None,
    ) -> int:
        try:
            config = self.load_config(
                config_path, lockfile=lockfile, gemfile=gemfile, format=output_format, **{"fix.backup": backup}
            )
            lockfile_path = config.get("lockfile") or "Gemfile.lock"
            # a configured Gemfile is resolved next to the lock file
            gemfile_path = gemfile or os.path.join(os.path.dirname(lockfile_path), config.get("gemfile") or "Gemfile")

            fixer = AutoFixer(
                lockfile_path=lockfile_path,
                gemfile_path=gemfile_path,
                package_manager=BundlerPackageManager(
                    project_dir=os.path.dirname(os.path.abspath(lockfile_path)),
                    bundle_command=self.config_manager.get(config, "fix.bundle_command", "bundle"),
                ),
                confirmer=ConsoleConfirmer(self.console),
            )
            fixer.check_files()

            dependencies = self.parse_lockfile(config)
            analysis = self.analyze(config, dependencies)
            result = fixer.fix_vulnerabilities(
                analysis.vulnerable_dependencies,
                dry_run=dry_run,
                interactive=interactive,
                backup=bool(self.config_manager.get(config, "fix.backup", True)),
            )
            if fixer.backup_path is not None:
                self.console.print(f"📦 Created backup: {fixer.backup_path}", markup=False)
            self.reporter.report_fix_result(result, config.get("format") or "table")
        except (FileError, InvalidLockfileError, ValueError) as e:
            return self._report_error(e)

        if result.status == FixStatus.COMPLETED and result.failed:
            return EXIT_FINDINGS
        return EXIT_OK

    def execute_sbom(
        self,
        config_path: Optional[str] = None,
        lockfile: Optional[str] = None,
        sbom_format: Optional[str] = None,
        output: Optional[str] = None,
        project: Optional[str] = None,
        include_vulnerabilities: bool = False,
    ) -> int:
        try:
            config = self.load_config(config_path, lockfile=lockfile, project_name=project, **{"sbom.format": sbom_format})
            fmt = (self.config_manager.get(config, "sbom.format") or "spdx").lower()
            if fmt not in SUPPORTED_FORMATS:
                raise ValueError(f"Unsupported format '{fmt}'. Use 'spdx' or 'cyclone-dx'")

            dependencies = self.parse_lockfile(config)
            project_name = ScanPolicy.from_config(config).project_name(
                os.path.dirname(os.path.abspath(config.get("lockfile") or "Gemfile.lock"))
            )
            vulnerable = self.analyze(config, dependencies).vulnerable_dependencies if include_vulnerabilities else None

            document = SbomGenerator(project_name).generate(dependencies, fmt, vulnerable)
        except (FileError, InvalidLockfileError, ValueError) as e:
            return self._report_error(e)

        text = document if isinstance(document, str) else json.dumps(document, indent=2)
        target = output or config.get("output_file")
        if target:
            try:
                with open(target, "w", encoding="utf-8") as f:
                    f.write(text)
            except OSError as e:
                return self._report_error(FileError(f"Cannot write {target}: {e}", path=target))
            self.console.print(f"SBOM written to {target}", markup=False)
        else:
            self.console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)
        return EXIT_OK
