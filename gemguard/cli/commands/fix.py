"""
Fix command implementation.

Thin wrapper around GemGuardService.execute_fix.
"""
import sys
from typing import Optional

import typer

from gemguard.core.service import GemGuardService


def fix_command(
    ctx: typer.Context,
    lockfile: Optional[str] = typer.Option(None, "-l", "--lockfile", help="Path to Gemfile.lock"),
    gemfile: Optional[str] = typer.Option(None, "-g", "--gemfile", help="Path to Gemfile"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show planned fixes without applying them"),
    interactive: bool = typer.Option(False, "-i", "--interactive", help="Ask for confirmation before applying fixes"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Do not back up Gemfile.lock before fixing"),
    output_format: Optional[str] = typer.Option(None, "-f", "--format", help="Output format (table, json)"),
    config_path: Optional[str] = typer.Option(None, "-c", "--config", help="Path to config YAML"),
):
    """Upgrade vulnerable gems to their fixed versions."""
    service = GemGuardService(verbose=(ctx.obj or {}).get("verbose", False))
    exit_code = service.execute_fix(
        config_path=config_path,
        lockfile=lockfile,
        gemfile=gemfile,
        dry_run=dry_run,
        interactive=interactive,
        backup=False if no_backup else None,
        output_format=output_format,
    )

    if exit_code != 0:
        sys.exit(exit_code)
