"""
Scan command implementation.

Thin wrapper around GemGuardService.execute_scan.
"""
import sys
from typing import Optional

import typer

from gemguard.core.service import GemGuardService


def scan_command(
    ctx: typer.Context,
    lockfile: Optional[str] = typer.Option(None, "-l", "--lockfile", help="Path to Gemfile.lock"),
    output_format: Optional[str] = typer.Option(None, "-f", "--format", help="Output format (table, json)"),
    config_path: Optional[str] = typer.Option(None, "-c", "--config", help="Path to config YAML"),
    output: Optional[str] = typer.Option(None, "-o", "--output", help="Also write the JSON report to this file"),
):
    """Scan Gemfile.lock dependencies for known vulnerabilities."""
    service = GemGuardService(verbose=(ctx.obj or {}).get("verbose", False))
    exit_code = service.execute_scan(
        config_path=config_path,
        lockfile=lockfile,
        output_format=output_format,
        output_file=output,
    )

    if exit_code != 0:
        sys.exit(exit_code)
