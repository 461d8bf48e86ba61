"""
SBOM command implementation.

Thin wrapper around GemGuardService.execute_sbom.
"""
import sys
from typing import Optional

import typer

from gemguard.core.service import GemGuardService


def sbom_command(
    ctx: typer.Context,
    lockfile: Optional[str] = typer.Option(None, "-l", "--lockfile", help="Path to Gemfile.lock"),
    sbom_format: Optional[str] = typer.Option(None, "-f", "--format", help="SBOM format (spdx, cyclone-dx)"),
    output: Optional[str] = typer.Option(None, "-o", "--output", help="Output file path (default: stdout)"),
    project: Optional[str] = typer.Option(None, "-p", "--project", help="Project name for the SBOM"),
    with_vulnerabilities: bool = typer.Option(
        False, "--with-vulnerabilities", help="Embed known vulnerabilities (CycloneDX only)"
    ),
    config_path: Optional[str] = typer.Option(None, "-c", "--config", help="Path to config YAML"),
):
    """Generate a Software Bill of Materials."""
    service = GemGuardService(verbose=(ctx.obj or {}).get("verbose", False))
    exit_code = service.execute_sbom(
        config_path=config_path,
        lockfile=lockfile,
        sbom_format=sbom_format,
        output=output,
        project=project,
        include_vulnerabilities=with_vulnerabilities,
    )

    if exit_code != 0:
        sys.exit(exit_code)
