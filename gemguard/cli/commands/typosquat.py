import sys
from typing import Optional

import typer

from gemguard.core.service import GemGuardService


def typosquat_command(
    ctx: typer.Context,
    lockfile: Optional[str] = typer.Option(None, "-l", "--lockfile", help="Path to Gemfile.lock"),
    output_format: Optional[str] = typer.Option(None, "-f", "--format", help="Output format (table, json)"),
    config_path: Optional[str] = typer.Option(None, "-c", "--config", help="Path to config YAML"),
):
    """Check dependencies for names that imitate popular gems."""
    service = GemGuardService(verbose=(ctx.obj or {}).get("verbose", False))
    exit_code = service.execute_typosquat(
        config_path=config_path,
        lockfile=lockfile,
        output_format=output_format,
    )

    if exit_code != 0:
        sys.exit(exit_code)
