"""
Main CLI application for GemGuard.

Defines the Typer application structure and command routing; each command
is a thin wrapper around GemGuardService.
"""
import typer

from gemguard.cli.commands.fix import fix_command
from gemguard.cli.commands.sbom import sbom_command
from gemguard.cli.commands.scan import scan_command
from gemguard.cli.commands.typosquat import typosquat_command
from gemguard.cli.commands.version import version_command

app = typer.Typer(help="GemGuard - security scanning for Bundler projects", no_args_is_help=True)

app.command("scan", help="Scan Gemfile.lock dependencies for known vulnerabilities.")(scan_command)
app.command("typosquat", help="Check dependencies for names that imitate popular gems.")(typosquat_command)
app.command("fix", help="Upgrade vulnerable gems to their fixed versions.")(fix_command)
app.command("sbom", help="Generate a Software Bill of Materials (SPDX or CycloneDX).")(sbom_command)
app.command("version", help="Show the GemGuard version.")(version_command)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable debug logging"),
):
    """GemGuard - security scanning for Bundler projects.

    Run 'gemguard scan' to check Gemfile.lock against OSV.dev advisories.
    """
    ctx.obj = {"verbose": verbose}
