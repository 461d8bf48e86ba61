import typer

from gemguard import __version__


def version_command():
    """Show the GemGuard version."""
    typer.echo(__version__)
