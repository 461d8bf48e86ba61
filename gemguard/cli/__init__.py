"""
CLI module for GemGuard.

Provides the Typer application; business logic lives in gemguard.core.
"""
from gemguard.cli.app import app as _app


def app():
    """Entry point function for pyproject.toml scripts."""
    _app()


__all__ = ['app']
