"""Gemfile.lock reading."""

from .parser import DEFAULT_SOURCE, LockfileParser
from .validation import DependencySectionValidator

__all__ = ["DEFAULT_SOURCE", "LockfileParser", "DependencySectionValidator"]
