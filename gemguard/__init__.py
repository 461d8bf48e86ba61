"""GemGuard - vulnerability, remediation and typosquat scanning for Gemfile.lock."""

__version__ = "0.4.0"
