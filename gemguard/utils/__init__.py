"""
Utility modules for GemGuard.

Shared exception types and the decorator that absorbs external API failures.
"""

from gemguard.utils.api_error_handler import handle_external_api_errors
from gemguard.utils.exceptions import (
    APIConnectionError,
    APINotFoundError,
    APIRateLimitError,
    APIServerError,
    APITimeoutError,
    ExternalAPIError,
    FileError,
    GemGuardError,
    InvalidLockfileError,
    RestrictedEnvironmentError,
)

__all__ = [
    "handle_external_api_errors",
    "GemGuardError",
    "FileError",
    "InvalidLockfileError",
    "ExternalAPIError",
    "APITimeoutError",
    "APIConnectionError",
    "RestrictedEnvironmentError",
    "APIRateLimitError",
    "APINotFoundError",
    "APIServerError",
]
