"""
Exception types for GemGuard.

Two families live here:

- Scan errors (``FileError``, ``InvalidLockfileError``) raised by the lock
  file parser and the auto fixer before any mutation happens.
- External API errors raised or logged when talking to OSV.dev or the
  RubyGems popularity endpoint. Each carries the service, the endpoint and
  a suggested action for the operator, and keeps the original exception.
"""

from typing import Optional


class GemGuardError(Exception):
    """Base class for all GemGuard scan errors."""


class FileError(GemGuardError):
    """A manifest, lock file or backup target is missing or inaccessible."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class InvalidLockfileError(GemGuardError):
    """The lock file is structurally malformed or truncated."""

    def __init__(self, message: str, path: Optional[str] = None, line_number: Optional[int] = None):
        self.path = path
        self.line_number = line_number
        super().__init__(message)


class ExternalAPIError(Exception):
    """
    Base exception for all external API-related errors.

    Used directly for API errors that don't fit a more specific category.
    """

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        endpoint: Optional[str] = None,
        original_exception: Optional[Exception] = None,
        suggested_action: Optional[str] = None,
    ):
        """
        Initialize ExternalAPIError.

        Args:
            message: Human-readable error message
            service: Name of the external service (e.g., "OSV.dev", "rubygems.org")
            endpoint: API endpoint that failed (e.g., "/v1/querybatch")
            original_exception: The original exception that was caught
            suggested_action: Suggested action for the user to resolve the issue
        """
        self.message = message
        self.service = service
        self.endpoint = endpoint
        self.original_exception = original_exception
        self.suggested_action = suggested_action

        error_parts = [message]

        if service:
            error_parts.append(f"Service: {service}")

        if endpoint:
            error_parts.append(f"Endpoint: {endpoint}")

        if suggested_action:
            error_parts.append(f"Action: {suggested_action}")

        if original_exception:
            error_parts.append(f"Original error: {str(original_exception)}")

        super().__init__(" | ".join(error_parts))


class APITimeoutError(ExternalAPIError):
    """Raised when an API request times out."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        endpoint: Optional[str] = None,
        timeout_duration: Optional[int] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.timeout_duration = timeout_duration

        suggested_action = "Check network connectivity and retry"
        if timeout_duration:
            suggested_action += f" (timeout after {timeout_duration}s)"

        super().__init__(
            message=message,
            service=service,
            endpoint=endpoint,
            original_exception=original_exception,
            suggested_action=suggested_action,
        )


class APIConnectionError(ExternalAPIError):
    """Raised when no connection to the API can be established."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        endpoint: Optional[str] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            service=service,
            endpoint=endpoint,
            original_exception=original_exception,
            suggested_action="Check network connectivity and verify the service is accessible",
        )


class RestrictedEnvironmentError(APIConnectionError):
    """
    Raised when a connection failure looks like a DNS, proxy or firewall
    restriction rather than an outage of the service itself.
    """

    ACTIONS = {
        "dns": "DNS resolution failed. In corporate environments, contact IT to whitelist this domain",
        "proxy": "Proxy connection failed. Check corporate proxy settings or contact IT to allow this service",
        "firewall": "Connection refused. In regulated environments, contact IT to update firewall rules",
    }

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        endpoint: Optional[str] = None,
        original_exception: Optional[Exception] = None,
        restriction_type: Optional[str] = None,
    ):
        self.restriction_type = restriction_type
        restriction_action = self.ACTIONS.get(
            restriction_type,
            "Network connection failed. This may be a firewall or proxy restriction. "
            "Contact IT to verify access to this service",
        )

        # skip APIConnectionError's fixed suggested_action
        ExternalAPIError.__init__(
            self,
            message=message,
            service=service,
            endpoint=endpoint,
            original_exception=original_exception,
            suggested_action=restriction_action,
        )

    @classmethod
    def from_connection_error(
        cls,
        connection_error: Exception,
        service: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> "RestrictedEnvironmentError":
        """
        Classify a connection error by its message.

        Args:
            connection_error: The original connection exception
            service: Name of the external service
            endpoint: API endpoint that failed

        Returns:
            RestrictedEnvironmentError with restriction_type set to dns,
            proxy, firewall or unknown
        """
        error_msg = str(connection_error).lower()

        if any(
            pattern in error_msg
            for pattern in [
                "name resolution",
                "dns",
                "nodename nor servname provided",
                "getaddrinfo failed",
                "name or service not known",
            ]
        ):
            return cls(
                message="DNS resolution failed",
                service=service,
                endpoint=endpoint,
                original_exception=connection_error,
                restriction_type="dns",
            )

        if any(
            pattern in error_msg
            for pattern in ["proxy", "407 proxy authentication", "tunnel connection failed"]
        ):
            return cls(
                message="Proxy connection failed",
                service=service,
                endpoint=endpoint,
                original_exception=connection_error,
                restriction_type="proxy",
            )

        if "connection refused" in error_msg or "errno 111" in error_msg:
            return cls(
                message="Connection refused",
                service=service,
                endpoint=endpoint,
                original_exception=connection_error,
                restriction_type="firewall",
            )

        return cls(
            message="Network connection failed",
            service=service,
            endpoint=endpoint,
            original_exception=connection_error,
            restriction_type="unknown",
        )


class APIRateLimitError(ExternalAPIError):
    """Raised when the API rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        endpoint: Optional[str] = None,
        retry_after: Optional[int] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.retry_after = retry_after

        suggested_action = "Wait before retrying"
        if retry_after:
            suggested_action += f" (retry after {retry_after}s)"

        super().__init__(
            message=message,
            service=service,
            endpoint=endpoint,
            original_exception=original_exception,
            suggested_action=suggested_action,
        )


class APINotFoundError(ExternalAPIError):
    """Raised when an API resource is not found (404)."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        endpoint: Optional[str] = None,
        resource: Optional[str] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.resource = resource

        super().__init__(
            message=message,
            service=service,
            endpoint=endpoint,
            original_exception=original_exception,
            suggested_action="Verify the resource exists in the service",
        )


class APIServerError(ExternalAPIError):
    """Raised when the API returns a server error (5xx)."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        original_exception: Optional[Exception] = None,
    ):
        self.status_code = status_code

        super().__init__(
            message=message,
            service=service,
            endpoint=endpoint,
            original_exception=original_exception,
            suggested_action="Service is experiencing issues. Wait and retry, or check service status page",
        )


__all__ = [
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
