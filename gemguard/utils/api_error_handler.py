"""
Reusable decorator for handling external API exceptions.

Advisory and popularity lookups are best-effort: a scan must complete even
when OSV.dev or rubygems.org is unreachable. The decorator maps ``requests``
failures onto the exception hierarchy in ``gemguard.utils.exceptions``, logs
them with context, counts them in ``self.stats`` and either returns a
fallback value or re-raises the mapped exception.
"""

import functools
import logging
from typing import Any, Callable, Optional, Tuple

import requests

from .exceptions import (
    APINotFoundError,
    APIRateLimitError,
    APIServerError,
    APITimeoutError,
    ExternalAPIError,
    RestrictedEnvironmentError,
)


def handle_external_api_errors(
    service: str,
    return_on_error: Any = None,
    log_stats: bool = True,
    suppress_errors: bool = True,
    quiet: bool = False,
):
    """
    Decorator that automatically handles all external API exceptions.

    Usage:
        @handle_external_api_errors(service="OSV.dev", return_on_error=[])
        def fetch_for(self, dependencies):
            response = self.session.post(url, json=payload)
            return response.json()

    Args:
        service: Name of the external service (e.g., "OSV.dev")
        return_on_error: Value to return when an error occurs (default: None)
        log_stats: Whether to increment self.stats["errors"] on failure
        suppress_errors: If True, return fallback value; if False, raise the mapped exception
        quiet: Log every failure at DEBUG regardless of its kind

    Returns:
        Decorated function that handles all exceptions automatically
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            logger = getattr(self, "logger", logging.getLogger(func.__name__))
            context = _extract_context(args, kwargs)
            endpoint = kwargs.get("url")

            try:
                return func(self, *args, **kwargs)
            except Exception as e:
                error, log_level = _map_exception(e, service, endpoint, context, self)
                return _handle_error(
                    error=error,
                    logger=logger,
                    log_level="debug" if quiet else log_level,
                    stats=getattr(self, "stats", None) if log_stats else None,
                    context=context,
                    suppress=suppress_errors,
                    return_value=return_on_error,
                )

        return wrapper

    return decorator


def _map_exception(
    exc: Exception,
    service: str,
    endpoint: Optional[str],
    context: str,
    owner: Any,
) -> Tuple[ExternalAPIError, str]:
    """Translate an arbitrary exception into (ExternalAPIError, log level)."""
    if isinstance(exc, ExternalAPIError):
        return exc, "warning"

    if isinstance(exc, requests.exceptions.Timeout):
        timeout = getattr(getattr(owner, "session", None), "timeout", None)
        return (
            APITimeoutError(
                message=f"Timeout while calling {service}",
                service=service,
                endpoint=endpoint,
                timeout_duration=timeout,
                original_exception=exc,
            ),
            "warning",
        )

    if isinstance(exc, requests.exceptions.ConnectionError):
        return (
            RestrictedEnvironmentError.from_connection_error(
                connection_error=exc,
                service=service,
                endpoint=endpoint,
            ),
            "warning",
        )

    if isinstance(exc, requests.exceptions.HTTPError):
        return _create_http_exception(exc, service, endpoint, context)

    if isinstance(exc, requests.exceptions.RequestException):
        return (
            ExternalAPIError(
                message=f"Request failed for {service}",
                service=service,
                endpoint=endpoint,
                original_exception=exc,
                suggested_action="Check network connectivity and retry",
            ),
            "error",
        )

    # Malformed payloads (JSON decode errors, missing keys) land here.
    return (
        ExternalAPIError(
            message=f"Unexpected error calling {service}",
            service=service,
            endpoint=endpoint,
            original_exception=exc,
            suggested_action="The service returned data GemGuard could not interpret",
        ),
        "error",
    )


def _create_http_exception(
    http_error: requests.exceptions.HTTPError,
    service: str,
    endpoint: Optional[str],
    context: str,
) -> Tuple[ExternalAPIError, str]:
    """
    Map HTTP error to specific exception and log level.

    Args:
        http_error: The HTTP error exception
        service: Name of the external service
        endpoint: API endpoint that failed
        context: Additional context (e.g., gem name)

    Returns:
        Tuple of (exception, log_level)
    """
    # Response.__bool__ is False for 4xx/5xx, so compare against None.
    response = http_error.response
    status_code = response.status_code if response is not None else None

    if status_code == 404:
        return (
            APINotFoundError(
                message=f"Resource not found in {service}",
                service=service,
                endpoint=endpoint,
                resource=context,
                original_exception=http_error,
            ),
            "debug",
        )

    if status_code == 429:
        retry_after = response.headers.get("Retry-After")
        return (
            APIRateLimitError(
                message=f"Rate limit exceeded for {service}",
                service=service,
                endpoint=endpoint,
                retry_after=int(retry_after) if retry_after and str(retry_after).isdigit() else None,
                original_exception=http_error,
            ),
            "warning",
        )

    if status_code and 500 <= status_code < 600:
        return (
            APIServerError(
                message=f"{service} server error",
                service=service,
                endpoint=endpoint,
                status_code=status_code,
                original_exception=http_error,
            ),
            "error",
        )

    return (
        ExternalAPIError(
            message=f"HTTP error calling {service}",
            service=service,
            endpoint=endpoint,
            original_exception=http_error,
            suggested_action=(
                f"HTTP {status_code} - Check API status or try again later"
                if status_code
                else "Check API status or try again later"
            ),
        ),
        "error",
    )


def _extract_context(args: tuple, kwargs: dict) -> str:
    """
    Build a short context label from the wrapped call's arguments.

    Returns the first string argument (a gem name or advisory id), or the
    number of items when the first argument is a list of dependencies.
    """
    if kwargs.get("package"):
        return str(kwargs["package"])
    if not args:
        return ""
    first = args[0]
    if isinstance(first, str):
        return first
    if isinstance(first, (list, tuple)):
        return f"{len(first)} gems"
    return ""


def _handle_error(
    error: Exception,
    logger: logging.Logger,
    log_level: str,
    stats: Optional[dict],
    context: str,
    suppress: bool,
    return_value: Any,
):
    """
    Log the error, update stats, then return the fallback or raise.

    Raises:
        The mapped error if suppress=False
    """
    log_message = str(error)
    if context:
        log_message = f"[{context}] {log_message}"

    if log_level == "debug":
        logger.debug(log_message)
    elif log_level == "warning":
        logger.warning(log_message)
    else:
        logger.error(log_message)

    if stats is not None and "errors" in stats:
        stats["errors"] += 1

    if suppress:
        return return_value
    raise error


__all__ = ["handle_external_api_errors"]
