"""Shared HTTP session factory for advisory and popularity sources."""

from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


def create_http_session(
    user_agent: str,
    timeout: int = 30,
    max_retries: int = 3,
    additional_headers: Optional[Dict[str, str]] = None,
) -> requests.Session:
    """
    Create a session with retry on transient failures and a default timeout.

    Args:
        user_agent: User-Agent header value
        timeout: Seconds; stored on ``session.timeout`` for callers to pass along
        max_retries: Retries for 429 and 5xx responses
        additional_headers: Extra headers merged into the session

    Returns:
        Configured requests.Session instance
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "POST"],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.timeout = timeout

    headers = {"User-Agent": user_agent, "Accept": "application/json"}
    if additional_headers:
        headers.update(additional_headers)
    session.headers.update(headers)

    return session
