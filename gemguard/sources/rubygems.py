"""Popular-gem corpus fetched from a JSON endpoint."""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..models import PopularPackage
from ..utils.api_error_handler import handle_external_api_errors
from .http import create_http_session


class RubyGemsPopularitySource:
    """
    Fetches the reference list of popular gems used for typosquat detection.

    The endpoint must return either a JSON list of ``{"name", "downloads"}``
    objects or an object with such a list under ``"gems"``. Errors are raised
    to the caller, which decides on a fallback.
    """

    def __init__(self, config: Dict, session: Optional[requests.Session] = None):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self.url = config.get("typosquat", {}).get("popular_gems_url")
        self.session = session or self._create_session()
        self.stats = {"api_calls": 0, "errors": 0}

    def _create_session(self) -> requests.Session:
        timeout = self.config.get("scan", {}).get("timeout", 30)
        return create_http_session(
            user_agent="GemGuard-PopularitySource/1.0",
            timeout=timeout,
            max_retries=2,
        )

    @handle_external_api_errors(service="rubygems.org", suppress_errors=False, quiet=True)
    def fetch_popular_packages(self) -> List[PopularPackage]:
        if not self.url:
            raise ValueError("No popular gems URL configured")

        response = self.session.get(self.url, timeout=getattr(self.session, "timeout", 30))
        response.raise_for_status()
        self.stats["api_calls"] += 1

        packages = self._parse_payload(response.json())
        self.logger.debug(f"Fetched {len(packages)} popular gems from {self.url}")
        return packages

    @staticmethod
    def _parse_payload(payload: Any) -> List[PopularPackage]:
        entries = payload.get("gems") if isinstance(payload, dict) else payload
        if not isinstance(entries, list) or not entries:
            raise ValueError("Popular gems payload is empty or not a list")

        packages = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("name"):
                raise ValueError(f"Malformed popular gem entry: {entry!r}")
            packages.append(PopularPackage(name=str(entry["name"]), downloads=int(entry.get("downloads") or 0)))
        return packages
