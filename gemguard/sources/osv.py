"""
OSV.dev advisory source for RubyGems.

Queries ``/querybatch`` for every resolved gem, then resolves each returned
advisory id through ``/vulns/{id}`` and maps it onto ``VulnerabilityRecord``.
"""

import logging
import re
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

import requests
from packaging.version import InvalidVersion, Version

from ..cvss_utils import CVSSExtractor
from ..models import Dependency, VulnerabilityRecord
from ..utils.api_error_handler import handle_external_api_errors
from .http import create_http_session

OSV_ECOSYSTEM = "RubyGems"
DEFAULT_OSV_URL = "https://api.osv.dev/v1"


def gem_version_key(version: str) -> Version:
    """Sort key for gem versions; falls back to the numeric segments."""
    try:
        return Version(version)
    except InvalidVersion:
        numbers = re.findall(r"\d+", version)
        return Version(".".join(numbers) if numbers else "0")


class OSVAdvisorySource:
    """Advisory source backed by the OSV.dev API."""

    def __init__(self, config: Dict, session: Optional[requests.Session] = None):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

        self.osv_api_url = (
            config.get("sources", {}).get("osv", {}).get("url", DEFAULT_OSV_URL)
        ).rstrip("/")
        self.batch_size = 1000

        self.session = session or self._create_session()
        self.last_request_time = 0.0
        self.stats = {"api_calls": 0, "errors": 0}

    def _create_session(self) -> requests.Session:
        timeout = self.config.get("scan", {}).get("timeout", 30)
        return create_http_session(
            user_agent="GemGuard-OSVSource/1.0",
            timeout=timeout,
            max_retries=3,
        )

    def fetch_for(self, dependencies: Iterable[Dependency]) -> List[VulnerabilityRecord]:
        """Fetch every advisory naming one of ``dependencies``.

        Network failures are logged and yield no records for the affected batch
        or advisory; this method never raises for transport errors.
        """
        dependencies = list(dependencies)
        if not dependencies:
            return []

        records: Dict[tuple, VulnerabilityRecord] = {}
        details_cache: Dict[str, Optional[Dict]] = {}

        for start in range(0, len(dependencies), self.batch_size):
            batch = dependencies[start:start + self.batch_size]
            results = self._collect_pages(batch)

            for dependency, result in zip(batch, results):
                for vuln_id in [v.get("id") for v in result.get("vulns", []) if v.get("id")]:
                    if vuln_id not in details_cache:
                        details_cache[vuln_id] = self._fetch_vulnerability(vuln_id)
                    vuln = details_cache[vuln_id]
                    if not vuln:
                        continue
                    record = self._to_record(vuln, dependency.name)
                    records.setdefault((record.id, record.package_name), record)

        self.logger.debug(
            f"Fetched {len(records)} advisories for {len(dependencies)} gems "
            f"({self.stats['api_calls']} API calls, {self.stats['errors']} errors)"
        )
        return list(records.values())

    def _collect_pages(self, dependencies: Sequence[Dependency]) -> List[Dict[str, Any]]:
        """Query a batch and follow ``next_page_token`` until every result is complete."""
        results = [dict(result) for result in self._query_batch(dependencies)]

        pending = [i for i, result in enumerate(results) if result.get("next_page_token")]
        while pending:
            tokens = [results[i].pop("next_page_token") for i in pending]
            pages = self._query_batch([dependencies[i] for i in pending], tokens)
            if len(pages) != len(pending):
                self.logger.debug(f"Pagination stopped early for {len(pending)} gems")
                break

            still_pending = []
            for i, page in zip(pending, pages):
                results[i]["vulns"] = results[i].get("vulns", []) + page.get("vulns", [])
                if page.get("next_page_token"):
                    results[i]["next_page_token"] = page["next_page_token"]
                    still_pending.append(i)
            pending = still_pending

        return results

    @handle_external_api_errors(service="OSV.dev", return_on_error=[])
    def _query_batch(
        self,
        dependencies: Sequence[Dependency],
        page_tokens: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        queries = [
            {
                "package": {"name": dep.name, "ecosystem": OSV_ECOSYSTEM},
                "version": dep.version,
            }
            for dep in dependencies
        ]
        for query, token in zip(queries, page_tokens or []):
            query["page_token"] = token
        response = self._make_request("POST", f"{self.osv_api_url}/querybatch", json={"queries": queries})
        return response.json().get("results", [])

    @handle_external_api_errors(service="OSV.dev", return_on_error=None)
    def _fetch_vulnerability(self, vuln_id: str) -> Optional[Dict[str, Any]]:
        response = self._make_request("GET", f"{self.osv_api_url}/vulns/{vuln_id}")
        return response.json()

    def _to_record(self, vuln: Dict[str, Any], package_name: str) -> VulnerabilityRecord:
        affected = [
            item for item in vuln.get("affected", [])
            if item.get("package", {}).get("name", package_name) == package_name
            and item.get("package", {}).get("ecosystem", OSV_ECOSYSTEM) == OSV_ECOSYSTEM
        ]

        return VulnerabilityRecord(
            id=vuln.get("id", ""),
            package_name=package_name,
            severity=CVSSExtractor.extract_severity_from_osv(vuln),
            summary=vuln.get("summary", "") or "",
            details=vuln.get("details", "") or "",
            affected_versions=tuple(self._extract_affected_versions(affected)),
            fixed_versions=tuple(self._extract_fixed_versions(affected)),
            aliases=tuple(vuln.get("aliases", [])),
            references=tuple(ref.get("url") for ref in vuln.get("references", []) if ref.get("url")),
        )

    @staticmethod
    def _extract_affected_versions(affected: List[Dict]) -> List[str]:
        versions = []
        for item in affected:
            for version in item.get("versions", []):
                if version not in versions:
                    versions.append(version)
        return versions

    @staticmethod
    def _extract_fixed_versions(affected: List[Dict]) -> List[str]:
        """Fixed versions from ECOSYSTEM ranges, oldest first."""
        fixed = set()
        for item in affected:
            for version_range in item.get("ranges", []):
                # GIT ranges carry commit hashes
                if version_range.get("type") != "ECOSYSTEM":
                    continue
                for event in version_range.get("events", []):
                    if event.get("fixed"):
                        fixed.add(event["fixed"])
        return sorted(fixed, key=gem_version_key)

    def _make_request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Make an HTTP request with light rate limiting."""
        now = time.time()
        if now - self.last_request_time < 0.1:
            time.sleep(0.1)
        self.last_request_time = now

        kwargs.setdefault("timeout", getattr(self.session, "timeout", 30))
        response = self.session.request(method, url, **kwargs)
        response.raise_for_status()
        self.stats["api_calls"] += 1
        return response
