"""Tests for the OSV advisory source and the popular-gem source."""

from unittest.mock import Mock, patch

import pytest
import requests

from gemguard.models import Dependency, PopularPackage
from gemguard.sources import OSVAdvisorySource, RubyGemsPopularitySource, create_http_session
from gemguard.sources.osv import gem_version_key
from gemguard.utils.exceptions import APIServerError, ExternalAPIError

RUBYGEMS = "https://rubygems.org"

ACTIONPACK_ADVISORY = {
    "id": "GHSA-wh98-p28r-vrc9",
    "summary": "Possible XSS in Action Pack",
    "details": "Longer description",
    "aliases": ["CVE-2021-22885"],
    "database_specific": {"severity": "HIGH"},
    "references": [{"type": "WEB", "url": "https://github.com/advisories/GHSA-wh98-p28r-vrc9"}, {"type": "WEB"}],
    "affected": [
        {
            "package": {"name": "actionpack", "ecosystem": "RubyGems"},
            "versions": ["6.1.0", "6.1.1"],
            "ranges": [
                {
                    "type": "ECOSYSTEM",
                    "events": [{"introduced": "6.1.0"}, {"fixed": "6.1.3.1"}, {"introduced": "5.0"}, {"fixed": "5.2.4.6"}],
                },
                {"type": "GIT", "events": [{"introduced": "0"}, {"fixed": "deadbeef"}]},
            ],
        },
        {
            "package": {"name": "actionpack", "ecosystem": "PyPI"},
            "ranges": [{"type": "ECOSYSTEM", "events": [{"fixed": "99.0"}]}],
        },
    ],
}


def _response(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _session(batch_results, advisories):
    session = Mock()
    session.timeout = 30

    def request(method, url, **kwargs):
        if url.endswith("/querybatch"):
            return _response({"results": batch_results})
        vuln_id = url.rsplit("/", 1)[-1]
        return _response(advisories[vuln_id])

    session.request.side_effect = request
    return session


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("gemguard.sources.osv.time.sleep"):
        yield


class TestOSVAdvisorySource:

    def test_maps_advisory_to_record(self):
        session = _session([{"vulns": [{"id": "GHSA-wh98-p28r-vrc9"}]}], {"GHSA-wh98-p28r-vrc9": ACTIONPACK_ADVISORY})
        source = OSVAdvisorySource({}, session=session)

        records = source.fetch_for([Dependency("actionpack", "6.1.0", RUBYGEMS)])

        assert len(records) == 1
        record = records[0]
        assert record.id == "GHSA-wh98-p28r-vrc9"
        assert record.package_name == "actionpack"
        assert record.severity == "HIGH"
        assert record.summary == "Possible XSS in Action Pack"
        assert record.fixed_versions == ("5.2.4.6", "6.1.3.1")
        assert record.latest_fix == "6.1.3.1"
        assert record.affected_versions == ("6.1.0", "6.1.1")
        assert record.aliases == ("CVE-2021-22885",)
        assert record.references == ("https://github.com/advisories/GHSA-wh98-p28r-vrc9",)

    def test_querybatch_payload(self):
        session = _session([{}, {}], {})
        source = OSVAdvisorySource({"sources": {"osv": {"url": "https://osv.example/v1/"}}}, session=session)

        source.fetch_for([Dependency("rack", "2.2.3", RUBYGEMS), Dependency("rails", "7.0.0", RUBYGEMS)])

        method, url = session.request.call_args[0]
        assert (method, url) == ("POST", "https://osv.example/v1/querybatch")
        queries = session.request.call_args[1]["json"]["queries"]
        assert queries[0] == {"package": {"name": "rack", "ecosystem": "RubyGems"}, "version": "2.2.3"}
        assert session.request.call_args[1]["timeout"] == 30

    def test_shared_advisory_is_fetched_once(self):
        advisory = dict(ACTIONPACK_ADVISORY, affected=[])
        session = _session(
            [{"vulns": [{"id": "GHSA-wh98-p28r-vrc9"}]}, {"vulns": [{"id": "GHSA-wh98-p28r-vrc9"}]}],
            {"GHSA-wh98-p28r-vrc9": advisory},
        )
        source = OSVAdvisorySource({}, session=session)

        records = source.fetch_for([Dependency("actionpack", "6.1.0", RUBYGEMS), Dependency("actionview", "6.1.0", RUBYGEMS)])

        assert sorted(r.package_name for r in records) == ["actionpack", "actionview"]
        vuln_calls = [c for c in session.request.call_args_list if "/vulns/" in c[0][1]]
        assert len(vuln_calls) == 1

    def test_paginated_results_are_followed(self):
        advisories = {vid: dict(ACTIONPACK_ADVISORY, id=vid) for vid in ("GHSA-1", "GHSA-2", "GHSA-3")}
        session = Mock()
        session.timeout = 30

        def request(method, url, **kwargs):
            if not url.endswith("/querybatch"):
                return _response(advisories[url.rsplit("/", 1)[-1]])
            queries = kwargs["json"]["queries"]
            token = queries[0].get("page_token")
            if token is None:
                return _response({"results": [{"vulns": [{"id": "GHSA-1"}], "next_page_token": "p2"}, {}]})
            if token == "p2":
                return _response({"results": [{"vulns": [{"id": "GHSA-2"}], "next_page_token": "p3"}]})
            return _response({"results": [{"vulns": [{"id": "GHSA-3"}]}]})

        session.request.side_effect = request
        source = OSVAdvisorySource({}, session=session)

        records = source.fetch_for([Dependency("actionpack", "6.1.0", RUBYGEMS), Dependency("rack", "2.2.3", RUBYGEMS)])

        assert sorted(r.id for r in records) == ["GHSA-1", "GHSA-2", "GHSA-3"]
        batch_calls = [c for c in session.request.call_args_list if c[0][1].endswith("/querybatch")]
        assert len(batch_calls) == 3
        assert batch_calls[1][1]["json"]["queries"] == [
            {"package": {"name": "actionpack", "ecosystem": "RubyGems"}, "version": "6.1.0", "page_token": "p2"}
        ]

    def test_empty_dependencies_make_no_calls(self):
        session = Mock()
        assert OSVAdvisorySource({}, session=session).fetch_for([]) == []
        session.request.assert_not_called()

    def test_batch_failure_yields_no_records(self):
        session = Mock()
        session.timeout = 30
        session.request.side_effect = requests.exceptions.ConnectionError("Connection refused")
        source = OSVAdvisorySource({}, session=session)

        assert source.fetch_for([Dependency("rack", "2.2.3", RUBYGEMS)]) == []
        assert source.stats["errors"] == 1

    def test_failed_detail_lookup_is_skipped(self):
        session = _session([{"vulns": [{"id": "GHSA-a"}, {"id": "GHSA-b"}]}], {"GHSA-b": dict(ACTIONPACK_ADVISORY, id="GHSA-b")})
        source = OSVAdvisorySource({}, session=session)

        records = source.fetch_for([Dependency("actionpack", "6.1.0", RUBYGEMS)])

        assert [r.id for r in records] == ["GHSA-b"]

    def test_gem_version_key_orders_versions(self):
        versions = ["6.1.3.1", "5.2.4.6", "6.1.10", "1.0.0.beta2"]

        assert sorted(versions, key=gem_version_key) == ["1.0.0.beta2", "5.2.4.6", "6.1.3.1", "6.1.10"]

    def test_gem_version_key_falls_back_to_digits(self):
        assert str(gem_version_key("1.2-java_x")) == "1.2"
        assert str(gem_version_key("head")) == "0"


class TestRubyGemsPopularitySource:

    def _source(self, payload, url="https://popular.example/gems.json"):
        session = Mock()
        session.timeout = 10
        session.get.return_value = _response(payload)
        return RubyGemsPopularitySource({"typosquat": {"popular_gems_url": url}}, session=session), session

    def test_list_payload(self):
        source, session = self._source([{"name": "rails", "downloads": 100}, {"name": "rack"}])

        assert source.fetch_popular_packages() == [PopularPackage("rails", 100), PopularPackage("rack", 0)]
        session.get.assert_called_once_with("https://popular.example/gems.json", timeout=10)

    def test_wrapped_payload(self):
        source, _ = self._source({"gems": [{"name": "rails", "downloads": "5"}]})

        assert source.fetch_popular_packages() == [PopularPackage("rails", 5)]

    @pytest.mark.parametrize("payload", [[], {"gems": []}, {"other": 1}, [{"downloads": 3}], ["rails"]])
    def test_malformed_payload_raises(self, payload):
        source, _ = self._source(payload)

        with pytest.raises(ExternalAPIError) as exc_info:
            source.fetch_popular_packages()

        assert isinstance(exc_info.value.original_exception, ValueError)

    def test_missing_url_raises(self):
        source = RubyGemsPopularitySource({}, session=Mock())

        with pytest.raises(ExternalAPIError, match="rubygems.org"):
            source.fetch_popular_packages()

    def test_http_errors_propagate_mapped(self):
        response = Mock()
        response.status_code = 503
        response.headers = {}
        error = requests.exceptions.HTTPError("503")
        error.response = response
        source, session = self._source([])
        session.get.return_value.raise_for_status.side_effect = error

        with pytest.raises(APIServerError):
            source.fetch_popular_packages()


def test_create_http_session():
    session = create_http_session("GemGuard-Test/1.0", timeout=12, additional_headers={"X-Trace": "1"})

    assert session.timeout == 12
    assert session.headers["User-Agent"] == "GemGuard-Test/1.0"
    assert session.headers["Accept"] == "application/json"
    assert session.headers["X-Trace"] == "1"
    assert session.get_adapter("https://api.osv.dev").max_retries.total == 3
