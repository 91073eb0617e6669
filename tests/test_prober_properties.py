"""
Property-based tests for the URL prober and the resumable probe run.

Uses Hypothesis for property-based testing of cache resumability, and
httpx.MockTransport to stub every network response.
"""

import asyncio
import tempfile
from pathlib import Path

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from cname_registry.cache_store import CacheStore
from cname_registry.config import ProbeConfig
from cname_registry.enums import FailurePolicy
from cname_registry.models import Entry, ProbeCacheRecord
from cname_registry.prober import (
    RegistryProber,
    URLProber,
    build_urls,
    find_meta_refresh,
    is_within_domain,
)


DOMAIN = "js.org"


def ok_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, html="<html><body>Hello</body></html>")


def probe_one(handler, url: str, config: ProbeConfig = None):
    """Probe a single URL through a mocked transport."""
    async def run():
        async with URLProber(config or ProbeConfig(), DOMAIN, httpx.MockTransport(handler)) as prober:
            return await prober.probe_url(url)
    return asyncio.run(run())


def seed_cache(store: CacheStore, results: dict, policy: FailurePolicy = FailurePolicy.BOTH) -> None:
    record = ProbeCacheRecord(domain=DOMAIN, policy=policy, results=results)
    store.put("validateCNAMEs", record.to_dict())


def run_probe(registry, store, handler, config: ProbeConfig = None):
    prober = RegistryProber(
        config or ProbeConfig(),
        DOMAIN,
        store,
        transport=httpx.MockTransport(handler),
    )
    return asyncio.run(prober.probe(registry))


# Strategies for generating test data

label_strategy = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"),
    min_size=1,
    max_size=8,
)


class TestUrlHelpers:
    """URL construction and domain checks."""

    def test_build_urls_for_subdomain(self) -> None:
        assert build_urls("foo", DOMAIN) == ("http://foo.js.org", "https://foo.js.org")

    def test_build_urls_for_apex_key(self) -> None:
        assert build_urls("", DOMAIN) == ("http://js.org", "https://js.org")

    def test_is_within_domain(self) -> None:
        assert is_within_domain("https://js.org/", DOMAIN)
        assert is_within_domain("https://Foo.JS.org/path", DOMAIN)
        assert not is_within_domain("https://notjs.org/", DOMAIN)
        assert not is_within_domain("https://example.com/?r=js.org", DOMAIN)

    def test_find_meta_refresh(self) -> None:
        html = '<head><meta charset="utf-8"><meta http-equiv="Refresh" content="0; URL=\'https://x.example/\'"></head>'
        assert find_meta_refresh(html) == "https://x.example/"
        assert find_meta_refresh("<meta name='viewport' content='width=device-width'>") is None


class TestURLProber:
    """Failure reasons for a single URL."""

    def test_successful_page_passes(self) -> None:
        assert probe_one(ok_handler, "https://foo.js.org") is None

    def test_non_success_status_fails(self) -> None:
        reason = probe_one(lambda request: httpx.Response(404, html="gone"), "https://foo.js.org")
        assert reason == "Failed with status code '404 Not Found'"

    def test_timeout_has_distinct_message(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        assert probe_one(handler, "https://foo.js.org") == "Failed due to time out after 5s"

    def test_transport_error_is_reported(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert probe_one(handler, "http://foo.js.org") == (
            "Failed during request with error 'connection refused'"
        )

    def test_redirect_off_domain_fails(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "foo.js.org":
                return httpx.Response(301, headers={"Location": "https://elsewhere.example/"})
            return ok_handler(request)

        assert probe_one(handler, "http://foo.js.org") == (
            "Failed due to automatic redirect to 'https://elsewhere.example/'"
        )

    def test_redirect_within_domain_passes(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.scheme == "http":
                return httpx.Response(301, headers={"Location": "https://foo.js.org/"})
            return ok_handler(request)

        assert probe_one(handler, "http://foo.js.org") is None

    def test_empty_body_fails(self) -> None:
        reason = probe_one(lambda request: httpx.Response(200, html="  \n"), "https://foo.js.org")
        assert reason == "Failed with empty return body (status '200 OK')"

    def test_unexpected_content_type_fails(self) -> None:
        reason = probe_one(lambda request: httpx.Response(200, json={"a": 1}), "https://foo.js.org")
        assert reason == "Failed with unexpected content type 'application/json' (status '200 OK')"

    def test_content_type_check_can_be_disabled(self) -> None:
        config = ProbeConfig(check_content_type=False)
        reason = probe_one(lambda request: httpx.Response(200, json={"a": 1}), "https://foo.js.org", config)
        assert reason is None

    def test_placeholder_page_fails(self) -> None:
        html = "<h1>404</h1><p>There isn't a GitHub Pages site here.</p>"
        reason = probe_one(lambda request: httpx.Response(200, html=html), "https://foo.js.org")
        assert reason == "Failed due to placeholder page content 'There isn't a GitHub Pages site here.'"

    def test_meta_refresh_off_domain_fails(self) -> None:
        html = '<meta http-equiv="refresh" content="0; url=https://elsewhere.example/">'
        reason = probe_one(lambda request: httpx.Response(200, html=html), "https://foo.js.org")
        assert reason == "Failed due to meta refresh redirect to 'https://elsewhere.example/'"

    def test_relative_meta_refresh_passes(self) -> None:
        html = '<meta http-equiv="refresh" content="0; url=/docs/">'
        assert probe_one(lambda request: httpx.Response(200, html=html), "https://foo.js.org") is None


class TestFailurePolicy:
    """Combining per-protocol results into a verdict."""

    @staticmethod
    def http_only_failure(request: httpx.Request) -> httpx.Response:
        if request.url.scheme == "http":
            return httpx.Response(500, html="boom")
        return ok_handler(request)

    def test_both_policy_passes_when_one_protocol_works(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = CacheStore(Path(tmpdir))
            summary = run_probe({"foo": Entry(target="foo.github.io")}, store, self.http_only_failure)
        assert list(summary.passed) == ["foo"]
        entry = summary.passed["foo"]
        assert entry.http == "Failed with status code '500 Internal Server Error'"
        assert entry.https is None
        assert entry.failed is False

    def test_either_policy_fails_when_one_protocol_fails(self) -> None:
        config = ProbeConfig(failure_policy=FailurePolicy.EITHER)
        with tempfile.TemporaryDirectory() as tmpdir:
            store = CacheStore(Path(tmpdir))
            summary = run_probe({"foo": Entry(target="foo.github.io")}, store, self.http_only_failure, config)
        assert list(summary.failed) == ["foo"]

    @given(http_ok=st.booleans(), https_ok=st.booleans(), policy=st.sampled_from(list(FailurePolicy)))
    @settings(max_examples=20)
    def test_is_failure_matches_policy(self, http_ok: bool, https_ok: bool, policy: FailurePolicy) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            prober = RegistryProber(ProbeConfig(failure_policy=policy), DOMAIN, CacheStore(Path(tmpdir)))
        failed = prober.is_failure(None if http_ok else "x", None if https_ok else "y")
        if policy == FailurePolicy.BOTH:
            assert failed == (not http_ok and not https_ok)
        else:
            assert failed == (not http_ok or not https_ok)


class TestResumableProbeRun:
    """The per-entry cache makes interrupted runs resumable."""

    @given(
        keys=st.lists(label_strategy, min_size=1, max_size=8, unique=True),
        cached_flags=st.lists(st.booleans(), min_size=8, max_size=8),
    )
    @settings(max_examples=30, deadline=None)
    def test_only_uncached_entries_touch_the_network(self, keys, cached_flags) -> None:
        """
        *For any* registry and cached subset, only entries missing from the
        cache are requested, and every entry appears in the summary.
        """
        registry = {key: Entry(target=f"{key}.github.io") for key in keys}
        cached = {key for key, flag in zip(keys, cached_flags) if flag}
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.host)
            return ok_handler(request)

        with tempfile.TemporaryDirectory() as tmpdir:
            store = CacheStore(Path(tmpdir))
            seed_cache(store, {
                key: Entry(target=registry[key].target, failed=False) for key in cached
            })
            summary = run_probe(registry, store, handler)
            stored = ProbeCacheRecord.from_dict(store.get("validateCNAMEs"))

        assert set(requested) == {f"{key}.js.org" for key in keys if key not in cached}
        assert len(requested) == 2 * (len(keys) - len(cached))
        assert set(summary.passed) | set(summary.failed) == set(keys)
        assert set(stored.results) == set(keys)

    def test_cache_written_after_every_entry(self) -> None:
        snapshots = []

        with tempfile.TemporaryDirectory() as tmpdir:
            store = CacheStore(Path(tmpdir))

            def handler(request: httpx.Request) -> httpx.Response:
                if request.url.host == "second.js.org" and request.url.scheme == "http":
                    snapshots.append(store.get("validateCNAMEs"))
                return ok_handler(request)

            run_probe({
                "first": Entry(target="first.github.io"),
                "second": Entry(target="second.github.io"),
            }, store, handler)

        assert len(snapshots) == 1
        assert list(snapshots[0]["results"]) == ["first"]

    def test_changed_target_is_reprobed(self) -> None:
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.host)
            return ok_handler(request)

        with tempfile.TemporaryDirectory() as tmpdir:
            store = CacheStore(Path(tmpdir))
            seed_cache(store, {"foo": Entry(target="old.github.io", failed=True, http="x", https="y")})
            summary = run_probe({"foo": Entry(target="new.github.io")}, store, handler)

        assert requested == ["foo.js.org", "foo.js.org"]
        assert summary.passed["foo"].target == "new.github.io"

    def test_cache_from_other_policy_is_ignored(self) -> None:
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(request.url.host)
            return ok_handler(request)

        with tempfile.TemporaryDirectory() as tmpdir:
            store = CacheStore(Path(tmpdir))
            seed_cache(store, {"foo": Entry(target="foo.github.io", failed=False)}, FailurePolicy.EITHER)
            run_probe({"foo": Entry(target="foo.github.io")}, store, handler)

        assert len(requested) == 2

    def test_corrupt_cache_is_treated_as_empty(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = CacheStore(Path(tmpdir))
            store.directory.mkdir(parents=True, exist_ok=True)
            store.path_for("validateCNAMEs").write_text("{not json", encoding="utf-8")
            summary = run_probe({"foo": Entry(target="foo.github.io")}, store, ok_handler)
            stored = store.get("validateCNAMEs")

        assert list(summary.passed) == ["foo"]
        assert list(stored["results"]) == ["foo"]

    def test_apex_entry_probes_bare_domain(self) -> None:
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append((request.url.scheme, request.url.host))
            return ok_handler(request)

        with tempfile.TemporaryDirectory() as tmpdir:
            run_probe({"": Entry(target="js-org.github.io")}, CacheStore(Path(tmpdir)), handler)

        assert requested == [("http", "js.org"), ("https", "js.org")]

    def test_limit_restricts_entries(self) -> None:
        registry = {key: Entry(target=f"{key}.github.io") for key in ["a", "b", "c", "d"]}
        with tempfile.TemporaryDirectory() as tmpdir:
            summary = run_probe(registry, CacheStore(Path(tmpdir)), ok_handler, ProbeConfig(limit=2))
        assert list(summary.passed) == ["a", "b"]

    def test_concurrent_run_probes_everything(self) -> None:
        registry = {f"site{i}": Entry(target=f"site{i}.github.io") for i in range(10)}
        with tempfile.TemporaryDirectory() as tmpdir:
            store = CacheStore(Path(tmpdir))
            summary = run_probe(registry, store, ok_handler, ProbeConfig(concurrency=4))
            stored = ProbeCacheRecord.from_dict(store.get("validateCNAMEs"))
        assert set(summary.passed) == set(registry)
        assert set(stored.results) == set(registry)

    def test_failed_entries_keep_marker_and_reasons(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, html="missing")

        with tempfile.TemporaryDirectory() as tmpdir:
            summary = run_probe(
                {"a.b": Entry(target="baz.com", no_cf="// noCF")},
                CacheStore(Path(tmpdir)),
                handler,
            )

        entry = summary.failed["a.b"]
        assert entry.no_cf == "// noCF"
        assert entry.http == "Failed with status code '404 Not Found'"
        assert entry.https == "Failed with status code '404 Not Found'"
        assert entry.to_dict()["failed"] is True

    def test_concurrency_must_be_positive(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(ValueError):
                RegistryProber(ProbeConfig(concurrency=0), DOMAIN, CacheStore(Path(tmpdir)))

    def test_negative_limit_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with pytest.raises(ValueError):
                RegistryProber(ProbeConfig(limit=-1), DOMAIN, CacheStore(Path(tmpdir)))
