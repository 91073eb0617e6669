"""
URL probing module for registry reachability checks.

This module provides an async HTTP prober that tests a single URL and reports
a human-readable failure reason, and the probe run that tests every registry
entry over HTTP and HTTPS with a per-entry resumable cache.
"""

import asyncio
import re
from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx

from .cache_store import CacheStore
from .config import ProbeConfig
from .enums import FailurePolicy, ProbeFailureCode, ProbeProtocol
from .exceptions import ProbeTransportError
from .models import Entry, ProbeCacheRecord, ProbeOutcome, ProbeSummary, Registry
from .run_logger import RunLogger


META_TAG_PATTERN = re.compile(r"<meta\b[^>]*>", re.IGNORECASE)
HTTP_EQUIV_REFRESH_PATTERN = re.compile(
    r"http-equiv\s*=\s*[\"']?\s*refresh\b", re.IGNORECASE
)
META_CONTENT_PATTERN = re.compile(
    r"content\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s>]+))", re.IGNORECASE
)
REFRESH_URL_PATTERN = re.compile(r"url\s*=\s*['\"]?([^'\"\s;]+)", re.IGNORECASE)


def build_urls(subdomain: str, domain: str) -> tuple[str, str]:
    """
    Build the HTTP and HTTPS URLs for a registry key.

    The empty key is the apex record and uses the bare domain.
    """
    host = f"{subdomain}.{domain}" if subdomain else domain
    return f"{ProbeProtocol.HTTP.value}://{host}", f"{ProbeProtocol.HTTPS.value}://{host}"


def is_within_domain(url: str, domain: str) -> bool:
    """Check whether ``url`` points at ``domain`` or one of its subdomains."""
    host = (urlparse(url).hostname or "").lower()
    domain = domain.lower()
    return host == domain or host.endswith("." + domain)


def find_meta_refresh(html: str) -> Optional[str]:
    """Return the target of the first ``<meta http-equiv="refresh">`` tag, if any."""
    for tag in META_TAG_PATTERN.findall(html):
        if not HTTP_EQUIV_REFRESH_PATTERN.search(tag):
            continue
        content_match = META_CONTENT_PATTERN.search(tag)
        if not content_match:
            continue
        content = next(group for group in content_match.groups() if group is not None)
        url_match = REFRESH_URL_PATTERN.search(content)
        if url_match:
            return url_match.group(1)
    return None


class URLProber:
    """
    Async single-URL prober.

    A URL passes when it answers with a 2xx status, stays on the registry
    domain after redirects, and returns a non-empty body. Content-type,
    placeholder-page and meta-refresh checks are applied when enabled.
    """

    def __init__(
        self,
        config: ProbeConfig,
        domain: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the prober.

        Args:
            config: Probe configuration (timeout and optional checks)
            domain: Registry domain redirects must stay within
            transport: Optional httpx transport, used to stub the network
        """
        self._config = config
        self._domain = domain
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "URLProber":
        """Async context manager entry."""
        self._client = self._create_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.timeout_seconds),
            follow_redirects=True,
            headers={"User-Agent": self._config.user_agent},
            transport=self._transport,
        )

    async def probe_url(self, url: str) -> Optional[str]:
        """
        Test a URL.

        Returns:
            The failure reason, or None if the URL passed
        """
        try:
            await self._check(url)
        except ProbeTransportError as e:
            return e.message
        return None

    async def _check(self, url: str) -> None:
        if self._client is None:
            self._client = self._create_client()

        timeout = self._config.timeout_seconds
        try:
            response = await asyncio.wait_for(self._client.get(url), timeout=timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            raise ProbeTransportError(
                code=ProbeFailureCode.TIMEOUT.value,
                message=f"Failed due to time out after {timeout:g}s",
                details={"url": url},
            )
        except httpx.HTTPError as e:
            raise ProbeTransportError(
                code=ProbeFailureCode.NETWORK_ERROR.value,
                message=f"Failed during request with error '{e}'",
                details={"url": url, "error_type": type(e).__name__},
            )

        status = f"{response.status_code} {response.reason_phrase}"

        if not response.is_success:
            raise ProbeTransportError(
                code=ProbeFailureCode.HTTP_STATUS.value,
                message=f"Failed with status code '{status}'",
                details={"url": url, "status_code": response.status_code},
            )

        final_url = str(response.url)
        if response.history and not is_within_domain(final_url, self._domain):
            raise ProbeTransportError(
                code=ProbeFailureCode.EXTERNAL_REDIRECT.value,
                message=f"Failed due to automatic redirect to '{final_url}'",
                details={"url": url, "final_url": final_url},
            )

        if self._config.check_content_type:
            content_type = response.headers.get("content-type", "")
            media_type = content_type.split(";", 1)[0].strip().lower()
            allowed = [value.lower() for value in self._config.allowed_content_types]
            if media_type and media_type not in allowed:
                raise ProbeTransportError(
                    code=ProbeFailureCode.CONTENT_TYPE.value,
                    message=f"Failed with unexpected content type '{media_type}' (status '{status}')",
                    details={"url": url, "content_type": content_type},
                )

        text = response.text
        if text.strip() == "":
            raise ProbeTransportError(
                code=ProbeFailureCode.EMPTY_BODY.value,
                message=f"Failed with empty return body (status '{status}')",
                details={"url": url},
            )

        if self._config.check_placeholder:
            lowered = text.lower()
            for marker in self._config.placeholder_markers:
                if marker and marker.lower() in lowered:
                    raise ProbeTransportError(
                        code=ProbeFailureCode.PLACEHOLDER_PAGE.value,
                        message=f"Failed due to placeholder page content '{marker}'",
                        details={"url": url},
                    )

        if self._config.check_meta_refresh:
            refresh_target = find_meta_refresh(text)
            if refresh_target:
                resolved = urljoin(final_url, refresh_target)
                if not is_within_domain(resolved, self._domain):
                    raise ProbeTransportError(
                        code=ProbeFailureCode.META_REFRESH.value,
                        message=f"Failed due to meta refresh redirect to '{resolved}'",
                        details={"url": url, "refresh_url": resolved},
                    )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


class RegistryProber:
    """
    Probes every registry entry over HTTP and HTTPS.

    The accumulated results are written to the cache store after every
    entry, cache hit or not, so an interrupted run resumes where it stopped.
    Clearing the cache once the results have been used is up to the caller.
    """

    COMPONENT = "RegistryProber"

    def __init__(
        self,
        config: ProbeConfig,
        domain: str,
        cache_store: CacheStore,
        logger: Optional[RunLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the probe run.

        Args:
            config: Probe configuration
            domain: Registry domain, e.g. 'js.org'
            cache_store: Store used for the resumable result cache
            logger: Optional logger
            transport: Optional httpx transport passed to the URL prober
        """
        if config.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if config.limit is not None and config.limit < 0:
            raise ValueError("limit must not be negative")

        self._config = config
        self._domain = domain
        self._cache_store = cache_store
        self._logger = logger
        self._transport = transport

        self._results: Registry = {}
        self._cache_lock: Optional[asyncio.Lock] = None
        self._counter = 0
        self._failed_counter = 0
        self._total = 0

    @property
    def cache_name(self) -> str:
        """Logical cache name used by this run."""
        return self._config.cache_name

    def load_cache(self) -> Registry:
        """
        Load reusable results from the cache store.

        Records that cannot be decoded, or that were produced for another
        domain or failure policy, are treated as empty.
        """
        data = self._cache_store.get(self.cache_name)
        if data is None:
            return {}

        try:
            record = ProbeCacheRecord.from_dict(data)
        except (ValueError, TypeError, KeyError) as e:
            self._log_warn("Discarding malformed probe cache", {"error": str(e)})
            return {}

        if record.domain != self._domain or record.policy != self._config.failure_policy:
            self._log_info(
                "Discarding probe cache from a different run configuration",
                {"domain": record.domain, "policy": record.policy.value},
            )
            return {}

        return record.results

    async def probe(self, registry: Registry) -> ProbeSummary:
        """
        Probe all entries of a registry.

        Args:
            registry: Entries to test (not modified)

        Returns:
            ProbeSummary partitioning the entries into failed and passed
        """
        self._log_info("Starting probe run", {"cache": self.cache_name})

        keys = list(registry)
        if self._config.limit is not None:
            keys = keys[: self._config.limit]

        cached = self.load_cache()
        self._results = {}
        self._cache_lock = asyncio.Lock()
        self._counter = 0
        self._failed_counter = 0
        self._total = len(keys)

        nested = self._logger.nested() if self._logger else None

        async with URLProber(self._config, self._domain, self._transport) as url_prober:
            if self._config.concurrency == 1:
                first_probe = True
                for key in keys:
                    hit = self._cache_hit(cached, key, registry[key])
                    if hit is None and not first_probe and self._config.delay_seconds > 0:
                        await asyncio.sleep(self._config.delay_seconds)
                    outcome = await self._process(url_prober, key, registry[key], hit, nested)
                    if not outcome.from_cache:
                        first_probe = False
            else:
                semaphore = asyncio.Semaphore(self._config.concurrency)

                async def run(key: str) -> None:
                    async with semaphore:
                        hit = self._cache_hit(cached, key, registry[key])
                        await self._process(url_prober, key, registry[key], hit, nested)
                        if hit is None and self._config.delay_seconds > 0:
                            await asyncio.sleep(self._config.delay_seconds)

                await asyncio.gather(*(run(key) for key in keys))

        summary = ProbeSummary()
        for key in keys:
            entry = self._results[key]
            if entry.failed:
                summary.failed[key] = entry
            else:
                summary.passed[key] = entry

        self._log_info(
            "Testing completed",
            {"failed": len(summary.failed), "passed": len(summary.passed)},
        )
        return summary

    def _cache_hit(self, cached: Registry, key: str, entry: Entry) -> Optional[Entry]:
        hit = cached.get(key)
        if hit is None or hit.target != entry.target or hit.failed is None:
            return None
        return hit

    async def _process(
        self,
        url_prober: URLProber,
        key: str,
        entry: Entry,
        hit: Optional[Entry],
        logger: Optional[RunLogger],
    ) -> ProbeOutcome:
        url_http, url_https = build_urls(key, self._domain)

        if hit is not None:
            outcome = ProbeOutcome(
                subdomain=key,
                http=hit.http,
                https=hit.https,
                failed=bool(hit.failed),
                from_cache=True,
            )
            position = self._advance(outcome.failed)
            if logger:
                logger.info(self.COMPONENT, f"[{position}] {url_http} in cache, skipping tests.")
        else:
            if logger:
                logger.info(self.COMPONENT, f"Testing {url_http}...")
            failed_http = await url_prober.probe_url(url_http)
            failed_https = await url_prober.probe_url(url_https)
            outcome = ProbeOutcome(
                subdomain=key,
                http=failed_http,
                https=failed_https,
                failed=self.is_failure(failed_http, failed_https),
            )
            position = self._advance(outcome.failed)
            if logger:
                if outcome.failed:
                    logger.warn(
                        self.COMPONENT,
                        f"[{position}] ...failed: HTTP: `{failed_http or 'Okay'}` "
                        f"HTTPS: `{failed_https or 'Okay'}`",
                    )
                else:
                    logger.info(self.COMPONENT, f"[{position}] ...succeeded")

        await self._record(key, Entry(
            target=entry.target,
            no_cf=entry.no_cf,
            http=outcome.http,
            https=outcome.https,
            failed=outcome.failed,
        ))
        return outcome

    def is_failure(self, failed_http: Optional[str], failed_https: Optional[str]) -> bool:
        """Apply the configured failure policy to the two protocol results."""
        if self._config.failure_policy == FailurePolicy.EITHER:
            return bool(failed_http or failed_https)
        return bool(failed_http and failed_https)

    def _advance(self, failed: bool) -> str:
        self._counter += 1
        if failed:
            self._failed_counter += 1
        total = self._total or 1
        return (
            f"{self._counter:,}/{self._total:,} {round(self._counter / total * 100)}% "
            f"(Failures: {self._failed_counter:,} {round(self._failed_counter / total * 100)}%)"
        )

    async def _record(self, key: str, entry: Entry) -> None:
        async with self._cache_lock:
            self._results[key] = entry
            record = ProbeCacheRecord(
                domain=self._domain,
                policy=self._config.failure_policy,
                results=self._results,
            )
            self._cache_store.put(self.cache_name, record.to_dict())

    def _log_info(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.info(self.COMPONENT, message, data)

    def _log_warn(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.warn(self.COMPONENT, message, data)
