# SPARQL Endpoint Access Layer
# File: client.py
# Version: v5
"""Query executor for SPARQL 1.1 Protocol endpoints.

Implements:

- execute() with auth, timeout, classified errors and retries
- test_connection() for a cheap single-attempt round trip
- fetch_raw_rdf() for CONSTRUCT output in a negotiated RDF syntax

This is the only place where ``httpx`` outcomes are turned into
:class:`~sparql_access.errors.ClassifiedError` values.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional, Sequence
from urllib.parse import urlencode

import httpx

from .auth import CredentialStore, build_auth_headers, session_credentials
from .config import AccessConfig
from .errors import (
    ClassifiedError,
    ErrorCode,
    classify_exception,
    classify_status,
    invalid_response,
)
from .models import ConnectionTestResult, Endpoint, EndpointStatus, QueryOptions, SparqlResult
from .parsers import DEFAULT_PARSERS, ResultParseError, ResultParser, parse_results
from .queries import CONNECTION_TEST_QUERY, describe_resource_query

logger = logging.getLogger(__name__)

RESULTS_ACCEPT = "application/sparql-results+json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

RDF_ACCEPT_HEADERS: Dict[str, str] = {
    "turtle": "text/turtle",
    "jsonld": "application/ld+json",
    "ntriples": "application/n-triples",
    "rdfxml": "application/rdf+xml",
}

CONNECTION_TEST_OPTIONS = QueryOptions(retries=0, timeout=10.0)

Sleep = Callable[[float], Awaitable[None]]


def _preview(query: str, limit: int = 200) -> str:
    flat = re.sub(r"\s+", " ", query.strip())
    return flat[:limit] + ("..." if len(flat) > limit else "")


@dataclass
class SparqlClient:
    """Executes queries against SPARQL endpoints.

    ``transport`` and ``sleep`` are injection points: tests pass an
    ``httpx.MockTransport`` and a recording sleep so that no network is used
    and retry delays can be observed.
    """

    config: AccessConfig = field(default_factory=AccessConfig)
    transport: Optional[httpx.AsyncBaseTransport] = None
    credentials: CredentialStore = field(default_factory=session_credentials)
    parsers: Sequence[ResultParser] = DEFAULT_PARSERS
    sleep: Sleep = asyncio.sleep

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def default_options(self) -> QueryOptions:
        return QueryOptions(
            retries=self.config.retries,
            retry_delay=self.config.retry_delay_seconds,
            timeout=self.config.timeout_seconds,
        )

    @staticmethod
    def retry_delay(options: QueryOptions, attempt: int) -> float:
        """Exponential backoff: delay, 2*delay, 4*delay, ... for attempt 1, 2, 3."""
        return options.retry_delay * (2 ** (attempt - 1))

    def _headers(self, endpoint: Endpoint, accept: str) -> Dict[str, str]:
        creds = endpoint.auth.credentials or self.credentials.get(endpoint.id)
        headers = {
            "Content-Type": FORM_CONTENT_TYPE,
            "Accept": accept,
        }
        headers.update(build_auth_headers(endpoint.auth, creds))
        return headers

    def _http_client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            verify=self.config.verify_tls,
            transport=self.transport,
            follow_redirects=True,
        )

    async def _post(
        self,
        http_client: httpx.AsyncClient,
        endpoint: Endpoint,
        query: str,
        headers: Dict[str, str],
        timeout: float,
    ) -> httpx.Response:
        """One HTTP attempt. Raises ClassifiedError on any failure."""
        body = urlencode({"query": query})
        try:
            response = await asyncio.wait_for(
                http_client.post(endpoint.url, content=body, headers=headers),
                timeout=timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as exc:
            error = classify_exception(exc, detect_cors=self.config.detect_cors)
            logger.warning(
                "Request to %s failed: %s (%s)", endpoint.url, error.message, error.details
            )
            raise error from exc

        if not response.is_success:
            error = classify_status(
                response.status_code,
                response.reason_phrase,
                details=f"Response snippet: {response.text[:500]}",
            )
            logger.warning(
                "HTTP %s from %s: %s", response.status_code, endpoint.url, error.message
            )
            raise error

        return response

    # ------------------------------------------------------------------
    # Query execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        endpoint: Endpoint,
        query: str,
        options: Optional[QueryOptions] = None,
    ) -> SparqlResult:
        """Run a query and return the parsed result.

        Retryable failures (timeouts, network errors, 5xx) are retried up to
        ``options.retries`` more times with exponential backoff. Anything else
        is raised on first occurrence. After the last attempt the most recent
        error is raised.
        """
        opts = options or self.default_options()
        headers = self._headers(endpoint, RESULTS_ACCEPT)

        logger.debug(
            "Executing query on %s (timeout=%ss, retries=%s): %s",
            endpoint.url,
            opts.timeout,
            opts.retries,
            _preview(query),
        )

        endpoint.status = EndpointStatus.CONNECTING
        last_error: Optional[ClassifiedError] = None

        try:
            async with self._http_client(opts.timeout) as http_client:
                for attempt in range(opts.retries + 1):
                    if attempt > 0:
                        delay = self.retry_delay(opts, attempt)
                        logger.debug(
                            "Retry attempt %d/%d in %.2fs", attempt, opts.retries, delay
                        )
                        await self.sleep(delay)

                    try:
                        response = await self._post(
                            http_client, endpoint, query, headers, opts.timeout
                        )
                        result = self._parse(response)
                    except ClassifiedError as exc:
                        last_error = exc
                        if not exc.retryable:
                            break
                        continue

                    endpoint.status = EndpointStatus.CONNECTED
                    if result.is_ask:
                        logger.info("Query successful: ASK -> %s", result.boolean)
                    else:
                        logger.info("Query successful: %d results", len(result.bindings))
                    return result

            endpoint.status = EndpointStatus.ERROR
            if last_error is None:
                last_error = ClassifiedError(ErrorCode.NETWORK_ERROR, "Request failed")
            logger.error(
                "Query on %s failed: %s %s", endpoint.url, last_error.code.value, last_error.message
            )
            raise last_error
        finally:
            # Covers cancellation.
            if endpoint.status is EndpointStatus.CONNECTING:
                endpoint.status = EndpointStatus.ERROR

    def _parse(self, response: httpx.Response) -> SparqlResult:
        try:
            return parse_results(response.text, self.parsers)
        except ResultParseError as exc:
            content_type = response.headers.get("content-type", "")
            raise invalid_response(
                f"Could not parse results (content-type: {content_type or 'n/a'}): {exc}",
                cause=exc,
            ) from exc

    async def test_connection(self, endpoint: Endpoint) -> ConnectionTestResult:
        """Run a trivial query once and report success and round-trip time."""
        start = time.perf_counter()
        try:
            await self.execute(endpoint, CONNECTION_TEST_QUERY, CONNECTION_TEST_OPTIONS)
        except ClassifiedError as exc:
            return ConnectionTestResult(
                success=False,
                response_time=time.perf_counter() - start,
                error=exc,
            )

        return ConnectionTestResult(success=True, response_time=time.perf_counter() - start)

    # ------------------------------------------------------------------
    # Raw RDF
    # ------------------------------------------------------------------

    async def fetch_raw_rdf(
        self,
        endpoint: Endpoint,
        resource_uri: str,
        rdf_format: str = "turtle",
        options: Optional[QueryOptions] = None,
    ) -> str:
        """Fetch every triple with ``resource_uri`` as subject, serialised as-is.

        Single attempt, no retries. Raises ValueError for an unknown format or
        a URI that cannot be embedded in a query.
        """
        if rdf_format not in RDF_ACCEPT_HEADERS:
            raise ValueError(
                f"Unsupported RDF format '{rdf_format}'. "
                f"Expected one of: {', '.join(sorted(RDF_ACCEPT_HEADERS))}"
            )

        opts = options or self.default_options()
        query = describe_resource_query(resource_uri)
        headers = self._headers(endpoint, RDF_ACCEPT_HEADERS[rdf_format])

        logger.debug("Fetching raw RDF for %s as %s", resource_uri, rdf_format)

        async with self._http_client(opts.timeout) as http_client:
            response = await self._post(http_client, endpoint, query, headers, opts.timeout)

        text = response.text
        logger.info("Raw RDF fetched: %d bytes", len(text))
        return text


# ---------------------------------------------------------------------------
# Module-level conveniences (environment configured client)
# ---------------------------------------------------------------------------


async def execute(
    endpoint: Endpoint,
    query: str,
    options: Optional[QueryOptions] = None,
) -> SparqlResult:
    return await SparqlClient(config=AccessConfig.from_env()).execute(endpoint, query, options)


async def test_connection(endpoint: Endpoint) -> ConnectionTestResult:
    return await SparqlClient(config=AccessConfig.from_env()).test_connection(endpoint)
