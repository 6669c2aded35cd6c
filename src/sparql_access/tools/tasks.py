# SPARQL Endpoint Access Layer
# File: tools/tasks.py
# Version: v6
#
# NOTE: This module is the single place where we define the logic that is
# exposed as MCP tools. The stdio transport simply calls
# `register_tools(server)` to wire these up.

from __future__ import annotations

import hashlib
import os
import time
from typing import Any, Dict, List, Optional

from ..capabilities import analyze_endpoint as run_analysis
from ..capabilities import detect_languages as run_language_detection
from ..client import SparqlClient
from ..config import AccessConfig
from ..errors import ClassifiedError
from ..models import AuthConfig, AuthKind, Credentials, Endpoint, QueryOptions
from ..prefix import PrefixResolver, format_qualified_name
from ..queries import with_prefixes
from ..security import assess_endpoint_trust, check_endpoint_security, is_valid_endpoint_url


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _make_error(
    code: str,
    message: str,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """Small, LLM-friendly error shape used by every tool."""
    err: Dict[str, Any] = {"code": code, "message": message}
    if details:
        err["details"] = details
    return err


def _error_from(exc: ClassifiedError) -> Dict[str, Any]:
    return {"ok": False, "error": exc.to_dict()}


def _make_client(cfg: Optional[AccessConfig] = None) -> SparqlClient:
    """Create a SparqlClient from environment variables.

    Note: Callers should prefer invoking this with *no arguments* to keep
    unit tests monkeypatch-friendly (tests replace _make_client with a
    no-arg lambda returning a client on a mock transport).
    """
    return SparqlClient(config=cfg or AccessConfig.from_env())


_RESOLVER: Optional[PrefixResolver] = None
_RESOLVER_SIGNATURE: Optional[tuple] = None


def _make_resolver(cfg: Optional[AccessConfig] = None) -> PrefixResolver:
    """Lazily create (or re-create) the shared prefix resolver from config."""
    global _RESOLVER, _RESOLVER_SIGNATURE

    cfg = cfg or AccessConfig.from_env()
    signature = (cfg.prefix_cache_path, cfg.prefix_lookup_url, cfg.prefix_lookup_enabled)
    if _RESOLVER is None or _RESOLVER_SIGNATURE != signature:
        _RESOLVER = PrefixResolver.from_config(cfg)
        _RESOLVER_SIGNATURE = signature
    return _RESOLVER


def _env_credentials() -> Optional[Credentials]:
    creds = Credentials(
        username=os.getenv("SPARQL_USERNAME") or None,
        password=os.getenv("SPARQL_PASSWORD") or None,
        token=os.getenv("SPARQL_TOKEN") or None,
        api_key=os.getenv("SPARQL_API_KEY") or None,
    )
    return creds if creds.to_dict() else None


def _endpoint_id(url: str) -> str:
    return "ep-" + hashlib.sha1(url.encode("utf-8")).hexdigest()[:12]


def _endpoint_from_args(
    cfg: AccessConfig,
    endpoint_url: Optional[str] = None,
) -> Endpoint:
    """Build the Endpoint a tool call runs against.

    The URL argument wins over SPARQL_ENDPOINT_URL. Auth settings always come
    from the environment so secrets never travel through tool arguments, and
    they are only attached when the call targets the configured endpoint.
    """
    configured = (cfg.endpoint_url or "").strip()
    url = (endpoint_url or configured).strip()
    if not url:
        raise ValueError("No endpoint URL given and SPARQL_ENDPOINT_URL is not set.")
    if not is_valid_endpoint_url(url):
        raise ValueError(f"Not a valid http(s) endpoint URL: {url!r}")

    if url != configured:
        return Endpoint(id=_endpoint_id(url), url=url, auth=AuthConfig())

    auth = AuthConfig(
        kind=AuthKind.parse(cfg.auth_type),
        header_name=os.getenv("SPARQL_API_KEY_HEADER") or None,
        credentials=_env_credentials(),
    )
    return Endpoint(id=_endpoint_id(url), url=url, auth=auth)


def _resolve_endpoint(endpoint_url: Optional[str]):
    """(cfg, endpoint, error_dict). Exactly one of endpoint/error is set."""
    cfg = AccessConfig.from_env()
    try:
        return cfg, _endpoint_from_args(cfg, endpoint_url), None
    except ValueError as exc:
        return cfg, None, {"ok": False, "error": _make_error("CONFIG_ERROR", str(exc))}


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


async def query(
    sparql: str,
    endpoint_url: Optional[str] = None,
    add_prefixes: bool = True,
    retries: Optional[int] = None,
    timeout_seconds: Optional[float] = None,
) -> Dict[str, Any]:
    """Run a SELECT or ASK query and return SPARQL-JSON shaped results."""
    _cfg, endpoint, error = _resolve_endpoint(endpoint_url)
    if error:
        return error

    if not sparql or not sparql.strip():
        return {"ok": False, "error": _make_error("QUERY_ERROR", "Query text is empty.")}

    client = _make_client()
    defaults = client.default_options()
    try:
        options = QueryOptions(
            retries=defaults.retries if retries is None else int(retries),
            retry_delay=defaults.retry_delay,
            timeout=defaults.timeout if timeout_seconds is None else float(timeout_seconds),
        )
    except ValueError as exc:
        return {"ok": False, "error": _make_error("CONFIG_ERROR", str(exc))}

    text = with_prefixes(sparql) if add_prefixes else sparql

    t0 = time.time()
    try:
        result = await client.execute(endpoint, text, options)
    except ClassifiedError as exc:
        return _error_from(exc)

    out: Dict[str, Any] = {"ok": True}
    out.update(result.to_dict())
    out["meta"] = {
        "endpoint_url": endpoint.url,
        "elapsed_ms": int((time.time() - t0) * 1000),
        "row_count": len(result.bindings),
        "retries": options.retries,
        "timeout_seconds": options.timeout,
    }
    return out


async def check_connection(endpoint_url: Optional[str] = None) -> Dict[str, Any]:
    """Single-attempt round trip with a trivial query."""
    _cfg, endpoint, error = _resolve_endpoint(endpoint_url)
    if error:
        return error

    client = _make_client()
    result = await client.test_connection(endpoint)
    return {
        "ok": result.success,
        "endpoint_url": endpoint.url,
        "response_time_ms": int(result.response_time * 1000),
        "status": endpoint.status.value,
        "error": result.error.to_dict() if result.error else None,
    }


async def fetch_resource_rdf(
    resource_uri: str,
    rdf_format: str = "turtle",
    endpoint_url: Optional[str] = None,
) -> Dict[str, Any]:
    _cfg, endpoint, error = _resolve_endpoint(endpoint_url)
    if error:
        return error

    client = _make_client()
    try:
        text = await client.fetch_raw_rdf(endpoint, resource_uri, rdf_format)
    except ValueError as exc:
        return {"ok": False, "error": _make_error("INVALID_ARGUMENT", str(exc))}
    except ClassifiedError as exc:
        return _error_from(exc)

    return {"ok": True, "resource_uri": resource_uri, "format": rdf_format, "rdf": text}


async def analyze_endpoint(endpoint_url: Optional[str] = None) -> Dict[str, Any]:
    """Capability snapshot: graphs, duplicates, languages, schemes, labels."""
    _cfg, endpoint, error = _resolve_endpoint(endpoint_url)
    if error:
        return error

    t0 = time.time()
    client = _make_client()
    analysis = await run_analysis(client, endpoint)
    return {
        "ok": True,
        "endpoint_url": endpoint.url,
        "analysis": analysis.to_dict(),
        "meta": {"elapsed_ms": int((time.time() - t0) * 1000)},
    }


async def detect_languages(
    endpoint_url: Optional[str] = None,
    graph_uris: Optional[List[str]] = None,
    graph_scoped: bool = False,
) -> Dict[str, Any]:
    _cfg, endpoint, error = _resolve_endpoint(endpoint_url)
    if error:
        return error

    client = _make_client()
    languages = await run_language_detection(
        client, endpoint, graph_scoped=graph_scoped, graph_uris=graph_uris
    )
    return {
        "ok": True,
        "endpoint_url": endpoint.url,
        "languages": [{"lang": lc.lang, "count": lc.count} for lc in languages],
    }


async def resolve_uris(uris: List[str]) -> Dict[str, Any]:
    """Qualified names for a list of URIs (``skos:prefLabel`` etc.)."""
    resolver = _make_resolver()
    before = resolver.lookup_count
    resolved = await resolver.resolve_uris(uris or [])

    items = []
    for uri in uris or []:
        entry = resolved.get(uri)
        items.append(
            {
                "uri": uri,
                "prefix": entry.prefix if entry else "",
                "local_name": entry.local_name if entry else uri,
                "qualified_name": format_qualified_name(entry) if entry else uri,
            }
        )

    return {
        "ok": True,
        "items": items,
        "meta": {"external_lookups": resolver.lookup_count - before},
    }


async def check_endpoint(endpoint_url: str) -> Dict[str, Any]:
    """Transport security and trust level of an endpoint URL. No network."""
    cfg = AccessConfig.from_env()
    security = check_endpoint_security(endpoint_url)
    trust = assess_endpoint_trust(endpoint_url, cfg.trusted_domains)
    return {
        "endpoint_url": endpoint_url,
        "valid": is_valid_endpoint_url(endpoint_url),
        "security": {
            "is_https": security.is_https,
            "is_localhost": security.is_localhost,
            "warning": security.warning,
        },
        "trust": {"level": trust.level.value, "reasons": list(trust.reasons)},
    }


def _collect_config_info(cfg: AccessConfig) -> Dict[str, Any]:
    """Redacted snapshot of the access configuration."""
    return {
        "endpoint_url": cfg.endpoint_url,
        "auth_type": cfg.auth_type,
        "credentials_configured": _env_credentials() is not None,
        "verify_tls": bool(cfg.verify_tls),
        "detect_cors": bool(cfg.detect_cors),
        "executor": {
            "timeout_seconds": cfg.timeout_seconds,
            "retries": cfg.retries,
            "retry_delay_seconds": cfg.retry_delay_seconds,
        },
        "limits": {
            "language_batch_size": cfg.language_batch_size,
            "language_concurrency": cfg.language_concurrency,
            "max_skos_graphs": cfg.max_skos_graphs,
            "max_schemes": cfg.max_schemes,
        },
        "prefixes": {
            "cache_path": cfg.prefix_cache_path,
            "lookup_url": cfg.prefix_lookup_url,
            "lookup_enabled": bool(cfg.prefix_lookup_enabled),
        },
    }


async def diagnostics() -> Dict[str, Any]:
    started = time.time()
    cfg = AccessConfig.from_env()
    config_info = _collect_config_info(cfg)

    checks: List[Dict[str, Any]] = []
    overall_ok = True

    # Endpoint configuration
    t0 = time.time()
    try:
        endpoint = _endpoint_from_args(cfg)
        checks.append(
            {"name": "endpoint_config", "ok": True, "error": None, "elapsed_ms": int((time.time() - t0) * 1000)}
        )
    except ValueError as exc:
        endpoint = None
        overall_ok = False
        checks.append(
            {
                "name": "endpoint_config",
                "ok": False,
                "error": _make_error("CONFIG_ERROR", str(exc)),
                "elapsed_ms": int((time.time() - t0) * 1000),
            }
        )

    if endpoint is not None:
        security = check_endpoint_security(endpoint.url)
        checks.append(
            {
                "name": "endpoint_security",
                "ok": security.is_https or security.is_localhost,
                "error": _make_error("INSECURE_ENDPOINT", security.warning)
                if security.warning and not security.is_localhost
                else None,
                "elapsed_ms": 0,
            }
        )

        # Connection
        t0 = time.time()
        client = _make_client()
        result = await client.test_connection(endpoint)
        if not result.success:
            overall_ok = False
        checks.append(
            {
                "name": "connection",
                "ok": result.success,
                "error": result.error.to_dict() if result.error else None,
                "elapsed_ms": int((time.time() - t0) * 1000),
            }
        )

    resolver = _make_resolver(cfg)
    elapsed_ms = int((time.time() - started) * 1000)

    return {
        "ok": overall_ok,
        "config": config_info,
        "checks": checks,
        "meta": {
            "elapsed_ms": elapsed_ms,
            "prefix_cache": resolver.store.stats(),
        },
    }


# ---------------------------------------------------------------------------
# MCP tool registration
# ---------------------------------------------------------------------------


def register_tools(server: Any) -> None:
    """Register MCP tools on an MCP Server-like instance."""
    if server is None or not hasattr(server, "tool"):
        raise ValueError(
            "register_tools(server) expects an MCP Server-like object that exposes a .tool() decorator."
        )

    @server.tool(
        name="sparql_query",
        description=(
            "Run a SPARQL SELECT or ASK query. Standard SKOS/DC/RDF/OWL prefixes are "
            "added unless the query declares its own."
        ),
    )
    async def mcp_query(
        sparql: str,
        endpoint_url: Optional[str] = None,
        add_prefixes: bool = True,
        retries: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> Dict[str, Any]:
        return await query(
            sparql=sparql,
            endpoint_url=endpoint_url,
            add_prefixes=add_prefixes,
            retries=retries,
            timeout_seconds=timeout_seconds,
        )

    @server.tool(name="sparql_test_connection", description="Check that a SPARQL endpoint answers a trivial query.")
    async def mcp_test_connection(endpoint_url: Optional[str] = None) -> Dict[str, Any]:
        return await check_connection(endpoint_url=endpoint_url)

    @server.tool(
        name="sparql_fetch_resource_rdf",
        description="Fetch all triples about one resource as turtle, jsonld, ntriples or rdfxml.",
    )
    async def mcp_fetch_resource_rdf(
        resource_uri: str,
        rdf_format: str = "turtle",
        endpoint_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await fetch_resource_rdf(
            resource_uri=resource_uri, rdf_format=rdf_format, endpoint_url=endpoint_url
        )

    @server.tool(
        name="sparql_analyze_endpoint",
        description=(
            "Detect named graphs, SKOS graphs, duplicate triples, label languages, "
            "concept schemes and label predicates of a SPARQL endpoint."
        ),
    )
    async def mcp_analyze_endpoint(endpoint_url: Optional[str] = None) -> Dict[str, Any]:
        return await analyze_endpoint(endpoint_url=endpoint_url)

    @server.tool(
        name="sparql_detect_languages",
        description="Histogram of SKOS label language tags, optionally over a list of graphs.",
    )
    async def mcp_detect_languages(
        endpoint_url: Optional[str] = None,
        graph_uris: Optional[List[str]] = None,
        graph_scoped: bool = False,
    ) -> Dict[str, Any]:
        return await detect_languages(
            endpoint_url=endpoint_url, graph_uris=graph_uris, graph_scoped=graph_scoped
        )

    @server.tool(name="sparql_resolve_uris", description="Turn URIs into prefixed names such as skos:prefLabel.")
    async def mcp_resolve_uris(uris: List[str]) -> Dict[str, Any]:
        return await resolve_uris(uris=uris)

    @server.tool(
        name="sparql_check_endpoint",
        description="Report HTTPS usage and trust level of an endpoint URL without contacting it.",
    )
    async def mcp_check_endpoint(endpoint_url: str) -> Dict[str, Any]:
        return await check_endpoint(endpoint_url=endpoint_url)

    @server.tool(
        name="sparql_diagnostics",
        description="Configuration snapshot and a connection check against the configured endpoint.",
    )
    async def mcp_diagnostics() -> Dict[str, Any]:
        return await diagnostics()
