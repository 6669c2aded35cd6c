# SPARQL Endpoint Access Layer
# File: config.py
# Version: v2

"""Configuration loading for the SPARQL endpoint access layer."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import List

DEFAULT_TRUSTED_DOMAINS = [
    "dbpedia.org",
    "wikidata.org",
    "data.europa.eu",
    "publications.europa.eu",
    "vocabularies.unesco.org",
    "id.loc.gov",
    "data.bnf.fr",
    "linkeddata.uriburner.com",
]


def _parse_bool_env(name: str, default: bool = False) -> bool:
    """Parse a boolean-like environment variable.

    Accepts 1/0, true/false, yes/no, on/off (case-insensitive).
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "on"}


def _parse_int_env(
    name: str,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    """Parse an int environment variable with clamping and safe fallback."""
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        value = int(default)
    else:
        try:
            value = int(str(raw).strip())
        except ValueError:
            value = int(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value

    return value


def _parse_float_env(
    name: str,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    """Float counterpart of _parse_int_env."""
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        value = float(default)
    else:
        try:
            value = float(str(raw).strip())
        except ValueError:
            value = float(default)

    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value

    return value


def _parse_list_env(name: str, default: List[str]) -> List[str]:
    """Parse a comma separated environment variable into a cleaned list."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(default)

    items = [p.strip() for p in raw.split(",")]
    return [p for p in items if p]


@dataclass
class AccessConfig:
    """Settings shared by the executor, the probes and the prefix resolver.

    Credentials are only ever read from the environment at call time; they
    are not part of this object so that it can be logged or returned from
    diagnostics without redaction.
    """

    endpoint_url: str | None = None
    auth_type: str = "none"

    # Executor defaults
    timeout_seconds: float = 60.0
    retries: int = 3
    retry_delay_seconds: float = 1.0
    verify_tls: bool = True
    detect_cors: bool = False

    # Capability probe limits
    language_batch_size: int = 10
    language_concurrency: int = 3
    max_skos_graphs: int = 500
    max_schemes: int = 200

    # Prefix resolution
    prefix_cache_path: str | None = None
    prefix_lookup_url: str = "https://prefix.cc/reverse"
    prefix_lookup_enabled: bool = True

    trusted_domains: List[str] = field(
        default_factory=lambda: list(DEFAULT_TRUSTED_DOMAINS)
    )
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "AccessConfig":
        """Create configuration from environment variables."""
        endpoint_url = os.getenv("SPARQL_ENDPOINT_URL") or None
        auth_type = (os.getenv("SPARQL_AUTH_TYPE") or "none").strip() or "none"

        timeout_seconds = _parse_float_env(
            "SPARQL_TIMEOUT_SECONDS", default=60.0, min_value=0.1, max_value=3600.0
        )
        retries = _parse_int_env("SPARQL_RETRIES", default=3, min_value=0, max_value=10)
        retry_delay_seconds = _parse_float_env(
            "SPARQL_RETRY_DELAY_SECONDS", default=1.0, min_value=0.0, max_value=60.0
        )
        verify_tls = _parse_bool_env("SPARQL_VERIFY_TLS", default=True)
        detect_cors = _parse_bool_env("SPARQL_DETECT_CORS", default=False)

        language_batch_size = _parse_int_env(
            "SPARQL_LANGUAGE_BATCH_SIZE", default=10, min_value=1, max_value=500
        )
        language_concurrency = _parse_int_env(
            "SPARQL_LANGUAGE_CONCURRENCY", default=3, min_value=1, max_value=32
        )
        max_skos_graphs = _parse_int_env(
            "SPARQL_MAX_SKOS_GRAPHS", default=500, min_value=1, max_value=100000
        )
        max_schemes = _parse_int_env(
            "SPARQL_MAX_SCHEMES", default=200, min_value=1, max_value=100000
        )

        prefix_cache_path = os.getenv("SPARQL_PREFIX_CACHE_PATH") or None
        prefix_lookup_url = (
            os.getenv("SPARQL_PREFIX_LOOKUP_URL") or "https://prefix.cc/reverse"
        )
        prefix_lookup_enabled = _parse_bool_env(
            "SPARQL_PREFIX_LOOKUP_ENABLED", default=True
        )

        trusted_domains = _parse_list_env(
            "SPARQL_TRUSTED_DOMAINS", DEFAULT_TRUSTED_DOMAINS
        )
        log_level = (os.getenv("SPARQL_LOG_LEVEL") or "WARNING").strip().upper()

        return cls(
            endpoint_url=endpoint_url,
            auth_type=auth_type,
            timeout_seconds=timeout_seconds,
            retries=retries,
            retry_delay_seconds=retry_delay_seconds,
            verify_tls=verify_tls,
            detect_cors=detect_cors,
            language_batch_size=language_batch_size,
            language_concurrency=language_concurrency,
            max_skos_graphs=max_skos_graphs,
            max_schemes=max_schemes,
            prefix_cache_path=prefix_cache_path,
            prefix_lookup_url=prefix_lookup_url,
            prefix_lookup_enabled=prefix_lookup_enabled,
            trusted_domains=trusted_domains,
            log_level=log_level,
        )
