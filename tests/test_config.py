# SPARQL Endpoint Access Layer
# File: tests/test_config.py
# Version: v1

from sparql_access.client import SparqlClient
from sparql_access.config import DEFAULT_TRUSTED_DOMAINS, AccessConfig


def test_defaults_without_env():
    cfg = AccessConfig.from_env()
    assert cfg.endpoint_url is None
    assert cfg.auth_type == "none"
    assert cfg.timeout_seconds == 60.0
    assert cfg.retries == 3
    assert cfg.retry_delay_seconds == 1.0
    assert cfg.verify_tls is True
    assert cfg.detect_cors is False
    assert cfg.language_batch_size == 10
    assert cfg.prefix_cache_path is None
    assert cfg.prefix_lookup_url == "https://prefix.cc/reverse"
    assert cfg.trusted_domains == DEFAULT_TRUSTED_DOMAINS
    assert cfg.log_level == "WARNING"


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("SPARQL_ENDPOINT_URL", "https://example.org/sparql")
    monkeypatch.setenv("SPARQL_AUTH_TYPE", "bearer")
    monkeypatch.setenv("SPARQL_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("SPARQL_RETRIES", "1")
    monkeypatch.setenv("SPARQL_VERIFY_TLS", "off")
    monkeypatch.setenv("SPARQL_DETECT_CORS", "yes")
    monkeypatch.setenv("SPARQL_TRUSTED_DOMAINS", "example.org, , vocab.example.com")
    monkeypatch.setenv("SPARQL_LOG_LEVEL", "debug")

    cfg = AccessConfig.from_env()

    assert cfg.endpoint_url == "https://example.org/sparql"
    assert cfg.auth_type == "bearer"
    assert cfg.timeout_seconds == 12.5
    assert cfg.retries == 1
    assert cfg.verify_tls is False
    assert cfg.detect_cors is True
    assert cfg.trusted_domains == ["example.org", "vocab.example.com"]
    assert cfg.log_level == "DEBUG"


def test_bad_and_out_of_range_values_are_tolerated(monkeypatch):
    monkeypatch.setenv("SPARQL_RETRIES", "lots")
    monkeypatch.setenv("SPARQL_LANGUAGE_BATCH_SIZE", "0")
    monkeypatch.setenv("SPARQL_MAX_SKOS_GRAPHS", "-3")
    monkeypatch.setenv("SPARQL_RETRY_DELAY_SECONDS", "-1")

    cfg = AccessConfig.from_env()

    assert cfg.retries == 3
    assert cfg.language_batch_size == 1
    assert cfg.max_skos_graphs == 1
    assert cfg.retry_delay_seconds == 0.0


def test_client_default_options_follow_config():
    client = SparqlClient(config=AccessConfig(retries=2, retry_delay_seconds=0.25, timeout_seconds=5))
    options = client.default_options()
    assert options.retries == 2
    assert options.retry_delay == 0.25
    assert options.timeout == 5
