# SPARQL Endpoint Access Layer
# File: tests/test_prefix.py
# Version: v1

from typing import List

import httpx
import pytest

from sparql_access.cache import KeyValueStore
from sparql_access.config import AccessConfig
from sparql_access.models import PrefixEntry
from sparql_access.prefix import PrefixResolver, format_qualified_name, split_uri


def lookup_service(answers, calls: List[str]):
    """Fake reverse-namespace service answering from a dict (None -> 404)."""

    def handler(request: httpx.Request) -> httpx.Response:
        namespace = request.url.params["uri"]
        calls.append(namespace)
        assert request.url.params["format"] == "json"
        prefix = answers.get(namespace)
        if prefix is None:
            return httpx.Response(404)
        return httpx.Response(200, json={prefix: namespace})

    return httpx.MockTransport(handler)


def test_split_uri():
    assert split_uri("http://www.w3.org/2004/02/skos/core#prefLabel") == (
        "http://www.w3.org/2004/02/skos/core#",
        "prefLabel",
    )
    assert split_uri("http://purl.org/dc/terms/title") == ("http://purl.org/dc/terms/", "title")
    assert split_uri("http://example.org/ns/") is None
    assert split_uri("urn:isbn:123") is None


def test_format_qualified_name():
    assert format_qualified_name(PrefixEntry("dct", "created")) == "dct:created"
    assert format_qualified_name(PrefixEntry("", "created")) == "created"


@pytest.mark.asyncio
async def test_common_prefixes_need_no_lookup():
    calls: List[str] = []
    resolver = PrefixResolver(transport=lookup_service({}, calls))

    entry = await resolver.resolve_uri("http://www.w3.org/2004/02/skos/core#prefLabel")

    assert entry == PrefixEntry("skos", "prefLabel")
    assert calls == []

    resolved = await resolver.resolve_uris(
        [
            "http://www.w3.org/2000/01/rdf-schema#label",
            "http://www.w3.org/2008/05/skos-xl#literalForm",
            "https://schema.org/name",
            "http://schema.org/name",
            "http://purl.org/dc/terms/created",
        ]
    )
    assert resolved["https://schema.org/name"] == PrefixEntry("schema", "name")
    assert resolved["http://www.w3.org/2008/05/skos-xl#literalForm"].prefix == "skosxl"
    assert calls == []
    assert resolver.lookup_count == 0


@pytest.mark.asyncio
async def test_common_prefix_wins_over_stale_cache():
    store = KeyValueStore()
    store.set("http://www.w3.org/2004/02/skos/core#", "stale")
    resolver = PrefixResolver(store=store, transport=lookup_service({}, []))

    entry = await resolver.resolve_uri("http://www.w3.org/2004/02/skos/core#broader")
    assert entry.prefix == "skos"


@pytest.mark.asyncio
async def test_unknown_namespace_is_looked_up_once_and_cached():
    calls: List[str] = []
    resolver = PrefixResolver(
        transport=lookup_service({"http://example.org/vocab#": "ex"}, calls)
    )

    first = await resolver.resolve_uri("http://example.org/vocab#thing")
    second = await resolver.resolve_uri("http://example.org/vocab#other")

    assert first == PrefixEntry("ex", "thing")
    assert second == PrefixEntry("ex", "other")
    assert calls == ["http://example.org/vocab#"]


@pytest.mark.asyncio
async def test_batch_groups_by_namespace():
    calls: List[str] = []
    resolver = PrefixResolver(
        transport=lookup_service(
            {"http://example.org/a/": "a", "http://example.org/b#": "b"}, calls
        )
    )

    uris = [f"http://example.org/a/item{i}" for i in range(5)] + [
        "http://example.org/b#x",
        "http://example.org/b#y",
        "http://purl.org/dc/terms/title",
    ]
    resolved = await resolver.resolve_uris(uris)

    assert sorted(calls) == ["http://example.org/a/", "http://example.org/b#"]
    assert resolved["http://example.org/a/item3"] == PrefixEntry("a", "item3")
    assert resolved["http://example.org/b#y"] == PrefixEntry("b", "y")
    assert resolved["http://purl.org/dc/terms/title"] == PrefixEntry("dct", "title")


@pytest.mark.asyncio
async def test_failed_lookup_resolves_to_local_name_and_is_remembered():
    calls: List[str] = []
    resolver = PrefixResolver(transport=lookup_service({}, calls))

    entry = await resolver.resolve_uri("http://unknown.example/ns#term")
    again = await resolver.resolve_uri("http://unknown.example/ns#term2")

    assert entry == PrefixEntry("", "term")
    assert again == PrefixEntry("", "term2")
    assert calls == ["http://unknown.example/ns#"]


@pytest.mark.asyncio
async def test_network_failure_does_not_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    resolver = PrefixResolver(transport=httpx.MockTransport(handler))
    entry = await resolver.resolve_uri("http://offline.example/ns/term")
    assert entry == PrefixEntry("", "term")


@pytest.mark.asyncio
async def test_lookup_can_be_disabled():
    calls: List[str] = []
    resolver = PrefixResolver(
        transport=lookup_service({"http://example.org/vocab#": "ex"}, calls),
        lookup_enabled=False,
    )
    entry = await resolver.resolve_uri("http://example.org/vocab#thing")
    assert entry == PrefixEntry("", "thing")
    assert calls == []


@pytest.mark.asyncio
async def test_uris_without_local_name_are_skipped():
    resolver = PrefixResolver(transport=lookup_service({}, []))
    assert await resolver.resolve_uri("http://example.org/ns/") is None
    assert await resolver.resolve_uris(["http://example.org/ns/"]) == {}


@pytest.mark.asyncio
async def test_durable_cache_survives_a_new_resolver(tmp_path):
    path = tmp_path / "prefixes.json"
    calls: List[str] = []
    answers = {"http://example.org/vocab#": "ex"}

    first = PrefixResolver(store=KeyValueStore(path), transport=lookup_service(answers, calls))
    await first.resolve_uri("http://example.org/vocab#thing")

    second = PrefixResolver(store=KeyValueStore(path), transport=lookup_service(answers, calls))
    entry = await second.resolve_uri("http://example.org/vocab#thing")

    assert entry == PrefixEntry("ex", "thing")
    assert calls == ["http://example.org/vocab#"]


@pytest.mark.asyncio
async def test_clear_forgets_cached_namespaces():
    calls: List[str] = []
    resolver = PrefixResolver(
        transport=lookup_service({"http://example.org/vocab#": "ex"}, calls)
    )
    await resolver.resolve_uri("http://example.org/vocab#a")
    resolver.clear()
    await resolver.resolve_uri("http://example.org/vocab#a")
    assert len(calls) == 2


def test_from_config(tmp_path):
    cfg = AccessConfig(
        prefix_cache_path=str(tmp_path / "p.json"),
        prefix_lookup_url="https://prefixes.example/reverse",
        prefix_lookup_enabled=False,
    )
    resolver = PrefixResolver.from_config(cfg)
    assert resolver.store.durable is True
    assert resolver.lookup_url == "https://prefixes.example/reverse"
    assert resolver.lookup_enabled is False
