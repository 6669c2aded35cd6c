# SPARQL Endpoint Access Layer
# File: prefix.py
# Version: v2

"""Resolve URIs to qualified names such as ``skos:prefLabel``.

Lookup order for a namespace:

1. the built-in table of well-known namespaces (never goes to the network
   and wins over anything cached),
2. the namespace cache, which also remembers failed lookups,
3. a reverse lookup against prefix.cc (or a compatible service).

A failed lookup never raises: the URI resolves to an empty prefix and its
local name.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, Optional, Tuple

import httpx

from .cache import KeyValueStore
from .config import AccessConfig
from .models import PrefixEntry

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_URL = "https://prefix.cc/reverse"
LOOKUP_TIMEOUT_SECONDS = 10.0

COMMON_PREFIXES: Dict[str, str] = {
    # W3C
    "http://www.w3.org/1999/02/22-rdf-syntax-ns#": "rdf",
    "http://www.w3.org/2000/01/rdf-schema#": "rdfs",
    "http://www.w3.org/2002/07/owl#": "owl",
    "http://www.w3.org/2001/XMLSchema#": "xsd",
    "http://www.w3.org/2004/02/skos/core#": "skos",
    "http://www.w3.org/2008/05/skos-xl#": "skosxl",
    "http://www.w3.org/ns/shacl#": "sh",
    "http://www.w3.org/ns/prov#": "prov",
    "http://www.w3.org/ns/dcat#": "dcat",
    "http://www.w3.org/ns/adms#": "adms",
    "http://www.w3.org/ns/org#": "org",
    "http://www.w3.org/ns/locn#": "locn",
    "http://www.w3.org/2006/vcard/ns#": "vcard",
    "http://www.w3.org/2006/time#": "time",
    "http://www.w3.org/2003/01/geo/wgs84_pos#": "geo",
    "http://www.w3.org/ns/sparql-service-description#": "sd",
    # Dublin Core
    "http://purl.org/dc/terms/": "dct",
    "http://purl.org/dc/elements/1.1/": "dc",
    # General vocabularies
    "http://xmlns.com/foaf/0.1/": "foaf",
    "http://schema.org/": "schema",
    "https://schema.org/": "schema",
    "http://rdfs.org/ns/void#": "void",
    "http://purl.org/vocab/vann/": "vann",
    "http://creativecommons.org/ns#": "cc",
    "http://purl.org/linked-data/cube#": "qb",
    "http://www.opengis.net/ont/geosparql#": "gsp",
    # EU publications office
    "http://publications.europa.eu/ontology/euvoc#": "euvoc",
    "http://data.europa.eu/eli/ontology#": "eli",
    "http://eurovoc.europa.eu/": "eurovoc",
}


def split_uri(uri: str) -> Optional[Tuple[str, str]]:
    """Split at the last ``#`` or ``/`` into ``(namespace, local_name)``.

    Returns None when there is no separator or nothing follows it.
    """
    index = max(uri.rfind("#"), uri.rfind("/"))
    if index == -1 or index == len(uri) - 1:
        return None
    return uri[: index + 1], uri[index + 1:]


def format_qualified_name(entry: PrefixEntry) -> str:
    if entry.prefix:
        return f"{entry.prefix}:{entry.local_name}"
    return entry.local_name


class PrefixResolver:
    """Namespace-to-prefix resolution backed by a :class:`KeyValueStore`.

    The store maps namespace URIs to a prefix, or to ``None`` for namespaces
    that were looked up without success. Entries never expire.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        lookup_url: str = DEFAULT_LOOKUP_URL,
        lookup_enabled: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = LOOKUP_TIMEOUT_SECONDS,
    ) -> None:
        self.store = store if store is not None else KeyValueStore()
        self.lookup_url = lookup_url
        self.lookup_enabled = lookup_enabled
        self.transport = transport
        self.timeout = timeout
        self.lookup_count = 0

    @classmethod
    def from_config(
        cls,
        config: AccessConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "PrefixResolver":
        return cls(
            store=KeyValueStore(config.prefix_cache_path),
            lookup_url=config.prefix_lookup_url,
            lookup_enabled=config.prefix_lookup_enabled,
            transport=transport,
        )

    def _known(self, namespace: str) -> Tuple[bool, Optional[str]]:
        """(found, prefix) from the built-in table or the cache."""
        common = COMMON_PREFIXES.get(namespace)
        if common:
            return True, common
        if namespace in self.store:
            return True, self.store.get(namespace)
        return False, None

    async def _lookup(self, http_client: httpx.AsyncClient, namespace: str) -> Optional[str]:
        """Reverse lookup of one namespace. None when nothing was found."""
        self.lookup_count += 1
        try:
            response = await http_client.get(
                self.lookup_url, params={"uri": namespace, "format": "json"}
            )
        except httpx.HTTPError as exc:
            logger.warning("Prefix lookup for %s failed: %s", namespace, exc)
            return None

        if not response.is_success:
            logger.debug(
                "Prefix lookup for %s returned HTTP %s", namespace, response.status_code
            )
            return None

        try:
            data = response.json()
        except ValueError as exc:
            logger.warning("Prefix lookup for %s returned invalid JSON: %s", namespace, exc)
            return None

        # Response shape: {"<prefix>": "<namespace>"}
        if isinstance(data, dict) and data:
            prefix = next(iter(data))
            logger.debug("Resolved %s to prefix '%s'", namespace, prefix)
            return str(prefix)
        return None

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            follow_redirects=True,
        )

    async def _fetch_missing(self, namespaces: Iterable[str]) -> None:
        if not self.lookup_enabled:
            return
        missing = sorted({ns for ns in namespaces if not self._known(ns)[0]})
        if not missing:
            return

        logger.debug("Looking up %d namespace(s)", len(missing))
        async with self._http_client() as http_client:
            prefixes = await asyncio.gather(
                *(self._lookup(http_client, ns) for ns in missing)
            )

        # Negative results are cached too.
        self.store.update(dict(zip(missing, prefixes)))

    async def resolve_uri(self, uri: str) -> Optional[PrefixEntry]:
        """Resolve one URI. None when the URI has no namespace/local split."""
        parts = split_uri(uri)
        if parts is None:
            return None

        namespace, local_name = parts
        await self._fetch_missing([namespace])
        _found, prefix = self._known(namespace)
        return PrefixEntry(prefix=prefix or "", local_name=local_name)

    async def resolve_uris(self, uris: Iterable[str]) -> Dict[str, PrefixEntry]:
        """Resolve many URIs with at most one lookup per unknown namespace.

        URIs without a namespace/local split are left out of the result.
        """
        split: Dict[str, Tuple[str, str]] = {}
        for uri in uris:
            parts = split_uri(uri)
            if parts is not None:
                split[uri] = parts

        await self._fetch_missing(ns for ns, _local in split.values())

        resolved: Dict[str, PrefixEntry] = {}
        for uri, (namespace, local_name) in split.items():
            _found, prefix = self._known(namespace)
            resolved[uri] = PrefixEntry(prefix=prefix or "", local_name=local_name)
        return resolved

    def clear(self) -> None:
        """Forget every cached namespace. The built-in table is unaffected."""
        self.store.clear()
        self.lookup_count = 0
