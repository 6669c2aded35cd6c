# SPARQL Endpoint Access Layer
# File: capabilities.py
# Version: v4

"""Capability probes for SPARQL endpoints.

Each probe runs one or more diagnostic queries through a
:class:`~sparql_access.client.SparqlClient` and degrades to an "unknown"
sentinel (``None``, ``False`` or an empty list) when its own queries fail.
A failing probe never raises, so one broken feature of an endpoint cannot
abort the rest of an analysis.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from . import queries
from .client import SparqlClient
from .errors import ClassifiedError
from .models import (
    Endpoint,
    EndpointAnalysis,
    GraphDetection,
    LanguageCount,
    QueryOptions,
    RelationshipSupport,
    SchemeDetection,
    SkosGraphResult,
    SparqlResult,
)

logger = logging.getLogger(__name__)

LANGUAGE_DETECTION_BATCH_SIZE = 10


def _probe_options(client: SparqlClient, retries: int = 1) -> QueryOptions:
    return QueryOptions(
        retries=retries,
        retry_delay=client.config.retry_delay_seconds,
        timeout=client.config.timeout_seconds,
    )


async def _run_probe(
    client: SparqlClient,
    endpoint: Endpoint,
    name: str,
    query: str,
    retries: int = 1,
) -> Optional[SparqlResult]:
    """Execute a probe query; ``None`` means the query failed."""
    try:
        return await client.execute(endpoint, query, _probe_options(client, retries))
    except ClassifiedError as exc:
        logger.warning(
            "Probe '%s' failed on %s: %s %s", name, endpoint.url, exc.code.value, exc.message
        )
        return None


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return int(float(value))
    except ValueError:
        return None


def _parse_exists(value: Optional[str]) -> bool:
    # Some endpoints return "true"/"false" for EXISTS, others "1"/"0".
    return value in {"true", "1"}


def _ask_value(result: SparqlResult) -> bool:
    if result.is_ask:
        return bool(result.boolean)
    return bool(result.bindings)


# ---------------------------------------------------------------------------
# Graph probes
# ---------------------------------------------------------------------------


async def detect_graphs(client: SparqlClient, endpoint: Endpoint) -> GraphDetection:
    """Find out whether the endpoint holds named graphs.

    Stage 1 asks for an exact count of distinct graphs, with no retries since
    stores that cannot answer it efficiently tend to time out. Stage 2 falls
    back to an ASK existence check and leaves the count unknown.
    """
    counted = await _run_probe(
        client, endpoint, "graph-count", queries.GRAPH_COUNT_QUERY, retries=0
    )
    if counted is not None:
        count = _to_int(counted.first("count"))
        if count is not None:
            return GraphDetection(
                supports_named_graphs=count > 0,
                graph_count=count,
                graph_count_exact=True,
            )
        logger.debug("Graph count on %s returned no usable number", endpoint.url)

    asked = await _run_probe(client, endpoint, "graph-exists", queries.GRAPH_EXISTS_QUERY)
    if asked is None:
        return GraphDetection(supports_named_graphs=None)

    return GraphDetection(
        supports_named_graphs=_ask_value(asked),
        graph_count=None,
        graph_count_exact=False,
    )


async def detect_skos_graphs(
    client: SparqlClient,
    endpoint: Endpoint,
    max_graphs: Optional[int] = None,
) -> SkosGraphResult:
    """List graphs that hold SKOS data.

    When more than ``max_graphs`` graphs match, only the count is returned
    (``skos_graph_uris`` is ``None``); the count is then a lower bound.
    """
    limit = max_graphs if max_graphs is not None else client.config.max_skos_graphs
    result = await _run_probe(
        client, endpoint, "skos-graphs", queries.skos_graphs_query(limit)
    )
    if result is None:
        return SkosGraphResult(skos_graph_count=None, skos_graph_uris=None)

    graph_uris = [uri for uri in result.values("g") if uri]
    if len(graph_uris) > limit:
        return SkosGraphResult(skos_graph_count=len(graph_uris), skos_graph_uris=None)

    return SkosGraphResult(skos_graph_count=len(graph_uris), skos_graph_uris=graph_uris)


async def detect_duplicates(client: SparqlClient, endpoint: Endpoint) -> bool:
    """True when some triple is asserted in more than one graph.

    Any failure counts as "no duplicates".
    """
    result = await _run_probe(client, endpoint, "duplicates", queries.DUPLICATES_QUERY)
    if result is None:
        return False
    return _ask_value(result)


# ---------------------------------------------------------------------------
# Languages
# ---------------------------------------------------------------------------


LanguageCounts = Union[Mapping[str, int], Iterable[LanguageCount]]


def merge_language_counts(batches: Iterable[LanguageCounts]) -> List[LanguageCount]:
    """Sum counts per language tag across batches, most frequent first.

    Empty language tags are dropped.
    """
    totals: Counter = Counter()
    for batch in batches:
        items = batch.items() if isinstance(batch, Mapping) else (
            (item.lang, item.count) for item in batch
        )
        for lang, count in items:
            if lang:
                totals[lang] += int(count)

    return [
        LanguageCount(lang=lang, count=count)
        for lang, count in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


def _language_rows(result: SparqlResult) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for row in result.bindings:
        lang = row["lang"].value if "lang" in row else ""
        count = _to_int(row["count"].value) if "count" in row else None
        if lang and count is not None:
            counts[lang] = counts.get(lang, 0) + count
    return counts


def _chunks(items: Sequence[str], size: int) -> List[List[str]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def _detect_languages_for_graphs(
    client: SparqlClient,
    endpoint: Endpoint,
    graph_uris: Sequence[str],
    batch_size: int,
) -> List[LanguageCount]:
    safe_uris: List[str] = []
    for uri in graph_uris:
        try:
            queries.iri_ref(uri)
        except ValueError:
            logger.warning("Skipping graph URI that cannot be embedded in a query: %r", uri)
            continue
        safe_uris.append(uri)

    if not safe_uris:
        return []

    batches = _chunks(safe_uris, max(1, int(batch_size)))
    semaphore = asyncio.Semaphore(max(1, client.config.language_concurrency))

    async def run_batch(index: int, batch: List[str]) -> Dict[str, int]:
        async with semaphore:
            result = await _run_probe(
                client,
                endpoint,
                f"languages-batch-{index + 1}/{len(batches)}",
                queries.batched_languages_query(batch),
            )
        if result is None:
            return {}
        return _language_rows(result)

    batch_results = await asyncio.gather(
        *(run_batch(i, batch) for i, batch in enumerate(batches))
    )
    logger.debug(
        "Language detection over %d graphs in %d batches", len(safe_uris), len(batches)
    )
    return merge_language_counts(batch_results)


async def detect_languages(
    client: SparqlClient,
    endpoint: Endpoint,
    graph_scoped: bool = False,
    graph_uris: Optional[Sequence[str]] = None,
    batch_size: Optional[int] = None,
) -> List[LanguageCount]:
    """Histogram of label language tags on SKOS concepts.

    - ``graph_uris`` given: batched over exactly those graphs, ``batch_size``
      graphs per query; failed batches are skipped, the rest are merged.
    - ``graph_scoped``: one query with a ``GRAPH ?g`` wrapper so concepts and
      labels must share a graph.
    - otherwise one unscoped query.
    """
    if graph_uris:
        size = batch_size or client.config.language_batch_size or LANGUAGE_DETECTION_BATCH_SIZE
        return await _detect_languages_for_graphs(client, endpoint, graph_uris, size)

    result = await _run_probe(
        client, endpoint, "languages", queries.languages_query(graph_scoped)
    )
    if result is None:
        return []
    return merge_language_counts([_language_rows(result)])


# ---------------------------------------------------------------------------
# SKOS content probes
# ---------------------------------------------------------------------------


async def count_concepts(client: SparqlClient, endpoint: Endpoint) -> Optional[int]:
    result = await _run_probe(client, endpoint, "concept-count", queries.CONCEPT_COUNT_QUERY)
    if result is None:
        return None
    return _to_int(result.first("count"))


async def detect_relationships(
    client: SparqlClient,
    endpoint: Endpoint,
) -> Optional[RelationshipSupport]:
    result = await _run_probe(
        client, endpoint, "relationships", queries.RELATIONSHIPS_QUERY
    )
    if result is None or not result.bindings:
        return None

    row = result.bindings[0]

    def flag(name: str) -> bool:
        return _parse_exists(row[name].value if name in row else None)

    return RelationshipSupport(
        has_in_scheme=flag("hasInScheme"),
        has_top_concept_of=flag("hasTopConceptOf"),
        has_has_top_concept=flag("hasHasTopConcept"),
        has_broader=flag("hasBroader"),
        has_narrower=flag("hasNarrower"),
        has_broader_transitive=flag("hasBroaderTransitive"),
        has_narrower_transitive=flag("hasNarrowerTransitive"),
    )


async def detect_concept_schemes(
    client: SparqlClient,
    endpoint: Endpoint,
    max_schemes: Optional[int] = None,
) -> SchemeDetection:
    """Count concept schemes, then fetch up to ``max_schemes`` of their URIs."""
    limit = max_schemes if max_schemes is not None else client.config.max_schemes

    counted = await _run_probe(client, endpoint, "scheme-count", queries.SCHEME_COUNT_QUERY)
    total = _to_int(counted.first("count")) if counted is not None else None
    if not total:
        return SchemeDetection(scheme_uris=[], scheme_count=0, schemes_limited=False)

    listed = await _run_probe(
        client, endpoint, "scheme-uris", queries.scheme_uris_query(limit)
    )
    if listed is None:
        return SchemeDetection(scheme_uris=[], scheme_count=total, schemes_limited=False)

    return SchemeDetection(
        scheme_uris=[uri for uri in listed.values("scheme") if uri],
        scheme_count=total,
        schemes_limited=total > limit,
    )


async def detect_label_predicates(
    client: SparqlClient,
    endpoint: Endpoint,
) -> Dict[str, List[str]]:
    """Which label predicates are used per resource type.

    Resource types without any label predicate are left out.
    """
    found: Dict[str, List[str]] = {}
    for key, rdf_type in queries.LABELLED_RESOURCE_TYPES:
        result = await _run_probe(
            client,
            endpoint,
            f"label-predicates-{key}",
            queries.label_predicates_query(rdf_type),
        )
        if result is None or not result.bindings:
            continue

        row = result.bindings[0]
        present = []
        for name, _path in queries.LABEL_PREDICATES:
            var = f"has{name[0].upper()}{name[1:]}"
            if _parse_exists(row[var].value if var in row else None):
                present.append(name)
        if present:
            found[key] = present

    return found


# ---------------------------------------------------------------------------
# Full analysis
# ---------------------------------------------------------------------------


async def analyze_endpoint(client: SparqlClient, endpoint: Endpoint) -> EndpointAnalysis:
    """Run every probe once and assemble a fresh capability snapshot."""
    analysis = EndpointAnalysis()

    graphs = await detect_graphs(client, endpoint)
    analysis.supports_named_graphs = graphs.supports_named_graphs
    analysis.graph_count = graphs.graph_count
    analysis.graph_count_exact = graphs.graph_count_exact

    if graphs.supports_named_graphs is True:
        skos = await detect_skos_graphs(client, endpoint)
        analysis.skos_graph_count = skos.skos_graph_count
        analysis.skos_graph_uris = skos.skos_graph_uris
        analysis.has_duplicates = await detect_duplicates(client, endpoint)

    analysis.languages = await detect_languages(
        client,
        endpoint,
        graph_scoped=analysis.has_duplicates,
        graph_uris=analysis.skos_graph_uris,
    )

    analysis.total_concepts = await count_concepts(client, endpoint)
    analysis.relationships = await detect_relationships(client, endpoint)

    schemes = await detect_concept_schemes(client, endpoint)
    analysis.scheme_uris = schemes.scheme_uris
    analysis.scheme_count = schemes.scheme_count
    analysis.schemes_limited = schemes.schemes_limited

    analysis.label_predicates = await detect_label_predicates(client, endpoint)
    analysis.analyzed_at = datetime.now(timezone.utc).isoformat()

    logger.info(
        "Analysis of %s complete: named_graphs=%s skos_graphs=%s duplicates=%s "
        "languages=%d concepts=%s schemes=%d",
        endpoint.url,
        analysis.supports_named_graphs,
        analysis.skos_graph_count,
        analysis.has_duplicates,
        len(analysis.languages),
        analysis.total_concepts,
        analysis.scheme_count,
    )
    return analysis
