# SPARQL Endpoint Access Layer
# File: queries.py
# Version: v2

"""Standard prefixes and the fixed battery of capability probe queries.

Callers assemble their own application queries; this module only holds the
diagnostic ones run by :mod:`sparql_access.capabilities`.
"""

from __future__ import annotations

import re
from typing import Iterable

# Characters that may not appear inside an IRIREF (SPARQL 1.1 grammar).
_IRI_UNSAFE = re.compile(r"[<>\"{}|^`\\\x00-\x20]")

SPARQL_PREFIXES = """
PREFIX skos: <http://www.w3.org/2004/02/skos/core#>
PREFIX skosxl: <http://www.w3.org/2008/05/skos-xl#>
PREFIX dct: <http://purl.org/dc/terms/>
PREFIX dc: <http://purl.org/dc/elements/1.1/>
PREFIX rdfs: <http://www.w3.org/2000/01/rdf-schema#>
PREFIX rdf: <http://www.w3.org/1999/02/22-rdf-syntax-ns#>
PREFIX owl: <http://www.w3.org/2002/07/owl#>
PREFIX cc: <http://creativecommons.org/ns#>
""".strip()


def iri_ref(uri: str) -> str:
    """Wrap a URI in angle brackets, refusing anything that could escape them."""
    if not uri or _IRI_UNSAFE.search(uri):
        raise ValueError(f"Not embeddable as an IRI: {uri!r}")
    return f"<{uri}>"


def with_prefixes(query: str) -> str:
    """Prepend the standard prefixes unless the query already declares some."""
    if query.strip().upper().startswith("PREFIX"):
        return query
    return SPARQL_PREFIXES + "\n\n" + query


CONNECTION_TEST_QUERY = "SELECT * WHERE { ?s ?p ?o } LIMIT 1"

GRAPH_COUNT_QUERY = "SELECT (COUNT(DISTINCT ?g) AS ?count) WHERE { GRAPH ?g { ?s ?p ?o } }"

GRAPH_EXISTS_QUERY = "ASK { GRAPH ?g { ?s ?p ?o } }"

DUPLICATES_QUERY = """
ASK {
  GRAPH ?g1 { ?s ?p ?o }
  GRAPH ?g2 { ?s ?p ?o }
  FILTER(?g1 != ?g2)
}
""".strip()

CONCEPT_COUNT_QUERY = with_prefixes(
    """
SELECT (COUNT(DISTINCT ?concept) AS ?count)
WHERE {
  ?concept a skos:Concept .
}
""".strip()
)

SCHEME_COUNT_QUERY = with_prefixes(
    """
SELECT (COUNT(DISTINCT ?scheme) AS ?count)
WHERE {
  ?scheme a skos:ConceptScheme .
}
""".strip()
)

RELATIONSHIPS_QUERY = with_prefixes(
    """
SELECT
  (EXISTS { ?c a skos:Concept . ?c skos:inScheme ?x } AS ?hasInScheme)
  (EXISTS { ?c a skos:Concept . ?c skos:topConceptOf ?x } AS ?hasTopConceptOf)
  (EXISTS { ?s skos:hasTopConcept ?x } AS ?hasHasTopConcept)
  (EXISTS { ?c a skos:Concept . ?c skos:broader ?x } AS ?hasBroader)
  (EXISTS { ?c a skos:Concept . ?c skos:narrower ?x } AS ?hasNarrower)
  (EXISTS { ?c a skos:Concept . ?c skos:broaderTransitive ?x } AS ?hasBroaderTransitive)
  (EXISTS { ?c a skos:Concept . ?c skos:narrowerTransitive ?x } AS ?hasNarrowerTransitive)
WHERE {}
""".strip()
)

# (result variable, label property path)
LABEL_PREDICATES = (
    ("prefLabel", "skos:prefLabel"),
    ("xlPrefLabel", "skosxl:prefLabel/skosxl:literalForm"),
    ("dctTitle", "dct:title"),
    ("dcTitle", "dc:title"),
    ("rdfsLabel", "rdfs:label"),
)

# (analysis key, rdf:type)
LABELLED_RESOURCE_TYPES = (
    ("concept", "skos:Concept"),
    ("scheme", "skos:ConceptScheme"),
    ("collection", "skos:Collection"),
)

_LANGUAGE_CORE_PATTERN = """
    ?concept a skos:Concept .
    {
      ?concept skos:prefLabel|skos:altLabel|skos:hiddenLabel|skos:definition|skos:scopeNote ?label .
    } UNION {
      ?concept skosxl:prefLabel/skosxl:literalForm ?label .
    } UNION {
      ?concept skosxl:altLabel/skosxl:literalForm ?label .
    }"""


def skos_graphs_query(max_graphs: int) -> str:
    """Graphs holding a concept scheme or a labelled concept.

    Asks for one row more than ``max_graphs`` so callers can tell whether the
    threshold was exceeded.
    """
    return with_prefixes(
        f"""
SELECT DISTINCT ?g
WHERE {{
  GRAPH ?g {{
    {{ ?s a skos:ConceptScheme }}
    UNION
    {{ ?s a skos:Concept . ?s skos:prefLabel ?label }}
  }}
}}
LIMIT {int(max_graphs) + 1}
""".strip()
    )


def scheme_uris_query(max_schemes: int) -> str:
    return with_prefixes(
        f"""
SELECT DISTINCT ?scheme
WHERE {{
  ?scheme a skos:ConceptScheme .
}}
LIMIT {int(max_schemes)}
""".strip()
    )


def label_predicates_query(resource_type: str) -> str:
    projections = "\n".join(
        f"  (EXISTS {{ ?r a {resource_type} . ?r {path} ?x }} AS ?has{name[0].upper()}{name[1:]})"
        for name, path in LABEL_PREDICATES
    )
    return with_prefixes(f"SELECT\n{projections}\nWHERE {{}}")


def languages_query(graph_scoped: bool = False) -> str:
    """Label language histogram over all concepts.

    With ``graph_scoped`` the pattern is wrapped in ``GRAPH ?g`` so a concept
    and its labels must come from the same graph.
    """
    if graph_scoped:
        where = f"GRAPH ?g {{{_LANGUAGE_CORE_PATTERN}\n  }}"
    else:
        where = _LANGUAGE_CORE_PATTERN

    return with_prefixes(
        f"""
SELECT ?lang (COUNT(?label) AS ?count)
WHERE {{
  {where}
  BIND(LANG(?label) AS ?lang)
  FILTER(?lang != "")
}}
GROUP BY ?lang
ORDER BY DESC(?count)
""".strip()
    )


def batched_languages_query(graph_uris: Iterable[str]) -> str:
    """Label language histogram restricted to exactly ``graph_uris``."""
    values = " ".join(iri_ref(uri) for uri in graph_uris)
    return with_prefixes(
        f"""
SELECT ?lang (COUNT(*) AS ?count)
WHERE {{
  VALUES ?g {{ {values} }}
  GRAPH ?g {{
    {{ ?concept skos:prefLabel ?label }}
    UNION
    {{ ?concept skosxl:prefLabel/skosxl:literalForm ?label }}
    FILTER(LANG(?label) != "")
    BIND(LANG(?label) AS ?lang)
  }}
}}
GROUP BY ?lang
""".strip()
    )


def describe_resource_query(resource_uri: str) -> str:
    subject = iri_ref(resource_uri)
    return with_prefixes(
        f"""
CONSTRUCT {{ {subject} ?p ?o }}
WHERE {{ {subject} ?p ?o }}
""".strip()
    )
