# SPARQL Endpoint Access Layer
# File: tests/test_queries.py
# Version: v1

import pytest

from sparql_access import queries
from sparql_access.models import QueryOptions


def test_with_prefixes_only_once():
    prefixed = queries.with_prefixes("SELECT * WHERE { ?s skos:prefLabel ?l }")
    assert prefixed.startswith("PREFIX skos:")
    assert queries.with_prefixes(prefixed) == prefixed
    assert queries.with_prefixes("prefix ex: <http://ex.org/> ASK {}").startswith("prefix ex:")


def test_iri_ref_refuses_breakouts():
    assert queries.iri_ref("http://ex.org/a") == "<http://ex.org/a>"
    for bad in ["", "http://ex.org/a> }", "http://ex.org/a b", 'http://ex.org/"x"']:
        with pytest.raises(ValueError):
            queries.iri_ref(bad)


def test_batched_languages_query_lists_graphs():
    text = queries.batched_languages_query(["http://ex.org/g1", "http://ex.org/g2"])
    assert "VALUES ?g { <http://ex.org/g1> <http://ex.org/g2> }" in text


def test_skos_graphs_query_asks_for_one_extra_row():
    assert "LIMIT 501" in queries.skos_graphs_query(500)


def test_label_predicates_query_projects_every_predicate():
    text = queries.label_predicates_query("skos:Concept")
    for var in ("hasPrefLabel", "hasXlPrefLabel", "hasDctTitle", "hasDcTitle", "hasRdfsLabel"):
        assert f"?{var})" in text


def test_query_options_validation():
    assert QueryOptions() == QueryOptions(retries=3, retry_delay=1.0, timeout=60.0)
    with pytest.raises(ValueError):
        QueryOptions(retries=-1)
    with pytest.raises(ValueError):
        QueryOptions(timeout=0)
