# SPARQL Endpoint Access Layer
# File: parsers.py
# Version: v2

"""Parsers for SPARQL query results.

Real-world endpoints do not always honour the Accept header, so the executor
tries SPARQL-JSON first and falls back to the SPARQL-XML results format.
SPARQL-JSON always wins when the body is valid JSON.
"""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Optional, Sequence

from .models import RdfTerm, SparqlResult

XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

ResultParser = Callable[[str], SparqlResult]


class ResultParseError(ValueError):
    """Raised when a body is not in the format a parser understands."""


def _local(tag: str) -> str:
    """Strip an ElementTree ``{namespace}`` prefix from a tag."""
    return tag.rsplit("}", 1)[-1]


def _make_term(
    term_type: str,
    value: Any,
    lang: Optional[str] = None,
    datatype: Optional[str] = None,
) -> RdfTerm:
    if term_type == "typed-literal":
        # SPARQL-JSON drafts used a separate type for typed literals.
        term_type = "literal"
    if lang:
        # rdf:langString datatypes sent next to a language tag are implied.
        datatype = None
    try:
        return RdfTerm(
            type=term_type,
            value="" if value is None else str(value),
            lang=lang or None,
            datatype=datatype or None,
        )
    except ValueError as exc:
        raise ResultParseError(str(exc)) from exc


def _parse_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in {"true", "false"}:
        return raw.strip().lower() == "true"
    raise ResultParseError(f"Invalid ASK boolean: {raw!r}")


def parse_json_results(text: str) -> SparqlResult:
    """Parse a SPARQL 1.1 Query Results JSON document."""
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ResultParseError(f"Body is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ResultParseError(
            f"Expected JSON object, got {type(data).__name__}"
        )

    head = data.get("head") if isinstance(data.get("head"), dict) else {}
    raw_vars = head.get("vars") if isinstance(head.get("vars"), list) else []
    variables = [str(v) for v in raw_vars]

    if "boolean" in data:
        return SparqlResult(vars=variables, boolean=_parse_bool(data["boolean"]))

    results = data.get("results")
    if not isinstance(results, dict) or not isinstance(results.get("bindings"), list):
        raise ResultParseError("JSON body has neither 'boolean' nor 'results.bindings'")

    bindings: List[Dict[str, RdfTerm]] = []
    for row in results["bindings"]:
        if not isinstance(row, dict):
            raise ResultParseError("Binding row is not an object")

        binding: Dict[str, RdfTerm] = {}
        for name, term in row.items():
            if not isinstance(term, dict) or "type" not in term:
                raise ResultParseError(f"Binding '{name}' is not an RDF term")
            binding[str(name)] = _make_term(
                str(term.get("type")),
                term.get("value"),
                lang=term.get("xml:lang") or term.get("lang"),
                datatype=term.get("datatype"),
            )
        bindings.append(binding)

    return SparqlResult(vars=variables, bindings=bindings)


def _parse_xml_term(element: ET.Element) -> RdfTerm:
    kind = _local(element.tag)
    value = element.text or ""

    if kind == "uri":
        return _make_term("uri", value.strip())
    if kind == "bnode":
        return _make_term("bnode", value.strip())
    if kind == "literal":
        return _make_term(
            "literal",
            value,
            lang=element.get(XML_LANG),
            datatype=element.get("datatype"),
        )
    raise ResultParseError(f"Unknown RDF term element <{kind}>")


def parse_xml_results(text: str) -> SparqlResult:
    """Parse a SPARQL Query Results XML document."""
    try:
        root = ET.fromstring(text.strip())
    except ET.ParseError as exc:
        raise ResultParseError(f"Body is not valid XML: {exc}") from exc

    if _local(root.tag) != "sparql":
        raise ResultParseError(f"Unexpected XML root element <{_local(root.tag)}>")

    variables: List[str] = []
    boolean: Optional[bool] = None
    results_elem: Optional[ET.Element] = None

    for child in root:
        name = _local(child.tag)
        if name == "head":
            for var in child:
                if _local(var.tag) == "variable" and var.get("name"):
                    variables.append(var.get("name", ""))
        elif name == "boolean":
            boolean = _parse_bool(child.text or "")
        elif name == "results":
            results_elem = child

    if boolean is not None:
        return SparqlResult(vars=variables, boolean=boolean)

    if results_elem is None:
        raise ResultParseError("XML body has neither <boolean> nor <results>")

    bindings: List[Dict[str, RdfTerm]] = []
    for result in results_elem:
        if _local(result.tag) != "result":
            continue

        binding: Dict[str, RdfTerm] = {}
        for item in result:
            if _local(item.tag) != "binding":
                continue
            var_name = item.get("name")
            terms = list(item)
            if not var_name or not terms:
                continue
            binding[var_name] = _parse_xml_term(terms[0])
        bindings.append(binding)

    return SparqlResult(vars=variables, bindings=bindings)


DEFAULT_PARSERS: Sequence[ResultParser] = (parse_json_results, parse_xml_results)


def parse_results(
    text: str,
    parsers: Sequence[ResultParser] = DEFAULT_PARSERS,
) -> SparqlResult:
    """Try each parser in order and return the first successful result.

    A body that is valid JSON is never handed to the later parsers, even when
    its shape is wrong: the endpoint clearly meant to send JSON.
    """
    errors: List[str] = []
    for parser in parsers:
        try:
            return parser(text)
        except ResultParseError as exc:
            errors.append(str(exc))
            if parser is parse_json_results and _is_json(text):
                break

    raise ResultParseError("; ".join(errors) or "No result parser configured")


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True
