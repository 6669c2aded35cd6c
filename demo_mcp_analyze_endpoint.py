# demo_mcp_analyze_endpoint.py
# Version: v1
#
# Demo: run the endpoint analysis task directly and print a summary.
#
# Usage:
#
#   export SPARQL_ENDPOINT_URL=https://publications.europa.eu/webapi/rdf/sparql
#   python demo_mcp_analyze_endpoint.py

import asyncio
from typing import Any, Dict

from sparql_access.tools import tasks


async def main() -> None:
    print("Calling MCP task: sparql_diagnostics()")
    result: Dict[str, Any] = await tasks.diagnostics()
    print(f"Diagnostics ok: {result.get('ok')}")
    for check in result.get("checks", []):
        print(f"- {check['name']}: ok={check['ok']} error={check.get('error')}")

    if not result.get("ok"):
        return

    print("Calling MCP task: sparql_analyze_endpoint()")
    out: Dict[str, Any] = await tasks.analyze_endpoint()
    analysis = out.get("analysis", {})

    print(f"Named graphs: {analysis.get('supports_named_graphs')} (count={analysis.get('graph_count')})")
    print(f"SKOS graphs: {analysis.get('skos_graph_count')}")
    print(f"Duplicates across graphs: {analysis.get('has_duplicates')}")
    print(f"Concepts: {analysis.get('total_concepts')}  schemes: {analysis.get('scheme_count')}")

    languages = analysis.get("languages", [])
    print(f"Languages returned: {len(languages)}")
    for lc in languages[:10]:
        print(f"- {lc['lang']}: {lc['count']}")


if __name__ == "__main__":
    asyncio.run(main())
