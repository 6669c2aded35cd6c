# SPARQL Endpoint Access Layer
# File: __init__.py
# Version: v2

"""Access layer for SPARQL 1.1 endpoints.

Query execution with classified errors and retries, result parsing,
capability detection, input sanitising and prefix resolution.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from .client import SparqlClient
from .errors import ClassifiedError, ErrorCode, classify
from .models import Endpoint, QueryOptions, SparqlResult

__all__ = [
    "ClassifiedError",
    "Endpoint",
    "ErrorCode",
    "QueryOptions",
    "SparqlClient",
    "SparqlResult",
    "classify",
    "__version__",
]


def _resolve_version() -> str:
    """Resolve installed distribution version.

    Uses Python package metadata so __version__ stays aligned with pyproject.toml.
    Falls back to a reasonable default when running from source without an
    installed distribution.
    """
    try:
        return version("sparql-endpoint-access")
    except PackageNotFoundError:
        return "0.1.0"


__version__ = _resolve_version()
