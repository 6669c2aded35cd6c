# SPARQL Endpoint Access Layer
# File: tests/conftest.py
# Version: v1

import pytest

from sparql_access.models import Endpoint
from sparql_fakes import SPARQL_ENV_VARS


@pytest.fixture(autouse=True)
def _clean_sparql_env(monkeypatch):
    """Keep a developer's own SPARQL_* settings out of the tests."""
    for name in SPARQL_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def endpoint() -> Endpoint:
    return Endpoint(id="ep-1", url="https://example.org/sparql", name="Example")
