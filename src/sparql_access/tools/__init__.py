# SPARQL Endpoint Access Layer
# File: tools/__init__.py
# Version: v2

"""MCP tool surface for the SPARQL endpoint access layer."""

from __future__ import annotations

from .tasks import register_tools

__all__ = ["register_tools"]
