# SPARQL Endpoint Access Layer
# File: auth.py
# Version: v3

"""Authentication helpers for SPARQL endpoints.

Two concerns live here:

- turning an endpoint's auth configuration into request headers, and
- a session-scoped credential store keyed by endpoint id.

Stored credentials are base64 encoded. That is obfuscation so secrets do not
show up verbatim in dumps of the store; it is NOT encryption.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Union

from .cache import KeyValueStore
from .models import AuthConfig, AuthKind, Credentials

logger = logging.getLogger(__name__)

DEFAULT_API_KEY_HEADER = "X-API-Key"


def build_auth_headers(
    auth: Optional[AuthConfig],
    credentials: Optional[Credentials] = None,
) -> Dict[str, str]:
    """Return the auth headers for a request.

    With ``AuthKind.NONE`` (or incomplete credentials) the result is empty, so
    no ``Authorization`` header is sent at all.
    """
    if auth is None:
        return {}

    creds = credentials or auth.credentials
    kind = auth.kind

    if kind is AuthKind.NONE:
        return {}

    if kind is AuthKind.BASIC:
        if creds and creds.username and creds.password:
            # Build HTTP Basic Authorization header: base64(username:password)
            raw = f"{creds.username}:{creds.password}"
            encoded = base64.b64encode(raw.encode("utf-8")).decode("ascii")
            return {"Authorization": f"Basic {encoded}"}
    elif kind is AuthKind.BEARER:
        if creds and creds.token:
            return {"Authorization": f"Bearer {creds.token}"}
    elif kind is AuthKind.API_KEY:
        if creds and creds.api_key:
            header_name = auth.header_name or DEFAULT_API_KEY_HEADER
            return {header_name: creds.api_key}
    else:  # pragma: no cover - new AuthKind members must be handled above
        raise ValueError(f"Unhandled auth kind: {kind!r}")

    logger.warning("Auth type '%s' configured but credentials are incomplete", kind.value)
    return {}


class CredentialStore:
    """Per-endpoint credentials kept for the lifetime of the process only."""

    def __init__(self, store: Optional[KeyValueStore] = None) -> None:
        store = store if store is not None else KeyValueStore()
        if store.durable:
            raise ValueError("Credentials must not be kept in a durable store")
        self._store = store

    def store(self, endpoint_id: str, credentials: Union[Credentials, Dict[str, str]]) -> None:
        if isinstance(credentials, dict):
            credentials = Credentials.from_dict(credentials)
        payload = json.dumps(credentials.to_dict(), sort_keys=True)
        self._store.set(
            endpoint_id,
            {
                "encoded": base64.b64encode(payload.encode("utf-8")).decode("ascii"),
                "stored_at": datetime.now(timezone.utc).isoformat(),
            },
        )

    def get(self, endpoint_id: str) -> Optional[Credentials]:
        entry = self._store.get(endpoint_id)
        if not isinstance(entry, dict) or "encoded" not in entry:
            return None

        try:
            decoded = base64.b64decode(entry["encoded"], validate=True)
            data = json.loads(decoded.decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError):
            logger.warning("Stored credentials for endpoint '%s' are unreadable", endpoint_id)
            return None

        if not isinstance(data, dict):
            return None
        return Credentials.from_dict(data)

    def stored_at(self, endpoint_id: str) -> Optional[str]:
        entry = self._store.get(endpoint_id)
        if isinstance(entry, dict):
            return entry.get("stored_at")
        return None

    def clear(self, endpoint_id: str) -> None:
        """Forget one endpoint's credentials; other endpoints are untouched."""
        self._store.delete(endpoint_id)

    def clear_all(self) -> None:
        self._store.clear()


_SESSION_STORE = CredentialStore()


def session_credentials() -> CredentialStore:
    """The process-wide credential store used by the module helpers."""
    return _SESSION_STORE


def store_credentials(
    endpoint_id: str,
    credentials: Union[Credentials, Dict[str, str]],
) -> None:
    _SESSION_STORE.store(endpoint_id, credentials)


def get_credentials(endpoint_id: str) -> Optional[Credentials]:
    return _SESSION_STORE.get(endpoint_id)


def clear_credentials(endpoint_id: str) -> None:
    _SESSION_STORE.clear(endpoint_id)
