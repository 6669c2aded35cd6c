# SPARQL Endpoint Access Layer
# File: security.py
# Version: v4

"""Escaping and validation of untrusted strings.

Everything here is a pure string function: user text on its way into a
SPARQL query, URIs on their way into links, and endpoint URLs on their way
into configuration.
"""

from __future__ import annotations

import html
import re
from typing import Dict, FrozenSet, Iterable, List, Optional
from urllib.parse import urlsplit

import nh3

from .config import DEFAULT_TRUSTED_DOMAINS
from .models import EndpointSecurityCheck, EndpointTrust, TrustLevel

# ---------------------------------------------------------------------------
# Query text
# ---------------------------------------------------------------------------

_SPARQL_STRING_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "'": "\\'",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

_REGEX_METACHARACTERS = re.compile(r"([.*+?^${}()|\[\]\\])")


def escape_sparql_string(value: str) -> str:
    """Escape text for use inside a quoted SPARQL string literal."""
    return "".join(_SPARQL_STRING_ESCAPES.get(ch, ch) for ch in value)


def escape_sparql_regex(value: str) -> str:
    """Escape regex metacharacters so REGEX() matches ``value`` literally.

    The result still has to go through :func:`escape_sparql_string` before it
    is placed inside the quoted pattern argument.
    """
    return _REGEX_METACHARACTERS.sub(r"\\\1", value)


def sanitize_search_input(value: Optional[str], max_length: int = 500) -> str:
    """Trim, cap the length and drop angle brackets from search text."""
    if not value or not isinstance(value, str):
        return ""
    return re.sub(r"[<>]", "", value.strip()[:max_length])


# ---------------------------------------------------------------------------
# URIs
# ---------------------------------------------------------------------------

_DANGEROUS_SCHEMES = re.compile(r"^(javascript|data|vbscript|file|ftp|mailto):", re.IGNORECASE)
_ALLOWED_URI_SCHEMES = {"http", "https", "urn"}


def validate_uri(value: Optional[str]) -> Optional[str]:
    """Return the trimmed URI if it is safe to link to, else None.

    Only http, https and urn URIs pass.
    """
    if not value or not isinstance(value, str):
        return None

    trimmed = value.strip()
    if not trimmed or _DANGEROUS_SCHEMES.match(trimmed):
        return None

    try:
        parts = urlsplit(trimmed)
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in _ALLOWED_URI_SCHEMES:
        return None
    if scheme in {"http", "https"} and not parts.netloc:
        return None
    if scheme == "urn" and not parts.path:
        return None

    return trimmed


def is_valid_uri(value: Optional[str]) -> bool:
    return validate_uri(value) is not None


# ---------------------------------------------------------------------------
# HTML
# ---------------------------------------------------------------------------

ALLOWED_TAGS: FrozenSet[str] = frozenset(
    {"b", "i", "em", "strong", "a", "br", "p", "ul", "ol", "li"}
)
ALLOWED_ATTRIBUTES: Dict[str, FrozenSet[str]] = {"a": frozenset({"href"})}
ALLOWED_HREF_SCHEMES: FrozenSet[str] = frozenset({"http", "https", "mailto", "urn"})

# Elements removed together with their content.
DROP_CONTENT_TAGS: FrozenSet[str] = frozenset(
    {
        "script", "style", "iframe", "object", "embed", "template", "noscript",
        "svg", "math", "textarea", "title", "select", "noembed", "xmp",
    }
)


def sanitize_html(value: Optional[str]) -> str:
    """Keep only a small set of formatting tags; drop everything else.

    Allowed: b, i, em, strong, a[href], br, p, ul, ol, li. Every other
    attribute (event handlers, style, ...) is removed, as are comments and
    the content of script-like elements. Text of other unknown tags is kept.
    Links only keep http, https, mailto, urn or relative targets.
    """
    if not value:
        return ""
    return nh3.clean(
        value,
        tags=set(ALLOWED_TAGS),
        clean_content_tags=set(DROP_CONTENT_TAGS),
        attributes={tag: set(names) for tag, names in ALLOWED_ATTRIBUTES.items()},
        url_schemes=set(ALLOWED_HREF_SCHEMES),
        strip_comments=True,
        link_rel=None,
    )


def escape_html(text: str) -> str:
    """Escape text for display as plain text inside HTML."""
    return html.escape(text, quote=True)


# ---------------------------------------------------------------------------
# Endpoint URLs
# ---------------------------------------------------------------------------

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


def _parse_endpoint_url(url: Optional[str]):
    if not url or not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if parts.scheme.lower() not in {"http", "https"} or not parts.hostname:
        return None
    return parts


def is_valid_endpoint_url(url: Optional[str]) -> bool:
    return _parse_endpoint_url(url) is not None


def check_endpoint_security(url: Optional[str]) -> EndpointSecurityCheck:
    """Classify an endpoint URL as HTTPS, local HTTP, remote HTTP or invalid."""
    parts = _parse_endpoint_url(url)
    if parts is None:
        return EndpointSecurityCheck(
            is_https=False, is_localhost=False, warning="Invalid endpoint URL"
        )

    is_localhost = (parts.hostname or "").lower() in _LOCAL_HOSTS

    if parts.scheme.lower() == "https":
        return EndpointSecurityCheck(is_https=True, is_localhost=is_localhost)

    if is_localhost:
        return EndpointSecurityCheck(
            is_https=False,
            is_localhost=True,
            warning="Local endpoint - HTTPS not required",
        )

    return EndpointSecurityCheck(
        is_https=False,
        is_localhost=False,
        warning="This endpoint uses HTTP. Your queries and credentials could be intercepted.",
    )


def assess_endpoint_trust(
    url: Optional[str],
    trusted_domains: Optional[Iterable[str]] = None,
) -> EndpointTrust:
    """Three-level trust assessment of an endpoint URL.

    A host on the allowlist (or a subdomain of one) is trusted even over
    plain HTTP; the HTTP reason is still reported.
    """
    domains = [d.lower() for d in (trusted_domains or DEFAULT_TRUSTED_DOMAINS)]

    parts = _parse_endpoint_url(url)
    if parts is None:
        return EndpointTrust(level=TrustLevel.WARNING, reasons=["Invalid URL"])

    level = TrustLevel.UNKNOWN
    reasons: List[str] = []
    hostname = (parts.hostname or "").lower()

    if parts.scheme.lower() != "https" and hostname not in _LOCAL_HOSTS:
        reasons.append("Uses HTTP (insecure)")
        level = TrustLevel.WARNING

    if any(hostname == d or hostname.endswith("." + d) for d in domains):
        level = TrustLevel.TRUSTED
        reasons.append("Known trusted vocabulary provider")

    return EndpointTrust(level=level, reasons=reasons)
