# SPARQL Endpoint Access Layer
# File: tests/test_security.py
# Version: v1

import pytest

from sparql_access.models import TrustLevel
from sparql_access.security import (
    assess_endpoint_trust,
    check_endpoint_security,
    escape_html,
    escape_sparql_regex,
    escape_sparql_string,
    is_valid_endpoint_url,
    is_valid_uri,
    sanitize_html,
    sanitize_search_input,
    validate_uri,
)


def test_escape_sparql_string():
    assert escape_sparql_string('say "hi"') == 'say \\"hi\\"'
    assert escape_sparql_string("it's") == "it\\'s"
    assert escape_sparql_string("a\\b") == "a\\\\b"
    assert escape_sparql_string("line1\nline2\r\tend") == "line1\\nline2\\r\\tend"


def test_escape_sparql_regex():
    assert escape_sparql_regex("a.b*c") == "a\\.b\\*c"
    assert escape_sparql_regex("(x|y)[0]{1}^$?+") == "\\(x\\|y\\)\\[0\\]\\{1\\}\\^\\$\\?\\+"
    assert escape_sparql_regex("back\\slash") == "back\\\\slash"


def test_sanitize_search_input():
    assert sanitize_search_input("  water  ") == "water"
    assert sanitize_search_input("<script>x</script>") == "scriptx/script"
    assert sanitize_search_input("a" * 600) == "a" * 500
    assert sanitize_search_input("abcdef", max_length=3) == "abc"
    assert sanitize_search_input(None) == ""


@pytest.mark.parametrize(
    "value",
    [
        "javascript:alert(1)",
        "JavaScript:alert(1)",
        "  javascript:alert(1)",
        "data:text/html;base64,xyz",
        "vbscript:msgbox",
        "file:///etc/passwd",
        "ftp://example.org/file",
        "mailto:someone@example.org",
        "not a uri",
        "http://",
        "",
        None,
    ],
)
def test_validate_uri_rejects(value):
    assert validate_uri(value) is None
    assert is_valid_uri(value) is False


def test_validate_uri_accepts_and_trims():
    assert validate_uri(" http://example.org/a ") == "http://example.org/a"
    assert validate_uri("https://example.org/a#b") == "https://example.org/a#b"
    assert validate_uri("urn:isbn:0451450523") == "urn:isbn:0451450523"


def test_sanitize_html_keeps_allowed_tags():
    assert sanitize_html("<b>x</b>") == "<b>x</b>"
    assert sanitize_html("<p>a<br>b</p>") == "<p>a<br>b</p>"
    assert sanitize_html("<ul><li>one</li><li>two</li></ul>") == "<ul><li>one</li><li>two</li></ul>"


def test_sanitize_html_strips_attributes_and_dangerous_content():
    assert sanitize_html('<a href="#" onclick="x">y</a>') == '<a href="#">y</a>'
    assert sanitize_html('<a href="javascript:alert(1)">y</a>') == "<a>y</a>"
    assert sanitize_html('<a href="java\tscript:alert(1)">y</a>') == "<a>y</a>"
    assert sanitize_html("<script>alert(1)</script>ok") == "ok"
    assert sanitize_html('<img src=x onerror="alert(1)">') == ""
    assert sanitize_html('<div style="color:red">text</div>') == "text"
    assert sanitize_html("<!-- hidden -->shown") == "shown"


def test_sanitize_html_balances_tags_and_escapes_text():
    assert sanitize_html("<b>open") == "<b>open</b>"
    assert sanitize_html("<b><i>x</b>") == "<b><i>x</i></b>"
    assert sanitize_html("a &lt; b") == "a &lt; b"
    assert sanitize_html("stray </b> end") == "stray  end"


def test_sanitize_html_link_targets():
    assert sanitize_html('<a href="https://example.org/x">y</a>') == '<a href="https://example.org/x">y</a>'
    assert sanitize_html('<a href="mailto:a@example.org">y</a>') == '<a href="mailto:a@example.org">y</a>'
    assert sanitize_html('<a href="data:text/html,x">y</a>') == "<a>y</a>"
    assert sanitize_html('<a href="&#106;avascript:alert(1)">y</a>') == "<a>y</a>"


def test_sanitize_html_drops_script_like_content():
    for value in ("<svg><script>alert(1)</script></svg>ok", "<iframe>alert(1)</iframe>ok"):
        assert sanitize_html(value) == "ok"
    assert "<script" not in sanitize_html("<scr<script>ipt>alert(1)</script>")


def test_escape_html():
    assert escape_html('<a href="x">&</a>') == "&lt;a href=&quot;x&quot;&gt;&amp;&lt;/a&gt;"


def test_check_endpoint_security():
    https = check_endpoint_security("https://example.org/sparql")
    assert https.is_https is True
    assert https.warning is None

    local = check_endpoint_security("http://localhost:7200/repositories/x")
    assert local.is_localhost is True
    assert local.warning == "Local endpoint - HTTPS not required"

    assert check_endpoint_security("http://127.0.0.1:3030/ds").is_localhost is True
    assert check_endpoint_security("http://[::1]:3030/ds").is_localhost is True

    remote = check_endpoint_security("http://example.org/sparql")
    assert remote.is_https is False
    assert "could be intercepted" in remote.warning

    invalid = check_endpoint_security("not a url")
    assert invalid.warning == "Invalid endpoint URL"


def test_is_valid_endpoint_url():
    assert is_valid_endpoint_url("https://example.org/sparql")
    assert not is_valid_endpoint_url("ftp://example.org/sparql")
    assert not is_valid_endpoint_url("")


def test_endpoint_trust_levels():
    assert assess_endpoint_trust("https://dbpedia.org/sparql").level is TrustLevel.TRUSTED
    assert assess_endpoint_trust("https://query.wikidata.org/sparql").level is TrustLevel.TRUSTED
    assert assess_endpoint_trust("https://example.org/sparql").level is TrustLevel.UNKNOWN
    assert assess_endpoint_trust("http://localhost:3030/ds").level is TrustLevel.UNKNOWN
    assert assess_endpoint_trust("not a url").level is TrustLevel.WARNING

    insecure = assess_endpoint_trust("http://example.org/sparql")
    assert insecure.level is TrustLevel.WARNING
    assert "Uses HTTP (insecure)" in insecure.reasons


def test_allowlist_overrides_http_warning():
    trust = assess_endpoint_trust("http://data.bnf.fr/sparql")
    assert trust.level is TrustLevel.TRUSTED
    assert "Uses HTTP (insecure)" in trust.reasons


def test_custom_allowlist():
    trust = assess_endpoint_trust("https://vocab.example.org/sparql", ["example.org"])
    assert trust.level is TrustLevel.TRUSTED
    assert assess_endpoint_trust("https://dbpedia.org/sparql", ["example.org"]).level is TrustLevel.UNKNOWN
