# SPARQL Endpoint Access Layer
# File: tests/test_auth_and_cache.py
# Version: v1

import base64
import json

import pytest

from sparql_access import auth
from sparql_access.auth import CredentialStore, build_auth_headers
from sparql_access.cache import KeyValueStore
from sparql_access.models import AuthConfig, AuthKind, Credentials


def test_no_auth_sends_no_headers():
    assert build_auth_headers(AuthConfig()) == {}
    assert build_auth_headers(None) == {}


def test_incomplete_credentials_send_no_headers():
    assert build_auth_headers(AuthConfig(AuthKind.BASIC, credentials=Credentials(username="u"))) == {}
    assert build_auth_headers(AuthConfig(AuthKind.BEARER)) == {}


def test_basic_header():
    headers = build_auth_headers(
        AuthConfig(AuthKind.BASIC), Credentials(username="alice", password="s3cret")
    )
    token = headers["Authorization"].split(" ", 1)[1]
    assert base64.b64decode(token).decode("utf-8") == "alice:s3cret"


def test_auth_kind_parsing():
    assert AuthKind.parse("apiKey") is AuthKind.API_KEY
    assert AuthKind.parse("API_KEY") is AuthKind.API_KEY
    assert AuthKind.parse("Bearer") is AuthKind.BEARER
    assert AuthKind.parse(None) is AuthKind.NONE
    with pytest.raises(ValueError):
        AuthKind.parse("kerberos")


def test_credentials_repr_hides_secrets():
    text = repr(Credentials(username="alice", password="s3cret"))
    assert "s3cret" not in text
    assert "password" in text


def test_credential_store_round_trip_is_obfuscated():
    backing = KeyValueStore()
    store = CredentialStore(backing)
    store.store("ep-a", {"username": "alice", "password": "s3cret"})

    raw = backing.get("ep-a")
    assert "s3cret" not in json.dumps(raw)
    assert store.stored_at("ep-a") is not None
    assert store.get("ep-a") == Credentials(username="alice", password="s3cret")


def test_clearing_one_endpoint_leaves_others():
    store = CredentialStore()
    store.store("ep-a", Credentials(token="a"))
    store.store("ep-b", Credentials(token="b"))

    store.clear("ep-a")

    assert store.get("ep-a") is None
    assert store.get("ep-b") == Credentials(token="b")


def test_corrupt_entry_reads_as_missing():
    backing = KeyValueStore()
    backing.set("ep-a", {"encoded": "%%%not-base64%%%", "stored_at": "x"})
    assert CredentialStore(backing).get("ep-a") is None


def test_credentials_never_go_to_a_durable_store(tmp_path):
    with pytest.raises(ValueError):
        CredentialStore(KeyValueStore(tmp_path / "creds.json"))


def test_module_level_session_helpers():
    auth.store_credentials("ep-session", {"apiKey": "k"})
    try:
        assert auth.get_credentials("ep-session").api_key == "k"
    finally:
        auth.clear_credentials("ep-session")
    assert auth.get_credentials("ep-session") is None


def test_memory_store_basics():
    store = KeyValueStore()
    assert store.durable is False
    assert store.get("missing", "dflt") == "dflt"

    store.set("a", 1)
    store.update({"b": None, "c": [1, 2]})

    assert "b" in store
    assert store.get("b", "dflt") is None
    assert sorted(store) == ["a", "b", "c"]
    assert len(store) == 3
    assert store.delete("a") is True
    assert store.delete("a") is False

    stats = store.stats()
    assert stats["size"] == 2
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["sets"] == 3
    assert stats["deletes"] == 1


def test_durable_store_persists_and_clears(tmp_path):
    path = tmp_path / "sub" / "store.json"
    KeyValueStore(path).set("ns", "ex")
    assert json.loads(path.read_text(encoding="utf-8")) == {"ns": "ex"}

    reopened = KeyValueStore(path)
    assert reopened.get("ns") == "ex"

    reopened.clear()
    assert not path.exists()
    assert len(reopened) == 0


def test_corrupt_durable_file_is_ignored(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")

    store = KeyValueStore(path)
    assert store.get("anything") is None
    assert store.stats()["load_errors"] == 1
