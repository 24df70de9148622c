"""
Tests for the MSAL authenticator and its token cache storage.
"""

import stat
from typing import Dict, Tuple

import keyring
import msal
import pytest
import requests
from keyring.errors import KeyringError, PasswordDeleteError

from bookingslots.adapters.graph_authenticator import KEYRING_SERVICE_NAME, GraphAuthenticator
from bookingslots.domain.exceptions import AuthenticationError


class FakePublicClientApplication:
    """Stands in for msal.PublicClientApplication without network access."""

    def __init__(self, client_id, authority=None, token_cache=None):
        self.client_id = client_id
        self.authority = authority
        self.token_cache = token_cache

    def get_accounts(self):
        return []

    def initiate_device_flow(self, scopes):
        raise requests.exceptions.ConnectionError("login.microsoftonline.com unreachable")


@pytest.fixture
def fake_msal(monkeypatch):
    monkeypatch.setattr(msal, "PublicClientApplication", FakePublicClientApplication)


@pytest.fixture
def broken_keyring(monkeypatch):
    """A keyring whose backend fails on every call."""
    def fail(*args):
        raise KeyringError("no backend available")

    monkeypatch.setattr(keyring, "get_password", fail)
    monkeypatch.setattr(keyring, "set_password", fail)
    monkeypatch.setattr(keyring, "delete_password", fail)


@pytest.fixture
def memory_keyring(monkeypatch) -> Dict[Tuple[str, str], str]:
    """A working keyring backed by a dictionary."""
    store: Dict[Tuple[str, str], str] = {}

    def get_password(service, username):
        return store.get((service, username))

    def set_password(service, username, password):
        store[(service, username)] = password

    def delete_password(service, username):
        if (service, username) not in store:
            raise PasswordDeleteError("not found")
        del store[(service, username)]

    monkeypatch.setattr(keyring, "get_password", get_password)
    monkeypatch.setattr(keyring, "set_password", set_password)
    monkeypatch.setattr(keyring, "delete_password", delete_password)
    return store


def _authenticator(tmp_path) -> GraphAuthenticator:
    return GraphAuthenticator(client_id="client", tenant_id="tenant", cache_file=tmp_path / "token_cache.json")


class TestGraphAuthenticatorCache:
    """Tests for keyring storage with the file fallback."""

    def test_falls_back_to_owner_only_file(self, tmp_path, fake_msal, broken_keyring):
        authenticator = _authenticator(tmp_path)
        authenticator.cache.has_state_changed = True

        authenticator._save_cache()

        assert authenticator.cache_file.exists()
        assert stat.S_IMODE(authenticator.cache_file.stat().st_mode) == 0o600
        assert authenticator._read_cache() == authenticator.cache_file.read_text(encoding="utf-8")

    def test_unchanged_cache_is_not_written(self, tmp_path, fake_msal, broken_keyring):
        authenticator = _authenticator(tmp_path)

        authenticator._save_cache()

        assert not authenticator.cache_file.exists()

    def test_saves_to_keyring_when_available(self, tmp_path, fake_msal, memory_keyring):
        authenticator = _authenticator(tmp_path)
        authenticator.cache.has_state_changed = True

        authenticator._save_cache()

        assert (KEYRING_SERVICE_NAME, "client:tenant") in memory_keyring
        assert not authenticator.cache_file.exists()
        assert authenticator._read_cache() == memory_keyring[(KEYRING_SERVICE_NAME, "client:tenant")]

    def test_clear_cache_removes_both_stores(self, tmp_path, fake_msal, memory_keyring):
        authenticator = _authenticator(tmp_path)
        memory_keyring[(KEYRING_SERVICE_NAME, "client:tenant")] = "{}"
        authenticator.cache_file.write_text("{}", encoding="utf-8")

        authenticator.clear_cache()

        assert memory_keyring == {}
        assert not authenticator.cache_file.exists()

    def test_clear_cache_with_broken_keyring(self, tmp_path, fake_msal, broken_keyring):
        authenticator = _authenticator(tmp_path)
        authenticator.cache_file.write_text("{}", encoding="utf-8")

        authenticator.clear_cache()

        assert not authenticator.cache_file.exists()


class TestGraphAuthenticatorErrors:
    """Network failures surface as AuthenticationError."""

    def test_unreachable_authority(self, tmp_path, monkeypatch, broken_keyring):
        def unreachable(**kwargs):
            raise requests.exceptions.ConnectionError("authority unreachable")

        monkeypatch.setattr(msal, "PublicClientApplication", unreachable)

        with pytest.raises(AuthenticationError, match="authority unreachable"):
            _authenticator(tmp_path)

    def test_device_flow_network_failure(self, tmp_path, fake_msal, broken_keyring):
        authenticator = _authenticator(tmp_path)

        with pytest.raises(AuthenticationError, match="unreachable"):
            authenticator.get_access_token()
