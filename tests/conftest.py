"""Shared fixtures for the dropbook test suite."""
from __future__ import annotations

from unittest.mock import MagicMock

import keyring
import keyring.errors
import pytest
from keyring.backend import KeyringBackend
from keyring.backends import fail

from dropbook.config import DropbookConfig, Settings
from dropbook.models.auth import StoredTokenData
from dropbook.storage import FileCredentialStore, KeyringCredentialStore, TieredCredentialStore

_ENV_VARS = (
    "DROPBOX_APP_KEY",
    "DROPBOX_APP_SECRET",
    "DROPBOX_ACCESS_TOKEN",
    "DROPBOX_REFRESH_TOKEN",
    "DROPBOOK_CONFIG_DIR",
    "DROPBOOK_USE_KEYRING",
)


class MemoryKeyring(KeyringBackend):
    """In-process keyring backend so tests never touch the real OS vault."""

    priority = 1

    def __init__(self) -> None:
        super().__init__()
        self.entries: dict[tuple[str, str], str] = {}
        self.locked = False

    def get_password(self, service, username):
        if self.locked:
            raise keyring.errors.KeyringLocked("keyring is locked")
        return self.entries.get((service, username))

    def set_password(self, service, username, password):
        self.entries[(service, username)] = password

    def delete_password(self, service, username):
        if self.locked:
            raise keyring.errors.KeyringLocked("keyring is locked")
        try:
            del self.entries[(service, username)]
        except KeyError:
            raise keyring.errors.PasswordDeleteError(username) from None


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path):
    """No real credentials, config dir or keyring leak into any test."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("DROPBOOK_CONFIG_DIR", str(tmp_path / "home-config"))

    keyring.set_keyring(fail.Keyring())


@pytest.fixture
def memory_keyring():
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    return backend


@pytest.fixture
def fake_settings(tmp_path) -> Settings:
    return Settings(
        app_key="test-app-key",
        app_secret="test-app-secret",
        config_dir=tmp_path / "dropbook",
    )


@pytest.fixture
def file_store(fake_settings) -> FileCredentialStore:
    return FileCredentialStore(fake_settings.config_dir)


@pytest.fixture
def tiered_store(file_store) -> TieredCredentialStore:
    return TieredCredentialStore(secure=KeyringCredentialStore(), file=file_store)


@pytest.fixture
def stored_token() -> StoredTokenData:
    return StoredTokenData(
        access_token="stored-access",
        refresh_token="stored-refresh",
        expiration_timestamp=1_900_000_000.0,
        uid="12345",
    )


@pytest.fixture
def full_config() -> DropbookConfig:
    return DropbookConfig(
        app_key="test-app-key",
        app_secret="test-app-secret",
        access_token="acc-tok",
        refresh_token="ref-tok",
        expiration_timestamp=1_900_000_000.0,
        uid="12345",
    )


@pytest.fixture
def mock_dropbox():
    """MagicMock standing in for a dropbox.Dropbox SDK client."""
    client = MagicMock()
    client.close = MagicMock()
    return client
