"""Tests for storage.py: file and keyring backends, tiered precedence."""
import json
import os
import stat
import sys
import threading

import keyring
import pytest
from keyring.backends import fail

from dropbook.models.auth import StoredTokenData
from dropbook.storage import (
    KEYRING_ACCOUNT,
    KEYRING_SERVICE,
    FileCredentialStore,
    KeyringCredentialStore,
    TieredCredentialStore,
)
from dropbook.utils.errors import (
    ItemNotFoundError,
    KeyringBackendError,
    NotConfiguredError,
    UnexpectedDataError,
)


# ── File store ───────────────────────────────────────────────────────

_RECORD_VARIANTS = [
    pytest.param({"refresh_token": "ref", "expiration_timestamp": 1_900_000_000.0}, id="refresh-and-expiry"),
    pytest.param({"refresh_token": "ref"}, id="refresh-only"),
    pytest.param({"expiration_timestamp": 1_900_000_000.0}, id="expiry-only"),
    pytest.param({}, id="access-only"),
]


@pytest.mark.parametrize("optionals", _RECORD_VARIANTS)
def test_file_round_trip(file_store, optionals):
    token = StoredTokenData(access_token="acc", uid="u-1", **optionals)
    file_store.save(token)
    assert file_store.load() == token


def test_file_uses_camel_case_and_omits_none(file_store):
    file_store.save(StoredTokenData(access_token="a", uid="u"))
    data = json.loads(file_store.path.read_text())
    assert data == {"accessToken": "a", "uid": "u"}


def test_file_creates_directory(file_store, stored_token):
    assert not file_store.directory.exists()
    file_store.save(stored_token)
    assert file_store.path.is_file()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
def test_file_is_owner_only(file_store, stored_token):
    file_store.save(stored_token)
    assert stat.S_IMODE(os.stat(file_store.path).st_mode) == 0o600


def test_file_save_replaces(file_store, stored_token):
    file_store.save(stored_token)
    file_store.save(StoredTokenData(access_token="newer"))

    assert file_store.load().access_token == "newer"
    assert file_store.load().refresh_token is None


def test_file_save_leaves_no_temp_files(file_store, stored_token):
    file_store.save(stored_token)
    file_store.save(stored_token)
    assert [p.name for p in file_store.directory.iterdir()] == ["auth.json"]


def test_file_load_missing(file_store):
    with pytest.raises(NotConfiguredError):
        file_store.load()


def test_file_load_corrupt(file_store):
    file_store.directory.mkdir(parents=True)
    file_store.path.write_text('{"refreshToken": "no access token"}')
    with pytest.raises(UnexpectedDataError):
        file_store.load()


def test_file_ignores_unknown_keys(file_store):
    file_store.directory.mkdir(parents=True)
    file_store.path.write_text('{"accessToken": "a", "scope": "files.content.read"}')
    assert file_store.load().access_token == "a"


def test_file_delete_is_idempotent(file_store, stored_token):
    file_store.save(stored_token)
    file_store.delete()
    file_store.delete()
    assert not file_store.exists()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX rename semantics")
def test_file_reader_never_sees_partial_write(file_store):
    first = StoredTokenData(access_token="a" * 4000, refresh_token="r1")
    second = StoredTokenData(access_token="b" * 4000, expiration_timestamp=1.0)
    file_store.save(first)

    done = threading.Event()
    loaded, errors = [], []

    def writer():
        try:
            for n in range(200):
                file_store.save(second if n % 2 else first)
        finally:
            done.set()

    thread = threading.Thread(target=writer)
    thread.start()
    while True:
        try:
            loaded.append(file_store.load())
        except Exception as e:
            errors.append(e)
        if done.is_set():
            break
    thread.join()

    assert errors == []
    assert loaded
    assert all(record in (first, second) for record in loaded)


# ── Keyring store ────────────────────────────────────────────────────

@pytest.mark.parametrize("optionals", _RECORD_VARIANTS)
def test_keyring_round_trip(memory_keyring, optionals):
    token = StoredTokenData(access_token="acc", uid="u-1", **optionals)
    store = KeyringCredentialStore()
    store.save(token)

    assert store.load() == token
    raw = json.loads(memory_keyring.entries[(KEYRING_SERVICE, KEYRING_ACCOUNT)])
    assert raw["accessToken"] == "acc"
    assert ("refreshToken" in raw) == ("refresh_token" in optionals)
    assert ("expirationTimestamp" in raw) == ("expiration_timestamp" in optionals)


def test_keyring_load_missing(memory_keyring):
    with pytest.raises(ItemNotFoundError):
        KeyringCredentialStore().load()


def test_keyring_load_corrupt(memory_keyring):
    memory_keyring.entries[(KEYRING_SERVICE, KEYRING_ACCOUNT)] = "not json"
    with pytest.raises(UnexpectedDataError):
        KeyringCredentialStore().load()


def test_keyring_delete_is_idempotent(memory_keyring, stored_token):
    store = KeyringCredentialStore()
    store.save(stored_token)
    store.delete()
    store.delete()
    assert not store.exists()


def test_keyring_available(memory_keyring):
    assert KeyringCredentialStore().is_available()


def test_keyring_unavailable_with_fail_backend():
    keyring.set_keyring(fail.Keyring())
    assert not KeyringCredentialStore().is_available()


def test_keyring_disabled(memory_keyring):
    assert not KeyringCredentialStore(enabled=False).is_available()


# ── Tiered store ─────────────────────────────────────────────────────

def test_tiered_save_writes_both(memory_keyring, tiered_store, stored_token):
    assert tiered_store.save(stored_token) == ["keyring", "file"]
    assert tiered_store.secure.exists()
    assert tiered_store.file.exists()


def test_tiered_prefers_keyring(memory_keyring, tiered_store, stored_token):
    tiered_store.secure.save(stored_token)
    tiered_store.file.save(StoredTokenData(access_token="file-only"))

    assert tiered_store.load().access_token == "stored-access"
    assert tiered_store.locate() == "keyring"


def test_tiered_falls_back_to_file(memory_keyring, tiered_store):
    tiered_store.file.save(StoredTokenData(access_token="file-only"))

    assert tiered_store.load().access_token == "file-only"
    assert tiered_store.locate() == "file"


def test_tiered_falls_back_on_corrupt_keyring(memory_keyring, tiered_store):
    memory_keyring.entries[(KEYRING_SERVICE, KEYRING_ACCOUNT)] = "{broken"
    tiered_store.file.save(StoredTokenData(access_token="file-only"))

    assert tiered_store.load().access_token == "file-only"


def test_tiered_without_keyring_uses_file_only(tiered_store, stored_token):
    # Autouse fixture installs the fail backend
    assert tiered_store.save(stored_token) == ["file"]
    assert tiered_store.load() == stored_token


def test_tiered_load_nothing_stored(memory_keyring, tiered_store):
    with pytest.raises(NotConfiguredError):
        tiered_store.load()
    assert not tiered_store.exists()


def test_tiered_delete_clears_all(memory_keyring, tiered_store, stored_token):
    tiered_store.save(stored_token)

    assert tiered_store.delete() == ["keyring", "file"]
    assert tiered_store.locate() is None
    assert tiered_store.delete() == []


def test_tiered_locate_skips_corrupt_keyring(memory_keyring, tiered_store):
    memory_keyring.entries[(KEYRING_SERVICE, KEYRING_ACCOUNT)] = "{broken"
    tiered_store.file.save(StoredTokenData(access_token="file-only"))

    data, source = tiered_store.load_with_source()
    assert data.access_token == "file-only"
    assert source == "file"
    assert tiered_store.locate() == "file"


# ── Locked keyring ───────────────────────────────────────────────────

def test_keyring_exists_raises_when_locked(memory_keyring):
    memory_keyring.locked = True
    with pytest.raises(KeyringBackendError):
        KeyringCredentialStore().exists()


def test_tiered_delete_surfaces_locked_keyring(memory_keyring, tiered_store, stored_token):
    tiered_store.save(stored_token)
    memory_keyring.locked = True

    with pytest.raises(KeyringBackendError):
        tiered_store.delete()
    # The file is still cleared before the failure is raised
    assert not tiered_store.file.exists()
    assert (KEYRING_SERVICE, KEYRING_ACCOUNT) in memory_keyring.entries


def test_tiered_load_falls_back_when_keyring_locked(memory_keyring, tiered_store, stored_token):
    tiered_store.save(stored_token)
    memory_keyring.locked = True

    assert tiered_store.load_with_source() == (stored_token, "file")
