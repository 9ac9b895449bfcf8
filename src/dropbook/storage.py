"""Credential storage for Dropbook.

Two backends share one contract: the OS keyring (primary, when the platform
has one) and an owner-only JSON file under ~/.dropbook (always written, as a
backup and for platforms without a keyring). TieredCredentialStore composes
them with a fixed precedence.
"""

from __future__ import annotations

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

import keyring
import keyring.errors
from keyring.backends import fail
from pydantic import ValidationError

from dropbook.models.auth import StoredTokenData
from dropbook.utils.errors import (
    CredentialStoreError,
    ItemNotFoundError,
    KeyringBackendError,
    NotConfiguredError,
    StorageIOError,
    UnexpectedDataError,
)

if TYPE_CHECKING:
    from dropbook.config import Settings

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "com.dropbook.oauth"
KEYRING_ACCOUNT = "dropbox-tokens"
AUTH_FILENAME = "auth.json"


def _decode(raw: str | bytes, source: str) -> StoredTokenData:
    try:
        return StoredTokenData.model_validate_json(raw)
    except ValidationError as e:
        raise UnexpectedDataError(f"Unexpected data format in {source}: {e.error_count()} invalid field(s)") from e


class CredentialStore(ABC):
    """Abstract base class for token storage backends."""

    name: str = ""

    @abstractmethod
    def save(self, token_data: StoredTokenData) -> None:
        """Persist the record, replacing any existing one."""

    @abstractmethod
    def load(self) -> StoredTokenData:
        """Return the stored record or raise."""

    @abstractmethod
    def delete(self) -> None:
        """Remove the record. Deleting an absent record is not an error."""

    @abstractmethod
    def exists(self) -> bool:
        """Whether a record is present."""


class KeyringCredentialStore(CredentialStore):
    """Token storage in the OS credential vault (macOS Keychain, Windows
    Credential Locker, Linux Secret Service)."""

    name = "keyring"

    def __init__(
        self,
        service: str = KEYRING_SERVICE,
        account: str = KEYRING_ACCOUNT,
        enabled: bool = True,
    ) -> None:
        self._service = service
        self._account = account
        self._enabled = enabled

    def is_available(self) -> bool:
        """False when disabled or when no usable keyring backend exists."""
        if not self._enabled:
            return False
        try:
            backend = keyring.get_keyring()
        except keyring.errors.KeyringError as e:
            logger.debug("Keyring backend lookup failed: %s", e)
            return False
        return not isinstance(backend, fail.Keyring)

    def save(self, token_data: StoredTokenData) -> None:
        # Replace rather than update so no stale attributes survive
        self.delete()
        try:
            keyring.set_password(self._service, self._account, token_data.to_json())
        except keyring.errors.KeyringError as e:
            raise KeyringBackendError(f"Unable to save to keyring: {e}") from e
        logger.info("Stored token in keyring (%s)", self._service)

    def load(self) -> StoredTokenData:
        try:
            raw = keyring.get_password(self._service, self._account)
        except keyring.errors.KeyringError as e:
            raise KeyringBackendError(f"Unable to load from keyring: {e}") from e
        if raw is None:
            raise ItemNotFoundError()
        return _decode(raw, "keyring")

    def delete(self) -> None:
        try:
            if keyring.get_password(self._service, self._account) is None:
                return
            keyring.delete_password(self._service, self._account)
        except keyring.errors.PasswordDeleteError:
            return
        except keyring.errors.KeyringError as e:
            raise KeyringBackendError(f"Unable to delete from keyring: {e}") from e
        logger.info("Deleted token from keyring (%s)", self._service)

    def exists(self) -> bool:
        try:
            return keyring.get_password(self._service, self._account) is not None
        except keyring.errors.KeyringError as e:
            raise KeyringBackendError(f"Unable to read keyring: {e}") from e


class FileCredentialStore(CredentialStore):
    """Token storage in an owner-only JSON file."""

    name = "file"

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self.path = self.directory / AUTH_FILENAME

    def _ensure_dir_exists(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(f"Cannot create storage directory {self.directory}: {e}") from e

    def save(self, token_data: StoredTokenData) -> None:
        """Write atomically: temp file in the same directory, then rename.

        mkstemp creates the temp file with mode 0600, so the record is never
        readable by other users, and readers see either the old or the new file.
        """
        self._ensure_dir_exists()
        payload = token_data.to_json(indent=2).encode("utf-8")

        fd, tmp_name = tempfile.mkstemp(prefix=".auth-", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise StorageIOError(f"Unable to write {self.path}: {e}") from e
        logger.info("Stored token in %s", self.path)

    def load(self) -> StoredTokenData:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            raise NotConfiguredError(f"No stored token at {self.path}. Run 'dropbook login' first.") from None
        except OSError as e:
            raise StorageIOError(f"Unable to read {self.path}: {e}") from e
        return _decode(raw, str(self.path))

    def delete(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageIOError(f"Unable to delete {self.path}: {e}") from e
        logger.info("Deleted %s", self.path)

    def exists(self) -> bool:
        return self.path.is_file()


class TieredCredentialStore:
    """Keyring first, file as backup.

    Writes go to both backends (keyring only when available). Reads use the
    keyring record when there is one and the file otherwise; the two are never
    merged.
    """

    def __init__(self, secure: KeyringCredentialStore | None, file: FileCredentialStore) -> None:
        self.secure = secure
        self.file = file

    @property
    def secure_available(self) -> bool:
        return self.secure is not None and self.secure.is_available()

    @property
    def backends(self) -> list[CredentialStore]:
        """Active backends in precedence order."""
        if self.secure_available:
            return [self.secure, self.file]  # type: ignore[list-item]
        return [self.file]

    def save(self, token_data: StoredTokenData) -> list[str]:
        """Save to every active backend. Returns the backend names written."""
        written = []
        for backend in self.backends:
            backend.save(token_data)
            written.append(backend.name)
        return written

    def load(self) -> StoredTokenData:
        return self.load_with_source()[0]

    def load_with_source(self) -> tuple[StoredTokenData, str]:
        """Load the record and name the backend it came from."""
        if self.secure_available:
            try:
                return self.secure.load(), self.secure.name  # type: ignore[union-attr]
            except ItemNotFoundError:
                logger.debug("No keyring entry; falling back to %s", self.file.path)
            except CredentialStoreError as e:
                logger.warning("Keyring unreadable (%s); falling back to %s", e, self.file.path)
        return self.file.load(), self.file.name

    def locate(self) -> str | None:
        """Name of the backend load() reads from, or None when nothing is stored."""
        try:
            return self.load_with_source()[1]
        except NotConfiguredError:
            return None

    def exists(self) -> bool:
        return self.locate() is not None

    def delete(self) -> list[str]:
        """Delete from every active backend.

        Returns the names of backends that held a record. Every backend is
        attempted, whether or not it reports a record; the first failure is
        re-raised afterwards.
        """
        cleared = []
        first_error: CredentialStoreError | None = None
        for backend in self.backends:
            try:
                held = backend.exists()
                backend.delete()
            except CredentialStoreError as e:
                logger.warning("Failed to clear %s: %s", backend.name, e)
                first_error = first_error or e
                continue
            if held:
                cleared.append(backend.name)
        if first_error is not None:
            raise first_error
        return cleared


def default_credential_store(settings: Settings) -> TieredCredentialStore:
    """Build the tiered store described by the settings."""
    return TieredCredentialStore(
        secure=KeyringCredentialStore(enabled=settings.use_keyring),
        file=FileCredentialStore(settings.config_dir),
    )
