"""Authenticated Dropbox service facade.

Builds a Dropbox SDK client from the effective config on first use and
reuses it for every file operation.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import dropbox
from dropbox import files as dbx_files

from dropbook.config import DropbookConfig
from dropbook.models.files import AccountInfo, DropboxItem, MatchType, SearchResult
from dropbook.utils.errors import LocalFileNotFoundError, NotConfiguredError

logger = logging.getLogger(__name__)

SEARCH_MAX_RESULTS = 100


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    READY = "ready"


def _item_from_metadata(entry: Any) -> DropboxItem | None:
    """Convert SDK metadata to a DropboxItem; deleted entries yield None."""
    if isinstance(entry, dbx_files.FileMetadata):
        return DropboxItem.file(
            id=entry.id,
            name=entry.name,
            path=entry.path_display or "",
            size=entry.size or 0,
            modified=entry.server_modified,
            content_hash=entry.content_hash,
        )
    if isinstance(entry, dbx_files.FolderMetadata):
        return DropboxItem.folder(id=entry.id, name=entry.name, path=entry.path_display or "")
    return None


def _sdk_expiration(timestamp: float) -> datetime:
    # The SDK compares against naive UTC
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


def _api_path(path: str) -> str:
    # The API spells the root as the empty string
    return "" if path in ("", "/") else path


def _match_type(match_type: Any) -> MatchType:
    if match_type is None:
        return MatchType.FILENAME
    if match_type.is_file_content():
        return MatchType.CONTENT
    if match_type.is_filename_and_content():
        return MatchType.BOTH
    # filename, image_content and unknown tags all count as name matches
    return MatchType.FILENAME


class DropboxService:
    """File operations against Dropbox with lazy, build-once authentication."""

    def __init__(
        self,
        config: DropbookConfig,
        client_factory: Callable[..., dropbox.Dropbox] = dropbox.Dropbox,
    ) -> None:
        self._config = config
        self._client_factory = client_factory
        self._client: dropbox.Dropbox | None = None
        self._state = AuthState.UNAUTHENTICATED
        self._lock = threading.Lock()

    @property
    def state(self) -> AuthState:
        return self._state

    # ── Authentication ───────────────────────────────────────────────

    def authenticate(self) -> dropbox.Dropbox:
        """Build the SDK client from the config.

        A full token set (access, refresh, expiration, uid) gives a client
        that refreshes itself; a bare access token gives one that cannot.
        """
        cfg = self._config
        if cfg.access_token and cfg.refresh_token and cfg.expiration_timestamp is not None and cfg.uid is not None:
            logger.info("Authenticating with refreshable token set")
            return self._client_factory(
                oauth2_access_token=cfg.access_token,
                oauth2_refresh_token=cfg.refresh_token,
                oauth2_access_token_expiration=_sdk_expiration(cfg.expiration_timestamp),
                app_key=cfg.app_key,
                app_secret=cfg.app_secret,
            )
        if cfg.access_token:
            logger.info("Authenticating with bare access token (no refresh)")
            return self._client_factory(oauth2_access_token=cfg.access_token)
        raise NotConfiguredError()

    def get_client(self) -> dropbox.Dropbox:
        """Return the SDK client, authenticating on the first call only."""
        if self._client is not None:
            return self._client

        with self._lock:
            if self._client is None:
                self._state = AuthState.AUTHENTICATING
                try:
                    self._client = self.authenticate()
                except Exception:
                    self._state = AuthState.UNAUTHENTICATED
                    raise
                self._state = AuthState.READY
        return self._client

    # ── File operations ──────────────────────────────────────────────

    def list_files(self, path: str = "") -> list[DropboxItem]:
        """List files and folders directly under a path ("" is the root)."""
        client = self.get_client()

        result = client.files_list_folder(_api_path(path))
        entries = list(result.entries)
        while result.has_more:
            result = client.files_list_folder_continue(result.cursor)
            entries.extend(result.entries)

        items = [_item_from_metadata(e) for e in entries]
        return [item for item in items if item is not None]

    def search(self, query: str, path: str = "") -> list[SearchResult]:
        """Search file names and contents, optionally scoped to a path."""
        client = self.get_client()

        options = dbx_files.SearchOptions(path=_api_path(path) or None, max_results=SEARCH_MAX_RESULTS)
        response = client.files_search_v2(query, options=options)

        results: list[SearchResult] = []
        for match in response.matches:
            if not match.metadata.is_metadata():
                continue
            item = _item_from_metadata(match.metadata.get_metadata())
            if item is None:
                continue
            results.append(SearchResult(match_type=_match_type(match.match_type), metadata=item))
        return results

    def upload_file(self, local_path: str, remote_path: str, overwrite: bool = False) -> DropboxItem:
        """Upload a local file; without overwrite, conflicts are auto-renamed."""
        if not os.path.isfile(local_path):
            raise LocalFileNotFoundError(local_path)

        client = self.get_client()
        with open(local_path, "rb") as f:
            data = f.read()

        mode = dbx_files.WriteMode.overwrite if overwrite else dbx_files.WriteMode.add
        metadata = client.files_upload(data, remote_path, mode=mode)
        logger.info("Uploaded %s to %s (%d bytes)", local_path, remote_path, len(data))

        return DropboxItem.file(
            id=metadata.id,
            name=metadata.name,
            path=metadata.path_display or "",
            size=metadata.size,
            modified=metadata.server_modified,
            content_hash=metadata.content_hash,
        )

    def download_file(self, remote_path: str, local_path: str) -> None:
        """Download a file to a local path."""
        data = self.download_data(remote_path)
        with open(local_path, "wb") as f:
            f.write(data)
        logger.info("Downloaded %s to %s (%d bytes)", remote_path, local_path, len(data))

    def download_data(self, remote_path: str) -> bytes:
        """Download a file and return its raw bytes."""
        client = self.get_client()
        _, response = client.files_download(remote_path)
        return response.content

    def delete(self, path: str) -> None:
        """Delete a file or folder."""
        client = self.get_client()
        client.files_delete_v2(path)
        logger.info("Deleted %s", path)

    def get_account_info(self) -> AccountInfo:
        client = self.get_client()
        account = client.users_get_current_account()
        return AccountInfo(name=account.name.display_name, email=account.email)

    def close(self) -> None:
        """Close the underlying SDK client if it was built."""
        if self._client is not None:
            self._client.close()
