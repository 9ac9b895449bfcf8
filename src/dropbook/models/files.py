"""File metadata models returned by the Dropbox service facade."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


class ItemType(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class MatchType(str, Enum):
    FILENAME = "FILENAME"
    CONTENT = "CONTENT"
    BOTH = "BOTH"


class DropboxItem(BaseModel):
    """A file or folder in Dropbox."""
    type: ItemType
    id: str
    name: str
    path: str
    size: int | None = None
    modified: datetime | None = None
    content_hash: str | None = None

    @classmethod
    def file(
        cls,
        id: str,
        name: str,
        path: str,
        size: int,
        modified: datetime | None = None,
        content_hash: str | None = None,
    ) -> DropboxItem:
        return cls(
            type=ItemType.FILE,
            id=id,
            name=name,
            path=path,
            size=size,
            modified=modified,
            content_hash=content_hash,
        )

    @classmethod
    def folder(cls, id: str, name: str, path: str) -> DropboxItem:
        return cls(type=ItemType.FOLDER, id=id, name=name, path=path)

    def to_dict(self) -> dict[str, Any]:
        """Compact dict for tool and JSON output; folders carry no size or date."""
        data: dict[str, Any] = {
            "type": self.type.value,
            "id": self.id,
            "name": self.name,
            "path": self.path,
        }
        if self.type is ItemType.FILE:
            if self.size is not None:
                data["size"] = self.size
            if self.modified is not None:
                data["modified"] = self.modified.isoformat()
        return data


class SearchResult(BaseModel):
    match_type: MatchType
    metadata: DropboxItem

    def to_dict(self) -> dict[str, Any]:
        return {"matchType": self.match_type.value, "metadata": self.metadata.to_dict()}


class AccountInfo(BaseModel):
    name: str
    email: str
