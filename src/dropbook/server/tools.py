"""MCP tool definitions and dispatch for the Dropbook server.

Each tool is a thin wrapper over DropboxService that returns JSON text.
Service calls block, so dispatch runs them in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

from dropbook.service import DropboxService
from dropbook.utils.errors import ToolInputError

logger = logging.getLogger(__name__)

TOOL_METADATA: dict[str, dict[str, Any]] = {
    "list_directory": {
        "description": "List files and folders in a Dropbox directory",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to list (default: root)"},
            },
        },
    },
    "search": {
        "description": "Search for files in Dropbox by name or content",
        "inputSchema": {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "path": {"type": "string", "description": "Path to search in (default: root)"},
            },
            "required": ["query"],
        },
    },
    "upload": {
        "description": "Upload a local file to Dropbox",
        "inputSchema": {
            "type": "object",
            "properties": {
                "localPath": {"type": "string", "description": "Absolute path to local file"},
                "remotePath": {
                    "type": "string",
                    "description": "Destination path in Dropbox (e.g., /folder/file.txt)",
                },
                "overwrite": {"type": "boolean", "description": "Overwrite if file exists (default: false)"},
            },
            "required": ["localPath", "remotePath"],
        },
    },
    "download": {
        "description": "Download a file from Dropbox to local filesystem",
        "inputSchema": {
            "type": "object",
            "properties": {
                "remotePath": {"type": "string", "description": "File path in Dropbox"},
                "localPath": {"type": "string", "description": "Absolute local destination path"},
            },
            "required": ["remotePath", "localPath"],
        },
    },
    "delete": {
        "description": "Delete a file or folder from Dropbox (moves to trash)",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to delete in Dropbox"},
            },
            "required": ["path"],
        },
    },
    "get_account_info": {
        "description": "Get Dropbox account information (name, email)",
        "inputSchema": {"type": "object", "properties": {}},
    },
    "read_file": {
        "description": "Read and return the contents of a text file from Dropbox",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Path to file in Dropbox"},
            },
            "required": ["path"],
        },
    },
}


# ── Argument helpers ─────────────────────────────────────────────────

def _require_str(arguments: dict[str, Any], key: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value:
        raise ToolInputError(f"Missing required parameter: {key}")
    return value


def _optional_str(arguments: dict[str, Any], key: str, default: str = "") -> str:
    value = arguments.get(key)
    return value if isinstance(value, str) else default


def _optional_bool(arguments: dict[str, Any], key: str, default: bool = False) -> bool:
    value = arguments.get(key)
    return value if isinstance(value, bool) else default


def _to_json(data: Any) -> str:
    return json.dumps(data, default=str)


# ── Tool handlers ────────────────────────────────────────────────────

def _list_directory(service: DropboxService, arguments: dict[str, Any]) -> str:
    items = service.list_files(_optional_str(arguments, "path"))
    return _to_json({"files": [item.to_dict() for item in items]})


def _search(service: DropboxService, arguments: dict[str, Any]) -> str:
    query = _require_str(arguments, "query")
    results = service.search(query, _optional_str(arguments, "path"))
    return _to_json({"count": len(results), "results": [r.to_dict() for r in results]})


def _upload(service: DropboxService, arguments: dict[str, Any]) -> str:
    local_path = _require_str(arguments, "localPath")
    remote_path = _require_str(arguments, "remotePath")
    item = service.upload_file(local_path, remote_path, overwrite=_optional_bool(arguments, "overwrite"))

    result: dict[str, Any] = {"uploaded": True, "name": item.name, "path": item.path}
    if item.size is not None:
        result["size"] = item.size
    return _to_json(result)


def _download(service: DropboxService, arguments: dict[str, Any]) -> str:
    remote_path = _require_str(arguments, "remotePath")
    local_path = _require_str(arguments, "localPath")
    service.download_file(remote_path, local_path)
    return _to_json({"downloaded": True, "to": local_path})


def _delete(service: DropboxService, arguments: dict[str, Any]) -> str:
    path = _require_str(arguments, "path")
    service.delete(path)
    return _to_json({"deleted": True, "path": path})


def _get_account_info(service: DropboxService, arguments: dict[str, Any]) -> str:
    info = service.get_account_info()
    return _to_json({"name": info.name, "email": info.email})


def _read_file(service: DropboxService, arguments: dict[str, Any]) -> str:
    path = _require_str(arguments, "path")
    data = service.download_data(path)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise ToolInputError(f"File is not valid UTF-8 text: {path}") from None


_TOOL_FUNCS: dict[str, Callable[[DropboxService, dict[str, Any]], str]] = {
    "list_directory": _list_directory,
    "search": _search,
    "upload": _upload,
    "download": _download,
    "delete": _delete,
    "get_account_info": _get_account_info,
    "read_file": _read_file,
}


async def dispatch_tool(service: DropboxService, name: str, arguments: dict[str, Any] | None) -> str:
    """Run a tool and return its text result.

    Raises:
        ToolInputError: Unknown tool or invalid arguments.
        Exception: Anything the service raises, unchanged.
    """
    func = _TOOL_FUNCS.get(name)
    if func is None:
        raise ToolInputError(f"Unknown tool: {name}")
    if not isinstance(arguments, dict):
        arguments = {}

    return await asyncio.to_thread(func, service, arguments)
