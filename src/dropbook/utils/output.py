"""Output formatting utilities for agent-friendly CLI output."""

from __future__ import annotations

import json
import sys
from enum import Enum
from typing import Any

from rich.console import Console
from rich.table import Table

from dropbook.models.files import DropboxItem, ItemType, MatchType, SearchResult

console = Console(stderr=True)
stdout_console = Console()

_SIZE_UNITS = ["bytes", "KB", "MB", "GB", "TB"]

_MATCH_LABELS = {
    MatchType.FILENAME: "name",
    MatchType.CONTENT: "content",
    MatchType.BOTH: "name+content",
}


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


def format_size(size: int) -> str:
    """Human-readable byte count using decimal units (1 KB = 1000 bytes)."""
    if size < 1000:
        return f"{size} bytes"
    value = float(size)
    for unit in _SIZE_UNITS[1:]:
        value /= 1000
        if value < 1000 or unit == _SIZE_UNITS[-1]:
            return f"{value:.1f} {unit}"
    return f"{size} bytes"


def item_row(item: DropboxItem) -> dict[str, Any]:
    """Table row for a file or folder."""
    if item.type is ItemType.FOLDER:
        return {"name": f"{item.name}/", "type": "folder", "size": "", "path": item.path}
    return {
        "name": item.name,
        "type": "file",
        "size": format_size(item.size) if item.size is not None else "",
        "path": item.path,
    }


def search_row(index: int, result: SearchResult) -> dict[str, Any]:
    return {
        "#": index,
        "match": _MATCH_LABELS[result.match_type],
        "path": result.metadata.path,
    }


def print_output(
    data: list[dict[str, Any]] | dict[str, Any],
    fmt: OutputFormat = OutputFormat.TABLE,
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print data in the requested format.

    Args:
        data: The data to display (list of dicts or single dict).
        fmt: Output format (table or json).
        columns: Which columns to show in table mode. None = all.
        title: Optional title for table output.
    """
    if fmt == OutputFormat.JSON:
        print_json(data)
    else:
        print_table(data, columns, title)


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def print_table(
    data: list[dict[str, Any]] | dict[str, Any],
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print data as a Rich table."""
    if isinstance(data, dict):
        data = [data]

    if not data:
        console.print("[dim]No results.[/dim]")
        return

    if columns is None:
        columns = list(data[0].keys())

    table = Table(title=title, show_lines=False)
    for col in columns:
        table.add_column(col, overflow="fold")

    for row in data:
        table.add_row(*[str(row.get(col, "")) for col in columns])

    stdout_console.print(table)
