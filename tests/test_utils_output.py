"""Tests for utils/output.py: JSON/table routing and row formatting."""
import json

import pytest

from dropbook.models.files import DropboxItem, MatchType, SearchResult
from dropbook.utils.output import OutputFormat, format_size, item_row, print_json, print_output, search_row


# ── print_json ───────────────────────────────────────────────────────

def test_print_json_dict(capsys):
    print_json({"key": "value"})
    assert json.loads(capsys.readouterr().out) == {"key": "value"}


def test_print_json_empty(capsys):
    print_json([])
    assert json.loads(capsys.readouterr().out) == []


# ── print_output ─────────────────────────────────────────────────────

def test_print_output_json(capsys):
    print_output([{"name": "a"}], OutputFormat.JSON)
    assert json.loads(capsys.readouterr().out) == [{"name": "a"}]


def test_print_output_table_columns(capsys):
    print_output([{"name": "a.txt", "secret": "hidden"}], OutputFormat.TABLE, columns=["name"])
    out = capsys.readouterr().out
    assert "a.txt" in out
    assert "hidden" not in out


def test_print_output_table_empty(capsys):
    print_output([], OutputFormat.TABLE)
    assert "No results" in capsys.readouterr().err


# ── format_size ──────────────────────────────────────────────────────

@pytest.mark.parametrize("size, expected", [
    (0, "0 bytes"),
    (999, "999 bytes"),
    (1500, "1.5 KB"),
    (2_000_000, "2.0 MB"),
    (3_500_000_000, "3.5 GB"),
])
def test_format_size(size, expected):
    assert format_size(size) == expected


# ── Rows ─────────────────────────────────────────────────────────────

def test_folder_row():
    row = item_row(DropboxItem.folder(id="id:1", name="docs", path="/docs"))
    assert row["name"] == "docs/"
    assert row["size"] == ""


def test_file_row():
    row = item_row(DropboxItem.file(id="id:2", name="a.txt", path="/a.txt", size=10))
    assert row == {"name": "a.txt", "type": "file", "size": "10 bytes", "path": "/a.txt"}


def test_search_row():
    item = DropboxItem.file(id="id:2", name="a.txt", path="/a.txt", size=10)
    row = search_row(3, SearchResult(match_type=MatchType.CONTENT, metadata=item))
    assert row == {"#": 3, "match": "content", "path": "/a.txt"}
