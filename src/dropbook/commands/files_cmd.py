"""CLI commands for Dropbox file operations."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from dropbook.config import load_config
from dropbook.models.files import ItemType
from dropbook.service import DropboxService
from dropbook.utils.errors import handle_error
from dropbook.utils.output import OutputFormat, format_size, item_row, print_output, search_row

console = Console(stderr=True)


def _build_service() -> DropboxService:
    try:
        return DropboxService(load_config())
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)


def list_files(
    path: Annotated[str, typer.Argument(help="Dropbox folder to list (default: root)")] = "",
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """List files and folders in Dropbox."""
    service = _build_service()
    try:
        items = service.list_files(path)
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        service.close()

    if output == OutputFormat.JSON:
        print_output({"files": [item.to_dict() for item in items]}, output)
        return
    if not items:
        console.print("[dim]Folder is empty.[/dim]")
        return
    print_output([item_row(i) for i in items], output, columns=["name", "size", "path"], title=path or "/")


def search(
    query: Annotated[str, typer.Argument(help="Search query")],
    path: Annotated[str, typer.Argument(help="Folder to search in (default: everywhere)")] = "",
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Search for files by name or content."""
    service = _build_service()
    try:
        results = service.search(query, path)
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        service.close()

    if output == OutputFormat.JSON:
        print_output({"count": len(results), "results": [r.to_dict() for r in results]}, output)
        return
    if not results:
        console.print(f"No results found for '{query}'")
        return
    console.print(f"Found {len(results)} result(s):")
    print_output([search_row(n, r) for n, r in enumerate(results, start=1)], output)


def upload(
    local_path: Annotated[str, typer.Argument(help="Local file to upload")],
    remote_path: Annotated[str, typer.Argument(help="Destination path in Dropbox, e.g. /folder/file.txt")],
    overwrite: Annotated[bool, typer.Option("--overwrite", help="Overwrite if the file exists")] = False,
) -> None:
    """Upload a file to Dropbox."""
    service = _build_service()
    try:
        item = service.upload_file(local_path, remote_path, overwrite=overwrite)
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        service.close()

    if item.type is ItemType.FILE and item.size is not None:
        console.print(f"[green]Uploaded:[/green] {item.name} ({format_size(item.size)})")
    else:
        console.print(f"[green]Uploaded:[/green] {item.name}")


def download(
    remote_path: Annotated[str, typer.Argument(help="File path in Dropbox")],
    local_path: Annotated[str, typer.Argument(help="Local destination path")],
) -> None:
    """Download a file from Dropbox."""
    service = _build_service()
    try:
        service.download_file(remote_path, local_path)
    except Exception as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        service.close()

    console.print(f"[green]Downloaded to:[/green] {local_path}")
