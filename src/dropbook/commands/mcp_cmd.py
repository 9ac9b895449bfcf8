"""CLI command that runs the MCP server on stdio."""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console

from dropbook.config import load_config
from dropbook.server.main import run_server
from dropbook.service import DropboxService

logger = logging.getLogger(__name__)

# stdout belongs to the JSON-RPC stream once the server starts
console = Console(stderr=True)


def mcp() -> None:
    """Run the Dropbook MCP server over stdio."""
    try:
        service = DropboxService(load_config())
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    try:
        asyncio.run(run_server(service))
    except KeyboardInterrupt:
        logger.info("MCP server interrupted")
    finally:
        service.close()
