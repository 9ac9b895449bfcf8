"""Dropbook CLI entry point.

Dropbox from the terminal: OAuth login, file listing, search,
transfers, and an MCP server for agent clients.
"""

from __future__ import annotations

import logging
import sys

import typer

from dropbook.commands import auth_cmd, files_cmd, mcp_cmd
from dropbook.config import load_environment

app = typer.Typer(
    name="dropbook",
    help="Dropbox CLI and MCP server.",
    no_args_is_help=True,
)

# Authentication
app.command("login")(auth_cmd.login)
app.command("logout")(auth_cmd.logout)
app.command("status")(auth_cmd.status)

# Files
app.command("list")(files_cmd.list_files)
app.command("search")(files_cmd.search)
app.command("upload")(files_cmd.upload)
app.command("download")(files_cmd.download)

# Server
app.command("mcp")(mcp_cmd.mcp)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Dropbook: manage Dropbox files and serve them to MCP clients."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    load_environment()


if __name__ == "__main__":
    app()
