"""MCP server wiring for Dropbook.

Serves the Dropbox tools over stdio. stdout carries JSON-RPC, so all
logging goes to stderr.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from dropbook.server.tools import TOOL_METADATA, dispatch_tool
from dropbook.service import DropboxService
from dropbook.utils.errors import error_payload

logger = logging.getLogger(__name__)

SERVER_NAME = "dropbook"
SERVER_VERSION = "1.0.0"


class ToolExecutionError(Exception):
    """Raised from the call_tool handler; the MCP runtime turns it into an
    isError result carrying the message as text."""


def create_server(service: DropboxService) -> Server:
    """Build an MCP server bound to one service instance."""
    server: Server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List all available tools."""
        tools = [
            Tool(name=name, description=meta["description"], inputSchema=meta["inputSchema"])
            for name, meta in TOOL_METADATA.items()
        ]
        logger.info("Listed %s tools", len(tools))
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Execute a tool; failures become tool-level errors, never server exits."""
        logger.info("Tool called: %s", name)
        try:
            text = await dispatch_tool(service, name, arguments)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Tool %s failed: %s", name, exc)
            raise ToolExecutionError(json.dumps(error_payload(exc))) from exc
        return [TextContent(type="text", text=text)]

    return server


async def run_server(service: DropboxService) -> None:
    """Run the server over stdio until the client disconnects."""
    server = create_server(service)
    logger.info("Starting Dropbook MCP server")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
