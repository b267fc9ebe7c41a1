#!/usr/bin/env python3
"""
InsightSentry MCP Server - stdio transport

MCP protocol wrapper for stdio clients.
Business logic delegated to handlers.py.

Run with: python -m mcp_insightsentry.server
"""

import asyncio
from typing import Any

from dotenv import load_dotenv
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from insightsentry_tools.client import InsightSentryClient
from insightsentry_tools.config import Settings

from .handlers import call_tool as handle_tool
from .logging_config import setup_async_logging, shutdown_async_logging
from .tools import get_mcp_tools

app = Server("insightsentry-mcp")

# Built in main() once the environment is loaded
_client: InsightSentryClient | None = None


def get_client() -> InsightSentryClient:
    global _client  # noqa: PLW0603
    if _client is None:
        _client = InsightSentryClient(Settings.from_env())
    return _client


@app.list_tools()  # type: ignore[misc,no-untyped-call]
async def list_tools() -> list[Tool]:
    """List available MCP tools - imported from tools.py (single source of truth)"""
    return get_mcp_tools()


@app.call_tool()  # type: ignore[misc]
async def call_tool(name: str, arguments: Any) -> list[TextContent]:  # noqa: ANN401
    """Handle tool execution - delegates to handlers.py"""
    result = await handle_tool(name, arguments or {}, get_client())
    return [TextContent(type="text", text=result)]


async def main() -> None:
    """Run the MCP server"""
    async with stdio_server() as (read_stream, write_stream):
        await app.run(
            read_stream,
            write_stream,
            app.create_initialization_options()
        )


if __name__ == "__main__":
    load_dotenv()
    setup_async_logging()
    try:
        asyncio.run(main())
    finally:
        shutdown_async_logging()
