#!/usr/bin/env python3
"""
InsightSentry MCP Server - HTTP/SSE transport

Network server for multi-client MCP access.
Same MCP protocol as stdio server, different transport.
Business logic delegated to handlers.py.

Run with: python -m mcp_insightsentry.server_http

Configuration:
- PORT: Server port (default: 3001)
- INSIGHTSENTRY_API_KEY: REST API key
"""

import os
import signal
from typing import Any

import uvicorn
from dotenv import load_dotenv
from mcp.server import Server
from mcp.server.sse import SseServerTransport
from mcp.types import TextContent, Tool
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Mount, Route

from insightsentry_tools.client import InsightSentryClient
from insightsentry_tools.config import Settings

from .handlers import call_tool as handle_tool
from .logging_config import get_logger, setup_async_logging, shutdown_async_logging
from .tools import get_mcp_tools

logger = get_logger(__name__)


def create_app(settings: Settings | None = None, client: InsightSentryClient | None = None) -> Starlette:
    """Starlette app serving MCP over SSE, plus /ping and /shutdown"""
    settings = settings or Settings()
    client = client or InsightSentryClient(settings)

    # One MCP server and SSE transport per app (multi-client via SSE sessions)
    mcp_server = Server("insightsentry-mcp")
    sse_transport = SseServerTransport("/messages/")

    @mcp_server.list_tools()  # type: ignore[misc,no-untyped-call]
    async def list_tools() -> list[Tool]:
        """List available MCP tools - imported from tools.py (single source of truth)"""
        return get_mcp_tools()

    @mcp_server.call_tool()  # type: ignore[misc]
    async def call_tool(name: str, arguments: Any) -> list[TextContent]:  # noqa: ANN401
        """Handle tool execution - delegates to handlers.py"""
        logger.info(f"call_tool: name={name}, arguments={arguments}")
        result = await handle_tool(name, arguments or {}, client)
        logger.info(f"{name}() returning {len(result)} chars")
        return [TextContent(type="text", text=result)]

    async def handle_sse(request: Request) -> Response:
        """
        SSE endpoint for MCP protocol.

        Creates a new SSE connection for each client, runs the MCP server
        with the connection streams, and returns when client disconnects.
        """
        client_addr = request.client.host if request.client else "unknown"
        logger.info(f"New SSE connection from {client_addr}")

        async with sse_transport.connect_sse(
            request.scope, request.receive, request._send
        ) as streams:
            logger.info("SSE connected, running MCP server loop")
            await mcp_server.run(
                streams[0], streams[1], mcp_server.create_initialization_options()
            )
            logger.info(f"SSE disconnected from {client_addr}")

        # Empty response avoids a NoneType error once the stream ends
        return Response(headers={"X-Content-Type-Options": "nosniff"})

    return Starlette(
        routes=[
            Route("/ping", endpoint=handle_ping, methods=["GET"]),
            Route("/shutdown", endpoint=handle_shutdown, methods=["POST"]),
            Route("/sse", endpoint=handle_sse, methods=["GET"]),
            Mount("/messages/", app=sse_transport.handle_post_message),
        ]
    )


# Starlette endpoint handlers

async def handle_ping(_request: Request) -> JSONResponse:
    """Health check endpoint"""
    return JSONResponse({"status": "ok"})


async def handle_shutdown(_request: Request) -> JSONResponse:
    """Graceful shutdown endpoint"""
    # SIGTERM to self lets uvicorn drain connections
    os.kill(os.getpid(), signal.SIGTERM)
    return JSONResponse({"status": "shutting down"})


def main() -> None:
    load_dotenv()
    setup_async_logging()
    try:
        settings = Settings.from_env()
        if not settings.api_key:
            logger.warning("INSIGHTSENTRY_API_KEY is not set, REST tools will return errors")
        logger.info(f"MCP HTTP server listening on {settings.host}:{settings.port}")
        uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
    finally:
        shutdown_async_logging()


if __name__ == "__main__":
    main()
