#!/usr/bin/env python3
"""
InsightSentry streaming relay - WebSocket transport

Each client WebSocket at /<tool> gets its own upstream subscription:

    client --ws--> relay --ws--> provider (news feed or quote/bar stream)

The path selects the stream kind, the query string carries its parameters
(symbols, keywords and subscriptions are JSON-encoded arrays). Messages are
forwarded verbatim in both directions until either side closes. Reconnects
are the upstream client's job; the relay never retries.

Run with: python -m mcp_insightsentry.streaming_server

Configuration:
- STREAMING_PORT: Relay port (default: 3002)
- INSIGHTSENTRY_WS_KEY: Default streaming key (otherwise fetched with INSIGHTSENTRY_API_KEY)
- STREAM_HANDSHAKE_TIMEOUT: Seconds to wait for the first upstream handshake (default: no limit)
"""

import asyncio
import dataclasses
import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

import uvicorn
from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketState

from insightsentry_tools.client import InsightSentryClient, WebSocketKeyError
from insightsentry_tools.config import Settings
from insightsentry_tools.streaming.kinds import StreamFactory, stream_factories
from insightsentry_tools.streaming.upstream import ConnectionHandle

from .logging_config import get_logger, setup_async_logging, shutdown_async_logging

logger = get_logger(__name__)

# WebSocket close codes
NORMAL_CLOSURE = 1000
POLICY_VIOLATION = 1008
INTERNAL_ERROR = 1011

MAX_CLOSE_REASON_BYTES = 123

# Query parameters sent as JSON-encoded arrays
ARRAY_PARAMS = ("symbols", "keywords", "subscriptions")


def _decode_array(value: str) -> list[Any]:
    """JSON-decode an array parameter; anything else becomes a single-element list"""
    try:
        decoded = json.loads(value)
    except ValueError:
        return [value]
    if isinstance(decoded, list):
        return decoded
    if isinstance(decoded, dict):
        return [decoded]
    return [value]


def parse_query_params(query_params: Mapping[str, str]) -> dict[str, Any]:
    """Relay query string -> stream factory parameters"""
    params: dict[str, Any] = dict(query_params.items())
    for name in ARRAY_PARAMS:
        if name in params:
            params[name] = _decode_array(params[name])
    return params


def _close_reason(reason: str) -> str:
    return reason.encode()[:MAX_CLOSE_REASON_BYTES].decode(errors="ignore")


def _frame_data(message: Mapping[str, Any]) -> str | bytes | None:
    data = message.get("text")
    return message.get("bytes") if data is None else data


class RelayState(str, Enum):
    AWAITING_UPSTREAM = "awaiting_upstream"
    PIPING = "piping"
    CLOSED = "closed"


class RelaySession:
    """One client channel paired with one upstream connection handle"""

    def __init__(
        self,
        tool: str,
        websocket: WebSocket,
        factory: StreamFactory | None,
        handshake_timeout: float | None = None,
    ) -> None:
        self.tool = tool
        self.websocket = websocket
        self.factory = factory
        self.handshake_timeout = handshake_timeout
        self.state = RelayState.AWAITING_UPSTREAM
        self.handle: ConnectionHandle | None = None
        self.early_frames: list[str | bytes] = []

    async def run(self, params: dict[str, Any]) -> None:
        if self.factory is None:
            logger.warning(f"Rejected connection for unknown tool: {self.tool}")
            await self._fail(f"Unknown tool: {self.tool}", POLICY_VIOLATION, "Unknown tool")
            return

        connect = asyncio.create_task(self.factory(params), name=f"{self.tool}-upstream-connect")
        watch = asyncio.create_task(self._watch_client(), name=f"{self.tool}-client-watch")
        try:
            done, _ = await asyncio.wait(
                {connect, watch}, timeout=self.handshake_timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            watch.cancel()
            await self._abandon(connect)
            raise
        watch.cancel()
        await asyncio.wait({watch})

        if watch in done:
            self.state = RelayState.CLOSED
            if watch.exception() is not None:
                logger.error(f"Lost client channel for {self.tool}: {watch.exception()}")
            await self._abandon(connect)
            logger.info(f"Client left {self.tool} before the upstream handshake completed")
            return

        if not done:
            logger.error(f"Timed out after {self.handshake_timeout}s waiting for {self.tool} upstream")
            await self._abandon(connect)
            await self._fail(f"Error executing tool {self.tool}: upstream handshake timed out", INTERNAL_ERROR)
            return

        try:
            self.handle = connect.result()
        except Exception as e:  # noqa: BLE001
            logger.error(f"Error executing tool {self.tool}: {e}")
            await self._fail(f"Error executing tool {self.tool}: {e}", INTERNAL_ERROR)
            return

        logger.info(f"Relay for {self.tool} established")
        await self._pipe(self.handle)

    async def _watch_client(self) -> None:
        """Wait for the client to disconnect; frames sent meanwhile are held for the upstream"""
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"Client disconnected from {self.tool} (code: {message.get('code')})")
                return
            data = _frame_data(message)
            if data is not None:
                self.early_frames.append(data)

    async def _abandon(self, connect: "asyncio.Task[ConnectionHandle]") -> None:
        """Cancel a pending upstream connect; a cancelled connect() stops its own client"""
        connect.cancel()
        await asyncio.wait({connect})
        if connect.cancelled() or connect.exception() is not None:
            return
        await connect.result().close()

    async def _pipe(self, handle: ConnectionHandle) -> None:
        self.state = RelayState.PIPING
        upstream = asyncio.create_task(self._pump_upstream(handle), name=f"{self.tool}-upstream-pump")
        client = asyncio.create_task(self._pump_client(handle), name=f"{self.tool}-client-pump")
        try:
            done, _ = await asyncio.wait({upstream, client}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logger.error(f"Relay for {self.tool} stopped: {task.exception()}")
        finally:
            # Synchronous part first: the session may already be cancelled
            self.state = RelayState.CLOSED
            upstream.cancel()
            client.cancel()
            await handle.close()
            await self._close_client(NORMAL_CLOSURE, f"Relay for {self.tool} closed.")
            logger.info(f"Relay for {self.tool} closed")

    async def _pump_upstream(self, handle: ConnectionHandle) -> None:
        """Upstream events -> client, in arrival order"""
        async for event in handle.events():
            if event.kind == "message":
                if isinstance(event.data, bytes):
                    await self.websocket.send_bytes(event.data)
                else:
                    await self.websocket.send_text(event.data or "")
            elif event.kind == "error":
                await self._send_error(f"Upstream stream error for {self.tool}")
            elif event.kind == "close":
                code = INTERNAL_ERROR if event.failed else NORMAL_CLOSURE
                await self._close_client(code, event.reason or f"Upstream stream for {self.tool} closed.")
                return

    async def _pump_client(self, handle: ConnectionHandle) -> None:
        """Client frames -> upstream, until the client disconnects"""
        for data in self.early_frames:
            await handle.send(data)
        self.early_frames.clear()
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(f"Client disconnected from {self.tool} (code: {message.get('code')})")
                return
            data = _frame_data(message)
            if data is not None:
                await handle.send(data)

    def _connected(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def _send_error(self, message: str) -> None:
        if self._connected():
            await self.websocket.send_json({"error": message})

    async def _close_client(self, code: int, reason: str = "") -> None:
        if self._connected():
            await self.websocket.close(code=code, reason=_close_reason(reason))

    async def _fail(self, message: str, code: int, reason: str = "") -> None:
        self.state = RelayState.CLOSED
        await self._send_error(message)
        await self._close_client(code, reason)


# Starlette endpoint handlers

async def handle_health(_request: Request) -> JSONResponse:
    """Health check endpoint"""
    return JSONResponse({"status": "ok"})


async def handle_stream(websocket: WebSocket) -> None:
    tool = websocket.path_params["tool"]
    client_addr = websocket.client.host if websocket.client else "unknown"
    logger.info(f"New relay connection from {client_addr} for {tool}")

    await websocket.accept()
    state = websocket.app.state
    session = RelaySession(
        tool,
        websocket,
        state.stream_factories.get(tool),
        handshake_timeout=state.settings.handshake_timeout,
    )
    await session.run(parse_query_params(websocket.query_params))


def create_app(
    settings: Settings | None = None,
    factories: dict[str, StreamFactory] | None = None,
) -> Starlette:
    """Relay application; factories default to the registered stream kinds"""
    settings = settings or Settings()
    app = Starlette(
        routes=[
            Route("/health", endpoint=handle_health, methods=["GET"]),
            WebSocketRoute("/{tool}", endpoint=handle_stream),
        ]
    )
    app.state.settings = settings
    app.state.stream_factories = factories if factories is not None else stream_factories(settings)
    return app


async def resolve_websocket_key(settings: Settings) -> Settings:
    """Fill in the default streaming key from the key service when only the REST key is set"""
    if settings.websocket_key or not settings.api_key:
        return settings
    try:
        key = await InsightSentryClient(settings).get_websocket_key()
    except WebSocketKeyError as e:
        logger.warning(f"No default streaming key, clients must pass websocketKey: {e}")
        return settings
    return dataclasses.replace(settings, websocket_key=key)


def main() -> None:
    load_dotenv()
    setup_async_logging()
    try:
        settings = asyncio.run(resolve_websocket_key(Settings.from_env()))
        logger.info(f"Streaming relay listening on {settings.host}:{settings.streaming_port}")
        uvicorn.run(
            create_app(settings),
            host=settings.host,
            port=settings.streaming_port,
            log_config=None,
        )
    finally:
        shutdown_async_logging()


if __name__ == "__main__":
    main()
