"""Scripted stand-ins for the upstream transport, connector and reconnect sleep."""

import asyncio
import time
from typing import Any

from starlette.websockets import WebSocketState
from websockets.exceptions import ConnectionClosedError

_CLOSE = object()
_FAIL = object()


class FakeUpstream:
    """Upstream connection that yields queued frames until closed or dropped"""

    def __init__(self, frames: list[Any] | None = None) -> None:
        self.sent: list[str | bytes] = []
        self.closed = False
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        for frame in frames or []:
            self.push(frame)

    def push(self, frame: str | bytes) -> None:
        self._inbox.put_nowait(frame)

    def drop(self) -> None:
        """Fail the connection once the queued frames are consumed"""
        self._inbox.put_nowait(_FAIL)

    def finish(self, code: int = 1000, reason: str = "") -> None:
        """Close the connection cleanly once the queued frames are consumed"""
        self.close_code = code
        self.close_reason = reason
        self._inbox.put_nowait(_CLOSE)

    async def send(self, message: str | bytes) -> None:
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True
        self.close_code = 1000
        self._inbox.put_nowait(_CLOSE)

    def __aiter__(self) -> Any:  # noqa: ANN401
        return self._frames()

    async def _frames(self) -> Any:  # noqa: ANN401
        while True:
            item = await self._inbox.get()
            if item is _CLOSE:
                return
            if item is _FAIL:
                raise ConnectionClosedError(None, None)
            yield item


class FakeConnector:
    """Hands out scripted upstreams in order; exceptions in the script are raised"""

    def __init__(self, *script: Any) -> None:
        self.script = list(script)
        self.urls: list[str] = []

    async def __call__(self, url: str) -> FakeUpstream:
        self.urls.append(url)
        if not self.script:
            msg = "connection refused"
            raise OSError(msg)
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class BlockingConnector:
    """Connector whose connection attempt never completes"""

    def __init__(self) -> None:
        self.urls: list[str] = []

    async def __call__(self, url: str) -> FakeUpstream:
        self.urls.append(url)
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


class DepartingClient:
    """Relay-side client channel that disconnects after a short delay; records outbound traffic"""

    def __init__(self, delay: float = 0.01) -> None:
        self.delay = delay
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[Any] = []
        self.close_code: int | None = None

    async def receive(self) -> dict[str, Any]:
        await asyncio.sleep(self.delay)
        self.client_state = WebSocketState.DISCONNECTED
        return {"type": "websocket.disconnect", "code": 1001}

    async def send_json(self, data: Any) -> None:  # noqa: ANN401
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED


class RecordingSleep:
    """Records reconnect delays; blocks forever unless instant=True"""

    def __init__(self, instant: bool = False) -> None:
        self.instant = instant
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.instant:
            await asyncio.sleep(0)
        else:
            await asyncio.Event().wait()


async def wait_until(predicate: Any, timeout: float = 1.0) -> None:  # noqa: ANN401
    """Yield to the loop until predicate() holds"""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


def wait_until_sync(predicate: Any, timeout: float = 1.0) -> None:  # noqa: ANN401
    """Thread-side variant for TestClient sessions (the app runs in a portal thread)"""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.001)
