"""
Upstream stream client.

Maintains one logical subscription to a streaming provider across however
many physical reconnects it takes:

    Idle -> Connecting -> Open -> Reconnecting -> Connecting -> Open ... -> Closed

- connect() opens the first transport, sends the auth + subscribe frames and
  returns a ConnectionHandle once they are sent (no provider ack is awaited).
- Inbound frames update the liveness clock. "pong" and provider heartbeats
  are liveness only; unparseable frames are logged and dropped; timestamped
  frames older than the staleness threshold are discarded. Everything else is
  queued verbatim for the consumer (handle.events()), up to max_pending_events
  undelivered messages; past that, new messages are dropped with a warning.
  Error and close events are always queued.
- A transport close or failure schedules a reconnect after a capped
  exponential backoff, replaying the same descriptor. close() is the only way
  to stop reconnecting; it also cancels the ping and gap-check timers.

Only malformed input raises (ValueError, before any transport exists).
Network failures are retried indefinitely.
"""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from insightsentry_tools.streaming.backoff import ReconnectBackoff

logger = logging.getLogger(__name__)

STALE_MESSAGE_THRESHOLD = 10.0  # seconds
DEFAULT_GAP_THRESHOLD = 30.0  # seconds
DEFAULT_GAP_CHECK_INTERVAL = 5.0  # seconds
PING_INTERVAL = 20.0  # seconds

# Undelivered messages held for a slow consumer; newer frames are dropped beyond this
MAX_PENDING_EVENTS = 1000
DROP_LOG_EVERY = 100

PING_PAYLOAD = "ping"
PONG_PAYLOADS = ("pong", b"pong")
HEARTBEAT_FIELD = "server_time"

# First numeric field found is the message time; values above the cutoff are epoch ms
TIMESTAMP_FIELDS = ("timestamp", "last_update", "lp_time")
MILLISECONDS_CUTOFF = 1e12

ABNORMAL_CLOSURE = 1006


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class StreamClosedError(RuntimeError):
    """The client was stopped before its first handshake completed"""


@dataclass(frozen=True)
class StreamEvent:
    """One item of the consumer-facing event stream"""

    kind: str  # "message" | "error" | "close"
    data: str | bytes | None = None
    code: int | None = None
    reason: str = ""
    failed: bool = False


class Transport(Protocol):
    """The slice of a websockets client connection this module relies on"""

    close_code: int | None
    close_reason: str | None

    async def send(self, message: str | bytes) -> None: ...

    async def close(self) -> None: ...

    def __aiter__(self) -> AsyncIterator[str | bytes]: ...


class Subscription(Protocol):
    def handshake(self, api_key: str) -> list[str]: ...


Connector = Callable[[str], Awaitable[Transport]]
Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


async def default_connector(url: str) -> Transport:
    return await websocket_connect(url)


def message_timestamp(payload: dict[str, Any]) -> float | None:
    """Epoch seconds carried by a message, or None when it has no usable timestamp"""
    for name in TIMESTAMP_FIELDS:
        value = payload.get(name)
        if isinstance(value, bool) or not isinstance(value, int | float):
            continue
        if not value:
            # 0 means unstamped, not epoch
            continue
        return value / 1000 if value > MILLISECONDS_CUTOFF else float(value)
    return None


class UpstreamStreamClient:
    """Reconnecting client for one (stream kind, subscription) pair"""

    def __init__(
        self,
        name: str,
        url: str,
        subscription: Subscription,
        api_key: str,
        *,
        gap_threshold: float = DEFAULT_GAP_THRESHOLD,
        gap_check_interval: float = DEFAULT_GAP_CHECK_INTERVAL,
        ping_interval: float = PING_INTERVAL,
        stale_threshold: float = STALE_MESSAGE_THRESHOLD,
        max_pending_events: int = MAX_PENDING_EVENTS,
        backoff: ReconnectBackoff | None = None,
        connector: Connector | None = None,
        clock: Clock | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        if not api_key:
            msg = f"{name}() requires 'websocketKey' parameter"
            raise ValueError(msg)
        if subscription is None:
            msg = f"{name}() requires a subscription descriptor"
            raise ValueError(msg)
        if not url:
            msg = f"{name}() requires a stream URL"
            raise ValueError(msg)

        self.name = name
        self.url = url
        self.subscription = subscription
        self.api_key = api_key
        self.gap_threshold = gap_threshold
        self.gap_check_interval = gap_check_interval
        self.ping_interval = ping_interval
        self.stale_threshold = stale_threshold
        self.max_pending_events = max_pending_events
        self.backoff = backoff or ReconnectBackoff()

        self._connector = connector or default_connector
        self._clock = clock or time.time
        self._sleep = sleep or asyncio.sleep

        self.state = ConnectionState.IDLE
        self.last_message_at: float | None = None
        self.connect_count = 0
        self.stale_discarded = 0
        self.dropped_events = 0

        self.handle = ConnectionHandle(self)
        self._stopped = False
        self._transport: Transport | None = None
        self._events: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
        self._opened: asyncio.Future[ConnectionHandle] | None = None
        self._run_task: asyncio.Task[None] | None = None
        self._timers: list[asyncio.Task[None]] = []

    # Lifecycle

    async def connect(self) -> "ConnectionHandle":
        """Start the connect loop and return the handle once the first handshake is sent"""
        if self.state is not ConnectionState.IDLE:
            msg = f"{self.name} client already started ({self.state.value})"
            raise RuntimeError(msg)

        self._opened = asyncio.get_running_loop().create_future()
        self.state = ConnectionState.CONNECTING
        self._run_task = asyncio.create_task(self._run(), name=f"{self.name}-upstream")
        try:
            await self._opened
        except asyncio.CancelledError:
            await self.close()
            raise
        return self.handle

    async def close(self) -> None:
        """Stop reconnecting, cancel timers and close the transport (idempotent)"""
        if self._stopped:
            return
        self._stopped = True
        self._stop_timers()

        transport, self._transport = self._transport, None
        task = self._run_task
        if task is not None and not task.done():
            task.cancel()

        if transport is not None:
            try:
                await transport.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"[{self.name}] Error while closing upstream: {e}")

        if task is None:
            self._finish()
        elif not task.done():
            await asyncio.wait({task})
        logger.info(f"[{self.name}] Upstream client stopped")

    async def send(self, data: str | bytes) -> bool:
        """Forward a client frame upstream; dropped unless the connection is open"""
        transport = self._transport
        if self.state is not ConnectionState.OPEN or transport is None:
            logger.debug(f"[{self.name}] Dropping client frame while {self.state.value}")
            return False
        try:
            await transport.send(data)
        except ConnectionClosed:
            logger.debug(f"[{self.name}] Upstream closed while forwarding client frame")
            return False
        return True

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Consumer-facing event stream; ends when the client is closed"""
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    # Connect loop

    async def _run(self) -> None:
        try:
            while not self._stopped:
                self.state = ConnectionState.CONNECTING
                try:
                    transport = await self._connector(self.url)
                except (OSError, WebSocketException, asyncio.TimeoutError) as e:
                    logger.warning(f"[{self.name}] Connection attempt to {self.url} failed: {e}")
                    await self._wait_before_reconnect()
                    continue

                self._transport = transport
                try:
                    await self._open(transport)
                except (ConnectionClosed, OSError) as e:
                    logger.warning(f"[{self.name}] Handshake failed: {e}")
                    self._stop_timers()
                    self._transport = None
                    await self._wait_before_reconnect()
                    continue

                code, reason, failed = await self._receive(transport)
                self._stop_timers()
                self._transport = None
                if self._stopped:
                    break
                self._report_close(code, reason, failed)
                await self._wait_before_reconnect()
        finally:
            self._finish()

    async def _open(self, transport: Transport) -> None:
        logger.info(f"[{self.name}] Connection established to {self.url}. Authenticating...")
        for frame in self.subscription.handshake(self.api_key):
            await transport.send(frame)

        self.backoff.reset()
        self.state = ConnectionState.OPEN
        self.connect_count += 1
        self.last_message_at = self._clock()
        self._start_timers(transport)
        logger.info(f"[{self.name}] Authentication and subscription sent (connect #{self.connect_count})")

        if self._opened is not None and not self._opened.done():
            self._opened.set_result(self.handle)

    async def _receive(self, transport: Transport) -> tuple[int | None, str, bool]:
        """Ingest frames until the transport closes; returns (code, reason, failed)"""
        try:
            async for raw in transport:
                self._ingest(raw)
        except ConnectionClosed as e:
            frame = e.rcvd or e.sent
            if frame is None:
                return ABNORMAL_CLOSURE, str(e), True
            return frame.code, frame.reason, True
        except OSError as e:
            return ABNORMAL_CLOSURE, str(e), True
        return transport.close_code, transport.close_reason or "", False

    async def _wait_before_reconnect(self) -> None:
        self.state = ConnectionState.RECONNECTING
        delay = self.backoff.next_delay()
        logger.info(f"[{self.name}] Reconnecting in {delay:g}s (attempt {self.backoff.attempts})...")
        await self._sleep(delay)

    def _report_close(self, code: int | None, reason: str, failed: bool) -> None:
        if failed:
            logger.warning(f"[{self.name}] Upstream connection failed (code: {code}, reason: {reason})")
            self._events.put_nowait(StreamEvent("error", code=code, reason=reason, failed=True))
        else:
            logger.info(f"[{self.name}] Upstream connection closed (code: {code}, reason: {reason})")
        self._events.put_nowait(StreamEvent("close", code=code, reason=reason, failed=failed))

    def _finish(self) -> None:
        self._stop_timers()
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        if self._opened is not None and not self._opened.done():
            self._opened.set_exception(
                StreamClosedError(f"{self.name} stopped before the handshake completed")
            )
        self._events.put_nowait(None)

    # Inbound frames

    def _ingest(self, raw: str | bytes) -> None:
        now = self._clock()
        self.last_message_at = now

        if raw in PONG_PAYLOADS:
            logger.debug(f"[{self.name}] Received pong")
            return

        try:
            payload = json.loads(raw)
        except ValueError:
            logger.info(f"[{self.name}] Non-JSON message dropped: {raw!r:.200}")
            return

        if isinstance(payload, dict):
            if payload.get(HEARTBEAT_FIELD):
                logger.debug(f"[{self.name}] Provider heartbeat")
                return
            sent_at = message_timestamp(payload)
            if sent_at is not None and now - sent_at > self.stale_threshold:
                self.stale_discarded += 1
                logger.warning(f"[{self.name}] Stale data received (age: {now - sent_at:.1f}s), discarding")
                return

        if self._events.qsize() >= self.max_pending_events:
            self.dropped_events += 1
            if self.dropped_events % DROP_LOG_EVERY == 1:
                logger.warning(
                    f"[{self.name}] Consumer is behind ({self.max_pending_events} messages pending), "
                    f"dropping new messages ({self.dropped_events} dropped so far)"
                )
            return

        self._events.put_nowait(StreamEvent("message", data=raw))

    # Timers

    def _start_timers(self, transport: Transport) -> None:
        self._stop_timers()
        self._timers = [
            asyncio.create_task(self._ping_loop(transport), name=f"{self.name}-ping"),
            asyncio.create_task(self._gap_loop(), name=f"{self.name}-gap-check"),
        ]

    def _stop_timers(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers = []

    async def _ping_loop(self, transport: Transport) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            if self.state is not ConnectionState.OPEN:
                continue
            try:
                await transport.send(PING_PAYLOAD)
            except ConnectionClosed:
                return

    async def _gap_loop(self) -> None:
        while True:
            await asyncio.sleep(self.gap_check_interval)
            self.check_gap()

    def check_gap(self) -> bool:
        """Log a warning when the upstream has been silent longer than the gap threshold"""
        if self.state is not ConnectionState.OPEN or self.last_message_at is None:
            return False
        silence = self._clock() - self.last_message_at
        if silence <= self.gap_threshold:
            return False
        logger.warning(
            f"[{self.name}] No data received for {silence:.0f}s "
            f"(threshold {self.gap_threshold:.0f}s). Possible data gap."
        )
        return True


class ConnectionHandle:
    """Consumer-facing view of an upstream subscription"""

    def __init__(self, client: UpstreamStreamClient) -> None:
        self._client = client

    @property
    def name(self) -> str:
        return self._client.name

    @property
    def state(self) -> ConnectionState:
        return self._client.state

    @property
    def last_message_at(self) -> float | None:
        return self._client.last_message_at

    @property
    def reconnect_delay(self) -> float:
        """Delay the next reconnect attempt would wait"""
        return self._client.backoff.current

    @property
    def subscription(self) -> Subscription:
        return self._client.subscription

    def events(self) -> AsyncIterator[StreamEvent]:
        return self._client.events()

    async def send(self, data: str | bytes) -> bool:
        return await self._client.send(data)

    async def close(self) -> None:
        await self._client.close()
