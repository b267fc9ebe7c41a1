"""
Stream kinds and their upstream factories.

The relay only knows the registry below: a kind name maps to the upstream
URL, the gap-detection timings and the parser that turns relay parameters
into a subscription descriptor. Factories validate everything before a
transport is created, so caller errors surface as ValueError immediately.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from insightsentry_tools.config import Settings
from insightsentry_tools.streaming.subscriptions import (
    MarketDataSubscription,
    NewsFeedSubscription,
)
from insightsentry_tools.streaming.upstream import (
    PING_INTERVAL,
    Clock,
    ConnectionHandle,
    Connector,
    Sleep,
    Subscription,
    UpstreamStreamClient,
)

StreamFactory = Callable[[Mapping[str, Any]], Awaitable[ConnectionHandle]]


@dataclass(frozen=True)
class StreamKind:
    name: str
    description: str
    url: Callable[[Settings], str]
    parse: Callable[[Mapping[str, Any]], Subscription]
    gap_threshold: float
    gap_check_interval: float
    ping_interval: float = PING_INTERVAL
    parameters: dict[str, Any] = field(default_factory=dict)


NEWS_FEED = StreamKind(
    name="connect_news_feed",
    description=(
        "Live news feed. Optional symbol and keyword filters are applied by the provider. "
        "Each forwarded message is one news item."
    ),
    url=lambda settings: settings.news_ws_url,
    parse=NewsFeedSubscription.from_params,
    gap_threshold=30.0,
    gap_check_interval=5.0,
    parameters={
        "websocketKey": {"type": "string", "description": "Streaming API key"},
        "symbols": {"type": "array", "items": {"type": "string"}, "description": "Symbols to filter on"},
        "keywords": {"type": "array", "items": {"type": "string"}, "description": "Keywords to filter on"},
    },
)

MARKET_DATA = StreamKind(
    name="connect_real_time_data_stream",
    description=(
        "Live quotes and bars. Each subscription is {code, type: series|quote, "
        "bar_type?, bar_interval?, dadj?, recent_bars?}."
    ),
    url=lambda settings: settings.ws_url,
    parse=MarketDataSubscription.from_params,
    gap_threshold=15.0,
    gap_check_interval=2.0,
    parameters={
        "websocketKey": {"type": "string", "description": "Streaming API key"},
        "subscriptions": {
            "type": "array",
            "items": {"type": "object"},
            "description": "Instrument subscriptions, replayed in order on every reconnect",
        },
    },
)

STREAM_KINDS: dict[str, StreamKind] = {kind.name: kind for kind in (NEWS_FEED, MARKET_DATA)}


def build_client(
    kind: StreamKind,
    params: Mapping[str, Any],
    settings: Settings,
    *,
    connector: Connector | None = None,
    clock: Clock | None = None,
    sleep: Sleep | None = None,
) -> UpstreamStreamClient:
    """Validate parameters and build an idle client; raises ValueError on bad input"""
    api_key = params.get("websocketKey") or settings.websocket_key
    if not api_key:
        msg = f"{kind.name}() requires 'websocketKey' parameter"
        raise ValueError(msg)

    return UpstreamStreamClient(
        kind.name,
        kind.url(settings),
        kind.parse(params),
        api_key,
        gap_threshold=kind.gap_threshold,
        gap_check_interval=kind.gap_check_interval,
        ping_interval=kind.ping_interval,
        connector=connector,
        clock=clock,
        sleep=sleep,
    )


async def open_stream(
    kind: StreamKind,
    params: Mapping[str, Any],
    settings: Settings,
    **overrides: Any,  # noqa: ANN401
) -> ConnectionHandle:
    client = build_client(kind, params, settings, **overrides)
    return await client.connect()


async def connect_news_feed(
    params: Mapping[str, Any], settings: Settings, **overrides: Any  # noqa: ANN401
) -> ConnectionHandle:
    return await open_stream(NEWS_FEED, params, settings, **overrides)


async def connect_real_time_data_stream(
    params: Mapping[str, Any], settings: Settings, **overrides: Any  # noqa: ANN401
) -> ConnectionHandle:
    return await open_stream(MARKET_DATA, params, settings, **overrides)


def stream_factories(
    settings: Settings,
    *,
    connector: Connector | None = None,
    clock: Clock | None = None,
    sleep: Sleep | None = None,
) -> dict[str, StreamFactory]:
    """One factory per registered kind, bound to settings (and test seams)"""
    return {
        name: partial(open_stream, kind, settings=settings, connector=connector, clock=clock, sleep=sleep)
        for name, kind in STREAM_KINDS.items()
    }
