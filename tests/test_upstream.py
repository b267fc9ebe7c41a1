#!/usr/bin/env python3
"""Test the reconnecting upstream stream client."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import pytest

# Add project root and tests dir to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import BlockingConnector, FakeConnector, FakeUpstream, RecordingSleep, wait_until

from insightsentry_tools.config import Settings
from insightsentry_tools.streaming.kinds import (
    connect_news_feed,
    connect_real_time_data_stream,
)
from insightsentry_tools.streaming.subscriptions import NewsFeedSubscription
from insightsentry_tools.streaming.upstream import (
    ConnectionState,
    UpstreamStreamClient,
    message_timestamp,
)

NOW = 1_700_000_000.0
SETTINGS = Settings(websocket_key="test-key")


def compact(payload: dict) -> str:
    return json.dumps(payload, separators=(",", ":"))


def news_client(connector, sleep, clock=lambda: NOW, **options) -> UpstreamStreamClient:
    return UpstreamStreamClient(
        "connect_news_feed",
        "wss://news.example/feed",
        NewsFeedSubscription(symbols=("AAPL",)),
        "test-key",
        gap_threshold=30.0,
        gap_check_interval=5.0,
        connector=connector,
        clock=clock,
        sleep=sleep,
        **options,
    )


async def next_event(handle):
    return await asyncio.wait_for(handle.events().__anext__(), timeout=1.0)


def test_message_timestamp_units():
    """Test timestamp extraction: seconds, milliseconds and field precedence"""
    assert message_timestamp({"timestamp": NOW}) == NOW
    assert message_timestamp({"timestamp": NOW * 1000}) == NOW
    assert message_timestamp({"lp_time": 1_700_000_000}) == NOW
    assert message_timestamp({"last_update": NOW, "lp_time": 1.0}) == NOW
    assert message_timestamp({"timestamp": True, "lp_time": NOW}) == NOW
    assert message_timestamp({"timestamp": 0}) is None
    assert message_timestamp({"timestamp": 0, "lp_time": NOW}) == NOW
    assert message_timestamp({"timestamp": "2024-01-01"}) is None
    assert message_timestamp({"title": "X"}) is None
    print("✓ Timestamp extraction works")


@pytest.mark.asyncio
async def test_connect_sends_auth_then_filters():
    """Test connect() resolves once auth + subscribe frames are sent"""
    upstream = FakeUpstream()
    connector = FakeConnector(upstream)
    handle = await connect_news_feed(
        {"websocketKey": "abc", "symbols": ["AAPL"], "keywords": ["earnings"]},
        SETTINGS,
        connector=connector,
        sleep=RecordingSleep(),
    )

    assert connector.urls == [SETTINGS.news_ws_url]
    assert upstream.sent == [
        compact({"api_key": "abc"}),
        compact({"type": "filter_symbols", "symbols": ["AAPL"]}),
        compact({"type": "filter_keywords", "keywords": ["earnings"]}),
    ]
    assert handle.state is ConnectionState.OPEN
    assert handle.reconnect_delay == 2.0

    await handle.close()
    assert upstream.closed
    assert handle.state is ConnectionState.CLOSED
    print("✓ Handshake sent in order")


@pytest.mark.asyncio
async def test_settings_key_used_when_param_missing():
    """Test the configured streaming key is the fallback credential"""
    upstream = FakeUpstream()
    handle = await connect_news_feed({}, SETTINGS, connector=FakeConnector(upstream), sleep=RecordingSleep())
    assert upstream.sent == [compact({"api_key": "test-key"})]
    await handle.close()


@pytest.mark.asyncio
async def test_missing_credentials_rejected_before_transport():
    """Test malformed input fails before any connection attempt"""
    connector = FakeConnector(FakeUpstream())

    with pytest.raises(ValueError, match="requires 'websocketKey' parameter"):
        await connect_news_feed({}, Settings(), connector=connector)

    with pytest.raises(ValueError, match="requires 'subscriptions' parameter"):
        await connect_real_time_data_stream({"websocketKey": "k"}, Settings(), connector=connector)

    with pytest.raises(ValueError, match="type"):
        await connect_real_time_data_stream(
            {"websocketKey": "k", "subscriptions": [{"code": "NASDAQ:AAPL", "type": "ticks"}]},
            Settings(),
            connector=connector,
        )

    assert connector.urls == []
    print("✓ Caller errors rejected without a transport")


@pytest.mark.asyncio
async def test_inbound_filtering():
    """Test pong, heartbeats, junk and stale frames are dropped; fresh data is forwarded"""
    fresh = json.dumps({"title": "X", "timestamp": NOW - 1})
    upstream = FakeUpstream([
        "pong",
        "not json",
        json.dumps({"server_time": NOW}),
        json.dumps({"title": "old", "timestamp": (NOW - 60) * 1000}),
        fresh,
    ])
    client = news_client(FakeConnector(upstream), RecordingSleep())
    handle = await client.connect()

    event = await next_event(handle)
    assert event.kind == "message"
    assert event.data == fresh
    assert client.stale_discarded == 1
    assert handle.last_message_at == NOW

    await handle.close()
    print("✓ Inbound filtering works")


@pytest.mark.asyncio
async def test_unstamped_frames_are_forwarded():
    """Test a zero timestamp means "no timestamp" rather than a frame from 1970"""
    unstamped = json.dumps({"title": "X", "timestamp": 0})
    client = news_client(FakeConnector(FakeUpstream([unstamped])), RecordingSleep())
    handle = await client.connect()

    event = await next_event(handle)
    assert event.data == unstamped
    assert client.stale_discarded == 0

    await handle.close()


@pytest.mark.asyncio
async def test_slow_consumer_backlog_is_bounded(caplog):
    """Test messages past the pending limit are dropped with a warning, oldest kept"""
    frames = [json.dumps({"seq": seq, "timestamp": NOW}) for seq in range(1, 6)]
    upstream = FakeUpstream(frames)
    upstream.finish(1000, "done")
    client = news_client(FakeConnector(upstream), RecordingSleep(), max_pending_events=2)

    with caplog.at_level(logging.WARNING):
        handle = await client.connect()
        await wait_until(lambda: client.dropped_events == 3)
    assert "Consumer is behind" in caplog.text

    first = await next_event(handle)
    second = await next_event(handle)
    close = await next_event(handle)
    assert [json.loads(first.data)["seq"], json.loads(second.data)["seq"]] == [1, 2]
    assert close.kind == "close"

    await handle.close()
    print("✓ Backlog bounded")


@pytest.mark.asyncio
async def test_failure_reports_error_then_close_and_schedules_reconnect():
    """Test an upstream failure surfaces error + close and waits the initial delay"""
    upstream = FakeUpstream()
    upstream.drop()
    sleep = RecordingSleep()
    client = news_client(FakeConnector(upstream), sleep)
    handle = await client.connect()

    error = await next_event(handle)
    close = await next_event(handle)
    assert error.kind == "error"
    assert close.kind == "close"
    assert close.failed
    assert close.code == 1006

    assert sleep.delays == [2.0]
    assert handle.state is ConnectionState.RECONNECTING
    assert handle.reconnect_delay == 4.0

    await handle.close()
    assert handle.state is ConnectionState.CLOSED
    print("✓ Failure schedules reconnect at initial delay")


@pytest.mark.asyncio
async def test_clean_close_is_not_an_error():
    """Test a clean upstream close emits only a close event"""
    upstream = FakeUpstream()
    upstream.finish(1000, "bye")
    client = news_client(FakeConnector(upstream), RecordingSleep())
    handle = await client.connect()

    event = await next_event(handle)
    assert event.kind == "close"
    assert not event.failed
    assert event.code == 1000
    assert event.reason == "bye"
    await handle.close()


@pytest.mark.asyncio
async def test_backoff_doubles_then_resets_after_success():
    """Test failed attempts double the delay and a successful connect resets it"""
    first = FakeUpstream()
    first.drop()
    second = FakeUpstream()
    connector = FakeConnector(OSError("refused"), OSError("refused"), first, second)
    sleep = RecordingSleep(instant=True)
    client = news_client(connector, sleep)

    handle = await client.connect()
    await wait_until(lambda: len(second.sent) == 2)

    assert sleep.delays == [2.0, 4.0, 2.0]
    assert second.sent == first.sent
    assert handle.state is ConnectionState.OPEN
    assert handle.reconnect_delay == 2.0
    assert client.connect_count == 2

    await handle.close()
    print("✓ Backoff doubles and resets")


@pytest.mark.asyncio
async def test_market_subscriptions_replayed_after_reconnect():
    """Test both subscriptions are replayed in the same order with the same fields"""
    first = FakeUpstream()
    first.drop()
    second = FakeUpstream()
    subscriptions = [
        {"code": "NASDAQ:AAPL", "type": "series", "bar_type": "minute", "bar_interval": 1},
        {"code": "NYSE:F", "type": "quote"},
    ]
    handle = await connect_real_time_data_stream(
        {"websocketKey": "k", "subscriptions": subscriptions},
        SETTINGS,
        connector=FakeConnector(first, second),
        sleep=RecordingSleep(instant=True),
    )
    await wait_until(lambda: len(second.sent) == 2)

    assert second.sent == first.sent
    auth, subscribe = (json.loads(frame) for frame in second.sent)
    assert auth == {"type": "auth", "api_key": "k"}
    assert subscribe == {"api_key": "k", "subscriptions": subscriptions}

    await handle.close()
    print("✓ Subscriptions replayed identically")


@pytest.mark.asyncio
async def test_gap_detection_logs_only(caplog):
    """Test gap detection warns after the threshold without reconnecting"""
    now = [NOW]
    upstream = FakeUpstream()
    connector = FakeConnector(upstream)
    client = news_client(connector, RecordingSleep(), clock=lambda: now[0])
    handle = await client.connect()

    now[0] = NOW + 20
    assert client.check_gap() is False

    now[0] = NOW + 31
    with caplog.at_level(logging.WARNING):
        assert client.check_gap() is True
    assert "Possible data gap" in caplog.text
    assert handle.state is ConnectionState.OPEN
    assert connector.urls == ["wss://news.example/feed"]

    await handle.close()


@pytest.mark.asyncio
async def test_send_forwards_only_while_open():
    """Test client frames reach the upstream only while the connection is open"""
    upstream = FakeUpstream()
    client = news_client(FakeConnector(upstream), RecordingSleep())
    handle = await client.connect()

    assert await handle.send("hello") is True
    await handle.close()
    assert await handle.send("late") is False
    assert upstream.sent[-1] == "hello"


@pytest.mark.asyncio
async def test_close_is_idempotent_and_final():
    """Test repeated close and reuse after close"""
    client = news_client(FakeConnector(FakeUpstream()), RecordingSleep())
    handle = await client.connect()

    await handle.close()
    await handle.close()
    assert handle.state is ConnectionState.CLOSED

    with pytest.raises(RuntimeError, match="already started"):
        await client.connect()


@pytest.mark.asyncio
async def test_cancelled_connect_stops_client():
    """Test a timed-out connect leaves nothing running"""
    connector = BlockingConnector()
    client = news_client(connector, RecordingSleep())

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(client.connect(), timeout=0.05)

    assert connector.urls == ["wss://news.example/feed"]
    assert client.state is ConnectionState.CLOSED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
