#!/usr/bin/env python3
"""Test subscription descriptors and handshake frames."""

import json
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from insightsentry_tools.streaming.subscriptions import (
    MarketDataSubscription,
    MarketSubscription,
    NewsFeedSubscription,
)


def test_news_handshake_without_filters():
    """Test only the auth frame is sent when no filters are given"""
    subscription = NewsFeedSubscription.from_params({})
    assert subscription.handshake("k") == ['{"api_key":"k"}']


def test_news_handshake_with_filters():
    """Test filter frames follow the auth frame, symbols before keywords"""
    subscription = NewsFeedSubscription.from_params({"symbols": ["AAPL", " "], "keywords": "fed"})
    assert subscription.symbols == ("AAPL",)
    assert subscription.keywords == ("fed",)
    assert subscription.handshake("k") == [
        '{"api_key":"k"}',
        '{"type":"filter_symbols","symbols":["AAPL"]}',
        '{"type":"filter_keywords","keywords":["fed"]}',
    ]
    print("✓ News handshake frames built")


def test_handshake_is_deterministic():
    """Test the same descriptor and key always give identical frames"""
    subscription = MarketDataSubscription.from_params({
        "subscriptions": [
            {"code": "NASDAQ:AAPL", "type": "series", "bar_type": "minute", "bar_interval": 1, "recent_bars": True},
            {"code": "NYSE:F", "type": "quote"},
        ]
    })
    assert subscription.handshake("k") == subscription.handshake("k")
    print("✓ Handshake deterministic")


def test_market_handshake_payloads():
    """Test auth then one subscribe frame with fields in order and unset fields omitted"""
    subscription = MarketDataSubscription.from_params({
        "subscriptions": [{"code": "NASDAQ:AAPL", "type": "series", "bar_type": "day", "dadj": False}]
    })
    auth, subscribe = subscription.handshake("k")
    assert json.loads(auth) == {"type": "auth", "api_key": "k"}
    assert subscribe == (
        '{"api_key":"k","subscriptions":[{"code":"NASDAQ:AAPL","type":"series","bar_type":"day","dadj":false}]}'
    )


def test_single_subscription_object_accepted():
    subscription = MarketDataSubscription.from_params({"subscriptions": {"code": "NYSE:F", "type": "quote"}})
    assert subscription.subscriptions == (MarketSubscription(code="NYSE:F", type="quote"),)


def test_invalid_subscriptions():
    """Test malformed descriptors are rejected"""
    with pytest.raises(ValueError, match="requires 'subscriptions' parameter"):
        MarketDataSubscription.from_params({"subscriptions": []})
    with pytest.raises(ValueError, match="code"):
        MarketDataSubscription.from_params({"subscriptions": [{"type": "quote"}]})
    with pytest.raises(ValueError, match="type"):
        MarketDataSubscription.from_params({"subscriptions": [{"code": "NYSE:F"}]})
    with pytest.raises(ValueError, match="must be an object"):
        MarketDataSubscription.from_params({"subscriptions": ["NYSE:F"]})
    with pytest.raises(ValueError, match="list of strings"):
        NewsFeedSubscription.from_params({"symbols": 42})
    print("✓ Invalid descriptors rejected")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
