#!/usr/bin/env python3
"""Test session and symbol-context tools."""

import sys
from pathlib import Path

import httpx
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from insightsentry_tools.client import InsightSentryClient
from insightsentry_tools.config import Settings
from insightsentry_tools.services.context import (
    exchange_of,
    fetch_orb_trading_context,
    fetch_supervisor_risk_assessment,
)
from insightsentry_tools.services.sessions import (
    get_execution_timing,
    get_market_status,
    get_trading_calendar,
)

SESSION = {
    "code": "NASDAQ:AAPL",
    "timezone": "America/New_York",
    "regular_session": "0930-1600",
    "extended_session": "0400-2000",
    "holidays": ["2024-12-25"],
}

INFO = {
    "code": "NASDAQ:AAPL",
    "point_value": 1,
    "minimum_movement": 0.01,
    "currency_code": "USD",
    "regular_close_price": 190.5,
    "prev_close_price": 188.0,
    "market_cap": 2.9e12,
    "average_volume": 55000000,
}


def make_client(payload, status=200) -> InsightSentryClient:
    transport = httpx.MockTransport(lambda request: httpx.Response(status, json=payload))
    return InsightSentryClient(Settings(api_key="k"), transport=transport)


def test_exchange_of():
    assert exchange_of("NASDAQ:AAPL") == "NASDAQ"
    assert exchange_of("AAPL") == "UNKNOWN"
    assert exchange_of(None) == "UNKNOWN"


@pytest.mark.asyncio
async def test_market_status_at_timestamp():
    """Test the status is stamped with the requested time in UTC"""
    result = await get_market_status(make_client(SESSION), "NASDAQ:AAPL", timestamp="2024-06-03T14:00:00Z")
    assert result["symbol"] == "NASDAQ:AAPL"
    assert result["timestamp"] == "2024-06-03T14:00:00.000Z"
    assert result["market_status"]["holidays"] == ["2024-12-25"]
    assert result["market_status"]["details"] == []
    print("✓ Market status works")


@pytest.mark.asyncio
async def test_trading_calendar_period():
    result = await get_trading_calendar(
        make_client(SESSION), "NASDAQ:AAPL", start_date="2024-06-03", end_date="2024-06-07"
    )
    assert result["period"] == {"start": "2024-06-03", "end": "2024-06-07"}


@pytest.mark.asyncio
async def test_execution_timing_omits_calendar():
    result = await get_execution_timing(make_client(SESSION), "NASDAQ:AAPL", strategy_type="momentum")
    assert result["strategy_type"] == "momentum"
    assert "holidays" not in result["execution_timing"]
    assert result["execution_timing"]["current_time"].endswith("Z")


@pytest.mark.asyncio
async def test_session_error():
    """Test a failed fetch gives the session error object"""
    result = await get_market_status(make_client({}, status=500), "NASDAQ:AAPL")
    assert result == {"error": "Failed to retrieve session data"}


@pytest.mark.asyncio
async def test_orb_context():
    result = await fetch_orb_trading_context(make_client(INFO), "NASDAQ:AAPL")
    context = result["orb_context"]
    assert context["exchange"] == "NASDAQ"
    assert context["current_price"] == 190.5
    assert context["min_movement"] == 0.01
    print("✓ ORB context works")


@pytest.mark.asyncio
async def test_symbol_context_error():
    """Test a document without a code gives the symbol error object"""
    result = await fetch_supervisor_risk_assessment(make_client({"name": "x"}), "NASDAQ:AAPL")
    assert result == {"error": "Failed to fetch symbol data"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
