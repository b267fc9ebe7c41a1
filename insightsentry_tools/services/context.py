"""
Symbol-info derived tools.

Each reshapes the /v2/symbols/{symbol}/info document into the context one
strategy needs (opening range breakout, PEAD timing, news sentiment,
supervisor risk).
"""

from datetime import datetime, timezone
from typing import Any

from insightsentry_tools.client import InsightSentryClient
from insightsentry_tools.services.symbols import get_symbol_info

SYMBOL_ERROR = {"error": "Failed to fetch symbol data"}


def exchange_of(code: str | None) -> str:
    """Exchange prefix of an exchange-qualified code ("NASDAQ:AAPL" -> "NASDAQ")"""
    if not code or ":" not in code:
        return "UNKNOWN"
    return code.split(":", 1)[0] or "UNKNOWN"


async def _fetch_info(client: InsightSentryClient, symbol: str) -> dict[str, Any] | None:
    raw = await get_symbol_info(client, symbol)
    if not isinstance(raw, dict) or not raw.get("code"):
        return None
    return raw


def _stamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def fetch_orb_trading_context(client: InsightSentryClient, symbol: str) -> dict[str, Any]:
    """Gap and volatility context for opening range breakout"""
    raw = await _fetch_info(client, symbol)
    if raw is None:
        return dict(SYMBOL_ERROR)

    return {
        "symbol": raw["code"],
        "last_update": _stamp(),
        "orb_context": {
            "exchange": exchange_of(raw["code"]),
            "point_value": raw.get("point_value"),
            "min_movement": raw.get("minimum_movement"),
            "currency": raw.get("currency_code"),
            "current_price": raw.get("regular_close_price"),
            "prev_close": raw.get("prev_close_price"),
            "avg_volume": raw.get("average_volume"),
            "market_cap": raw.get("market_cap"),
            "market_open": raw.get("open_time"),
            "market_close": raw.get("regular_close_time"),
            "all_time_high": raw.get("all_time_high"),
            "all_time_low": raw.get("all_time_low"),
        },
    }


async def fetch_pead_timing_context(client: InsightSentryClient, symbol: str) -> dict[str, Any]:
    """Earnings release dates for the post-earnings drift window"""
    raw = await _fetch_info(client, symbol)
    if raw is None:
        return dict(SYMBOL_ERROR)

    return {
        "symbol": raw["code"],
        "last_update": _stamp(),
        "pead_timing": {
            "next_earnings": raw.get("earnings_release_next_date"),
            "last_earnings": raw.get("earnings_release_date"),
            "market_cap": raw.get("market_cap"),
            "avg_volume": raw.get("average_volume"),
            "current_price": raw.get("regular_close_price"),
        },
    }


async def fetch_sentiment_news_context(client: InsightSentryClient, symbol: str) -> dict[str, Any]:
    raw = await _fetch_info(client, symbol)
    if raw is None:
        return dict(SYMBOL_ERROR)

    return {
        "symbol": raw["code"],
        "last_update": _stamp(),
        "sentiment_context": {
            "exchange": exchange_of(raw["code"]),
            "currency": raw.get("currency_code"),
            "market_cap": raw.get("market_cap"),
            "avg_volume": raw.get("average_volume"),
            "current_price": raw.get("regular_close_price"),
            "pe_ratio": raw.get("price_earnings_ttm"),
            "all_time_high": raw.get("all_time_high"),
            "all_time_low": raw.get("all_time_low"),
        },
    }


async def fetch_supervisor_risk_assessment(client: InsightSentryClient, symbol: str) -> dict[str, Any]:
    raw = await _fetch_info(client, symbol)
    if raw is None:
        return dict(SYMBOL_ERROR)

    return {
        "symbol": raw["code"],
        "last_update": _stamp(),
        "risk_assessment": {
            "market_cap": raw.get("market_cap"),
            "current_price": raw.get("regular_close_price"),
            "avg_volume": raw.get("average_volume"),
        },
    }
