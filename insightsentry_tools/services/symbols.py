"""
Symbol-level REST endpoints: quotes, symbol info, search, OHLCV series, sessions.

Symbols are exchange-prefixed codes (e.g. "NASDAQ:AAPL") and are URL-quoted
when placed in a path.
"""

from typing import Any
from urllib.parse import quote

from insightsentry_tools.client import InsightSentryClient


def symbol_path(symbol: str, resource: str) -> str:
    """Build /v2/symbols/{symbol}/{resource} with the symbol quoted"""
    return f"/v2/symbols/{quote(symbol, safe='')}/{resource}"


def normalize_codes(codes: str | list[str]) -> list[str]:
    """
    Normalize code input to a list of uppercase codes.

    - "NASDAQ:AAPL" -> ["NASDAQ:AAPL"]
    - "nasdaq:aapl, nyse:f" -> ["NASDAQ:AAPL", "NYSE:F"]
    - ["NASDAQ:AAPL"] -> ["NASDAQ:AAPL"]
    """
    if isinstance(codes, list):
        return [c.strip().upper() for c in codes if c.strip()]
    return [c.strip().upper() for c in codes.split(",") if c.strip()]


async def get_latest_quote(client: InsightSentryClient, symbol: str) -> Any:  # noqa: ANN401
    """Latest quote for a symbol"""
    return await client.get(
        symbol_path(symbol, "quote"),
        error_message="An error occurred while fetching the latest quote.",
    )


async def bulk_l1_quotes(client: InsightSentryClient, codes: str | list[str]) -> Any:  # noqa: ANN401
    """Level 1 quotes for several codes in one request"""
    normalized = normalize_codes(codes)
    if not normalized:
        msg = "bulk_l1_quotes() requires a non-empty 'codes' list"
        raise ValueError(msg)
    return await client.get(
        "/v2/symbols/quotes",
        params={"codes": ",".join(normalized)},
        error_message="An error occurred while fetching bulk L1 quotes.",
    )


async def get_symbol_info(client: InsightSentryClient, symbol: str) -> Any:  # noqa: ANN401
    """Symbol reference data (exchange, currency, tick size, earnings dates, ...)"""
    return await client.get(
        symbol_path(symbol, "info"),
        error_message="An error occurred while retrieving symbol information.",
    )


async def search_stocks(
    client: InsightSentryClient, query: str, type: str = "stocks"  # noqa: A002
) -> Any:  # noqa: ANN401
    """Search symbols by name or ticker"""
    return await client.get(
        "/v2/symbols/search",
        params={"query": query, "type": type},
        error_message="An error occurred while searching for stocks.",
    )


async def get_ohlcv_time_series(
    client: InsightSentryClient,
    symbol: str,
    bar_type: str = "day",
    bar_interval: int = 1,
    extended: bool = False,
    dadj: bool = False,
    badj: bool = False,
) -> Any:  # noqa: ANN401
    """OHLCV bars for a symbol

    dadj adjusts for dividends, badj for back-adjusted continuous futures.
    """
    return await client.get(
        symbol_path(symbol, "series"),
        params={
            "bar_type": bar_type,
            "bar_interval": bar_interval,
            "extended": extended,
            "dadj": dadj,
            "badj": badj,
        },
        error_message="An error occurred while fetching OHLCV time series.",
    )


async def get_session_information(client: InsightSentryClient, symbol: str) -> Any:  # noqa: ANN401
    """Trading session document: timezone, regular/extended hours, holidays"""
    return await client.get(
        symbol_path(symbol, "session"),
        error_message="An error occurred while retrieving session information.",
    )
