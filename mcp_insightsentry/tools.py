#!/usr/bin/env python3
"""
MCP Tool Definitions - Single Source of Truth

Tool definitions shared between server.py (stdio) and server_http.py (SSE/HTTP).
handlers.py validates arguments against the same input schemas.

Streaming kinds are not listed here; the relay (streaming_server.py) serves them.
"""

from typing import Any

from mcp.types import Tool

SYMBOL_PROPERTY = {
    "type": "string",
    "description": "Exchange-qualified symbol code (e.g., 'NASDAQ:AAPL', 'NYSE:F')",
}


def _schema(properties: dict[str, Any] | None = None, required: list[str] | None = None) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": properties or {},
        "required": required or [],
    }


def _symbol_tool(name: str, description: str, **extra: dict[str, Any]) -> Tool:
    """Tool taking a required symbol plus optional extras"""
    return Tool(
        name=name,
        description=description,
        inputSchema=_schema({"symbol": SYMBOL_PROPERTY, **extra}, ["symbol"]),
    )


def _no_arg_tool(name: str, description: str) -> Tool:
    return Tool(name=name, description=description, inputSchema=_schema())


def symbol_tools() -> list[Tool]:
    return [
        _symbol_tool(
            "get_latest_quote",
            "Latest quote for a symbol: last price, change, volume, bid/ask.",
        ),
        Tool(
            name="bulk_l1_quotes",
            description="""Level 1 quotes for several symbols in one call.

bulk_l1_quotes(["NASDAQ:AAPL", "NYSE:F"]) or bulk_l1_quotes("NASDAQ:AAPL,NYSE:F")
""",
            inputSchema=_schema(
                {
                    "codes": {
                        "type": ["array", "string"],
                        "items": {"type": "string"},
                        "description": "Symbol codes (list or comma-separated string)",
                    }
                },
                ["codes"],
            ),
        ),
        _symbol_tool(
            "get_symbol_info",
            "Symbol reference data: exchange, currency, market cap, earnings dates, price extremes.",
        ),
        Tool(
            name="search_stocks",
            description="Search instruments by name or ticker.",
            inputSchema=_schema(
                {
                    "query": {"type": "string", "description": "Search text (e.g., 'apple')"},
                    "type": {
                        "type": "string",
                        "description": "Instrument type filter (default: 'stocks')",
                        "default": "stocks",
                    },
                },
                ["query"],
            ),
        ),
        _symbol_tool(
            "get_ohlcv_time_series",
            """OHLCV bars for a symbol.

get_ohlcv_time_series("NASDAQ:AAPL", bar_type="minute", bar_interval=5)
""",
            bar_type={
                "type": "string",
                "description": "Bar type: 'second', 'minute', 'hour', 'day', 'week', 'month'",
                "default": "day",
            },
            bar_interval={"type": "integer", "description": "Bars per interval (default: 1)", "default": 1},
            extended={"type": "boolean", "description": "Include extended hours", "default": False},
            dadj={"type": "boolean", "description": "Dividend-adjusted prices", "default": False},
            badj={"type": "boolean", "description": "Back-adjusted prices", "default": False},
        ),
        _symbol_tool(
            "get_session_information",
            "Trading session document: timezone, regular and extended hours, holidays.",
        ),
    ]


def news_tools() -> list[Tool]:
    keywords = {"type": "string", "description": "Comma-separated keywords filter (optional)"}
    return [
        Tool(
            name="retrieve_latest_news",
            description="Latest news headlines, optionally filtered by keywords.",
            inputSchema=_schema({"keywords": keywords}),
        ),
        Tool(
            name="retrieve_live_news_feed",
            description="Paged live news feed, optionally filtered by keywords.",
            inputSchema=_schema(
                {
                    "keywords": keywords,
                    "limit": {"type": "integer", "description": "Items per page (default: 20)", "default": 20},
                    "page": {"type": "integer", "description": "Page number (default: 1)", "default": 1},
                }
            ),
        ),
    ]


def event_tools() -> list[Tool]:
    dataset_id = {"type": "string", "description": "Economic dataset identifier (e.g., 'USCPI')"}
    exchange = {"type": "string", "description": "Exchange code (e.g., 'NASDAQ')"}
    return [
        Tool(
            name="monthly_dividend_events",
            description="Dividend calendar for a month.",
            inputSchema=_schema(
                {
                    "month": {
                        "type": "string",
                        "description": "'this', 'next', 'last' or YYYY-MM (default: 'this')",
                        "default": "this",
                    }
                }
            ),
        ),
        Tool(
            name="fetch_economic_data",
            description="Time series for an economic dataset.",
            inputSchema=_schema({"id": dataset_id}, ["id"]),
        ),
        Tool(
            name="get_economic_events_history",
            description="Past releases of an economic event.",
            inputSchema=_schema({"id": dataset_id}, ["id"]),
        ),
        _no_arg_tool("get_weekly_economic_events", "Economic calendar for the current week."),
        _no_arg_tool("get_available_exchanges", "Exchanges covered by the API."),
        _no_arg_tool("get_available_data_sources", "Data sources covered by the API."),
        _no_arg_tool("get_economic_data_sources", "Economic dataset catalogue."),
        Tool(
            name="fetch_recent_bulk_data_metrics",
            description="Recent bulk metrics for every symbol of an exchange.",
            inputSchema=_schema({"exchange": exchange}, ["exchange"]),
        ),
        Tool(
            name="fetch_recent_bulk_data_quotes",
            description="Recent bulk quotes for every symbol of an exchange.",
            inputSchema=_schema({"exchange": exchange}, ["exchange"]),
        ),
    ]


def financial_tools() -> list[Tool]:
    return [
        _symbol_tool(
            "fetch_financial_data",
            """Financial statements for a symbol.

With optimize=true (or sections), keeps only the requested sections and
truncates quarterly history to quarters_limit (annual to quarters_limit/4).
""",
            sections={
                "type": "array",
                "items": {"type": "string"},
                "description": (
                    "Sections to keep (e.g., 'income_statement', 'balance_sheet', "
                    "'cash_flow', 'profitability', 'valuation', 'company_info')"
                ),
            },
            optimize={"type": "boolean", "description": "Reduce the payload", "default": False},
            quarters_limit={"type": "integer", "description": "Quarters of history (default: 4)", "default": 4},
        ),
        _symbol_tool(
            "fetch_pead_essentials",
            "Post-earnings drift essentials: EPS, revenue, earnings dates.",
            include_estimates={
                "type": "boolean",
                "description": "Include analyst estimates and 8 quarters of history",
                "default": False,
            },
        ),
        _symbol_tool("fetch_valuation_ratios", "Valuation ratios: P/E, P/B, P/S, EV/EBITDA, dividend yield."),
        _symbol_tool(
            "fetch_balance_sheet_health",
            "Balance sheet health: liquidity, leverage and debt coverage.",
            debt_analysis={
                "type": "boolean",
                "description": "Include debt detail and 4 quarters of history",
                "default": True,
            },
        ),
        _symbol_tool(
            "fetch_company_info",
            "Company profile: name, sector, industry, employees, business description.",
            include_business_description={
                "type": "boolean",
                "description": "Include the full business description",
                "default": True,
            },
        ),
        _symbol_tool("fetch_market_cap_screening", "Market cap, shares outstanding, float and size tier."),
        _symbol_tool(
            "fetch_earnings_surprise_data",
            "Eight quarters of EPS and revenue with YoY and QoQ growth.",
        ),
        _symbol_tool(
            "fetch_financial_health_flags",
            """Financial red flags and overall risk level.

Flags: high leverage, low liquidity, negative margins, revenue decline,
high valuation, low ROE. Risk: low (0-1 flags), medium (2-3), high (4+).
""",
        ),
        _symbol_tool("fetch_sentiment_context", "Valuation tier and size tier for sentiment strategies."),
    ]


def session_tools() -> list[Tool]:
    strategy_type = {
        "type": "string",
        "enum": ["general", "momentum", "mean_reversion", "earnings", "sentiment"],
        "default": "general",
    }
    return [
        _symbol_tool(
            "get_market_status",
            "Session hours and holidays for a symbol at a point in time.",
            timestamp={"type": "string", "description": "ISO 8601 time (default: now)"},
        ),
        _symbol_tool(
            "get_trading_calendar",
            "Trading calendar for a period (default: the next 7 days).",
            start_date={"type": "string", "description": "Start date (ISO 8601)"},
            end_date={"type": "string", "description": "End date (ISO 8601)"},
            days_ahead={"type": "integer", "description": "Days ahead when end_date is omitted", "default": 7},
        ),
        _symbol_tool(
            "get_execution_timing",
            "Session hours and current time for execution planning.",
            strategy_type={**strategy_type, "description": "Strategy the timing is for"},
        ),
        _symbol_tool(
            "get_session_risk_data",
            "Session calendar for risk assessment.",
            position_size={"type": "number", "description": "Position size (context only)"},
            strategy={**strategy_type, "description": "Strategy the assessment is for"},
        ),
    ]


def context_tools() -> list[Tool]:
    return [
        _symbol_tool(
            "fetch_orb_trading_context",
            "Opening range breakout context: prices, volume, market hours, price extremes.",
        ),
        _symbol_tool("fetch_pead_timing_context", "Next and last earnings release dates with size context."),
        _symbol_tool("fetch_sentiment_news_context", "Price, valuation and size context for news sentiment."),
        _symbol_tool("fetch_supervisor_risk_assessment", "Market cap, price and volume for risk supervision."),
    ]


def get_mcp_tools() -> list[Tool]:
    """
    Return list of MCP tools.

    Single source of truth for tool definitions.
    Both stdio and HTTP servers import this function.
    """
    return [
        *symbol_tools(),
        *news_tools(),
        *event_tools(),
        *financial_tools(),
        *session_tools(),
        *context_tools(),
    ]
