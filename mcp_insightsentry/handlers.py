"""
Tool handlers - single source of truth for tool execution logic.

This module contains the routing that both server.py (stdio) and
server_http.py (HTTP/SSE) use.

Architecture:
- Protocol layer (server.py, server_http.py) handles MCP transport
- This module validates arguments against the tool schemas and routes
- insightsentry_tools.services handles the REST calls and reshaping
"""

import json
from collections.abc import Awaitable, Callable
from typing import Any

from insightsentry_tools.client import InsightSentryClient
from insightsentry_tools.services import context, events, financials, news, sessions, symbols

from .logging_config import get_logger
from .tools import get_mcp_tools

logger = get_logger(__name__)

ToolFunction = Callable[..., Awaitable[Any]]

TOOL_FUNCTIONS: dict[str, ToolFunction] = {
    # Symbols
    "get_latest_quote": symbols.get_latest_quote,
    "bulk_l1_quotes": symbols.bulk_l1_quotes,
    "get_symbol_info": symbols.get_symbol_info,
    "search_stocks": symbols.search_stocks,
    "get_ohlcv_time_series": symbols.get_ohlcv_time_series,
    "get_session_information": symbols.get_session_information,
    # News
    "retrieve_latest_news": news.retrieve_latest_news,
    "retrieve_live_news_feed": news.retrieve_live_news_feed,
    # Events and datasets
    "monthly_dividend_events": events.monthly_dividend_events,
    "fetch_economic_data": events.fetch_economic_data,
    "get_economic_events_history": events.get_economic_events_history,
    "get_weekly_economic_events": events.get_weekly_economic_events,
    "get_available_exchanges": events.get_available_exchanges,
    "get_available_data_sources": events.get_available_data_sources,
    "get_economic_data_sources": events.get_economic_data_sources,
    "fetch_recent_bulk_data_metrics": events.fetch_recent_bulk_data_metrics,
    "fetch_recent_bulk_data_quotes": events.fetch_recent_bulk_data_quotes,
    # Financials
    "fetch_financial_data": financials.fetch_financial_data,
    "fetch_pead_essentials": financials.fetch_pead_essentials,
    "fetch_valuation_ratios": financials.fetch_valuation_ratios,
    "fetch_balance_sheet_health": financials.fetch_balance_sheet_health,
    "fetch_company_info": financials.fetch_company_info,
    "fetch_market_cap_screening": financials.fetch_market_cap_screening,
    "fetch_earnings_surprise_data": financials.fetch_earnings_surprise_data,
    "fetch_financial_health_flags": financials.fetch_financial_health_flags,
    "fetch_sentiment_context": financials.fetch_sentiment_context,
    # Sessions
    "get_market_status": sessions.get_market_status,
    "get_trading_calendar": sessions.get_trading_calendar,
    "get_execution_timing": sessions.get_execution_timing,
    "get_session_risk_data": sessions.get_session_risk_data,
    # Symbol context
    "fetch_orb_trading_context": context.fetch_orb_trading_context,
    "fetch_pead_timing_context": context.fetch_pead_timing_context,
    "fetch_sentiment_news_context": context.fetch_sentiment_news_context,
    "fetch_supervisor_risk_assessment": context.fetch_supervisor_risk_assessment,
}

TOOL_SCHEMAS: dict[str, dict[str, Any]] = {tool.name: tool.inputSchema for tool in get_mcp_tools()}


def tool_arguments(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """
    Validate arguments against the tool's input schema.

    Required parameters must be present and non-empty; arguments the tool
    does not declare are dropped.
    """
    schema = TOOL_SCHEMAS[name]
    for param in schema.get("required", []):
        if arguments.get(param) in (None, "", []):
            msg = f"{name}() requires '{param}' parameter"
            raise ValueError(msg)

    properties = schema.get("properties", {})
    return {key: value for key, value in arguments.items() if key in properties and value is not None}


def format_result(data: Any) -> str:  # noqa: ANN401
    return json.dumps(data, indent=2, default=str)


async def call_tool(name: str, arguments: dict[str, Any], client: InsightSentryClient) -> str:
    """
    Route tool call to the service function.

    Returns the JSON-encoded result (error objects included).
    Raises ValueError for unknown tools or missing parameters.
    """
    function = TOOL_FUNCTIONS.get(name)
    if function is None or name not in TOOL_SCHEMAS:
        msg = f"Unknown tool: {name}"
        raise ValueError(msg)

    kwargs = tool_arguments(name, arguments)
    logger.debug(f"{name}({kwargs})")
    data = await function(client, **kwargs)
    return format_result(data)
