"""
Session-derived tools.

Reshape the /v2/symbols/{symbol}/session document for market status,
calendar planning, execution timing and risk context.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from insightsentry_tools.client import InsightSentryClient, is_error
from insightsentry_tools.services.symbols import get_session_information

SESSION_ERROR = {"error": "Failed to retrieve session data"}

STRATEGY_TYPES = ("general", "momentum", "mean_reversion", "earnings", "sentiment")


def _session_data(raw: dict[str, Any], include_calendar: bool = True) -> dict[str, Any]:
    session: dict[str, Any] = {
        "timezone": raw.get("timezone"),
        "regular_session": raw.get("regular_session"),
        "extended_session": raw.get("extended_session"),
    }
    if include_calendar:
        session["holidays"] = raw.get("holidays") or []
        session["details"] = raw.get("details") or []
    return session


def _parse_datetime(value: str) -> datetime:
    # Accept trailing "Z" as UTC
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _isoformat(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def get_market_status(
    client: InsightSentryClient, symbol: str, timestamp: str | None = None
) -> dict[str, Any]:
    """Session hours and holidays, stamped with the time the status refers to"""
    raw = await get_session_information(client, symbol)
    if is_error(raw):
        return dict(SESSION_ERROR)

    current_time = _parse_datetime(timestamp) if timestamp else datetime.now(timezone.utc)
    return {
        "symbol": raw.get("code"),
        "timestamp": _isoformat(current_time),
        "market_status": _session_data(raw),
    }


async def get_trading_calendar(
    client: InsightSentryClient,
    symbol: str,
    start_date: str | None = None,
    end_date: str | None = None,
    days_ahead: int = 7,
) -> dict[str, Any]:
    """Session calendar for a period (default: today plus days_ahead)"""
    raw = await get_session_information(client, symbol)
    if is_error(raw):
        return dict(SESSION_ERROR)

    now = datetime.now(timezone.utc)
    start = _parse_datetime(start_date) if start_date else now
    end = _parse_datetime(end_date) if end_date else now + timedelta(days=days_ahead)

    return {
        "symbol": raw.get("code"),
        "period": {
            "start": start.date().isoformat(),
            "end": end.date().isoformat(),
        },
        "session_data": _session_data(raw),
    }


async def get_execution_timing(
    client: InsightSentryClient, symbol: str, strategy_type: str = "general"
) -> dict[str, Any]:
    raw = await get_session_information(client, symbol)
    if is_error(raw):
        return dict(SESSION_ERROR)

    timing = _session_data(raw, include_calendar=False)
    timing["current_time"] = _isoformat(datetime.now(timezone.utc))
    return {
        "symbol": raw.get("code"),
        "strategy_type": strategy_type,
        "execution_timing": timing,
    }


async def get_session_risk_data(
    client: InsightSentryClient,
    symbol: str,
    position_size: float | None = None,
    strategy: str = "general",
) -> dict[str, Any]:
    """Raw session data for risk assessment (position_size is context only)"""
    raw = await get_session_information(client, symbol)
    if is_error(raw):
        return dict(SESSION_ERROR)

    return {
        "symbol": raw.get("code"),
        "strategy": strategy,
        "timestamp": _isoformat(datetime.now(timezone.utc)),
        "session_data": _session_data(raw),
    }
