"""
Calendar, dataset and exchange endpoints.

Economic/dividend event calendars, economic dataset series, and the
exchange/data-source catalogs. All plain fetches with no reshaping.
"""

from typing import Any
from urllib.parse import quote

from insightsentry_tools.client import InsightSentryClient


async def monthly_dividend_events(client: InsightSentryClient, month: str = "this") -> Any:  # noqa: ANN401
    """Dividend events for this/next month"""
    return await client.get(
        "/v2/events/dividends/monthly",
        params={"month": month},
        error_message="An error occurred while fetching monthly dividend events.",
    )


async def fetch_economic_data(client: InsightSentryClient, id: str) -> Any:  # noqa: ANN401, A002
    """Series for one economic dataset"""
    return await client.get(
        f"/v2/datasets/economy/{quote(id, safe='')}/series",
        error_message="An error occurred while fetching economic data.",
    )


async def get_economic_events_history(client: InsightSentryClient, id: str) -> Any:  # noqa: ANN401, A002
    """Historical releases of one economic event"""
    return await client.get(
        f"/v2/events/economy/{quote(id, safe='')}/history",
        error_message="An error occurred while fetching economic events history.",
    )


async def get_weekly_economic_events(client: InsightSentryClient) -> Any:  # noqa: ANN401
    return await client.get(
        "/v2/events/economy/weekly",
        error_message="An error occurred while fetching this week's economic events.",
    )


async def get_available_exchanges(client: InsightSentryClient) -> Any:  # noqa: ANN401
    return await client.get(
        "/v2/exchanges",
        error_message="An error occurred while fetching available exchanges.",
    )


async def get_available_data_sources(client: InsightSentryClient) -> Any:  # noqa: ANN401
    return await client.get(
        "/v2/datasets/sources/quotes",
        error_message="An error occurred while fetching available data sources.",
    )


async def get_economic_data_sources(client: InsightSentryClient) -> Any:  # noqa: ANN401
    return await client.get(
        "/v2/datasets/sources/economy",
        error_message="An error occurred while fetching economic data sources.",
    )


async def fetch_recent_bulk_data_metrics(client: InsightSentryClient, exchange: str) -> Any:  # noqa: ANN401
    """Most recent metrics snapshot for every symbol on an exchange"""
    return await client.get(
        f"/v2/exchanges/{quote(exchange, safe='')}/metrics",
        error_message="An error occurred while fetching recent bulk data metrics.",
    )


async def fetch_recent_bulk_data_quotes(client: InsightSentryClient, exchange: str) -> Any:  # noqa: ANN401
    """Most recent quote snapshot for every symbol on an exchange"""
    return await client.get(
        f"/v2/exchanges/{quote(exchange, safe='')}/quotes",
        error_message="An error occurred while fetching recent bulk data quotes.",
    )
