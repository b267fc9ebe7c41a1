"""News REST endpoints (the live feed itself is streamed, see streaming.kinds)."""

from typing import Any

from insightsentry_tools.client import InsightSentryClient


async def retrieve_latest_news(client: InsightSentryClient, keywords: str = "") -> Any:  # noqa: ANN401
    """Last 100 news items, optionally filtered by keywords"""
    return await client.get(
        "/v2/newsfeed/latest",
        params={"keywords": keywords or None},
        error_message="An error occurred while retrieving the latest news.",
    )


async def retrieve_live_news_feed(
    client: InsightSentryClient,
    keywords: str = "",
    limit: int = 20,
    page: int = 1,
) -> Any:  # noqa: ANN401
    """News from the last 24 hours, paginated"""
    return await client.get(
        "/v2/newsfeed",
        params={"limit": limit, "page": page, "keywords": keywords or None},
        error_message="An error occurred while retrieving the news feed.",
    )
