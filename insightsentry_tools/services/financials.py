"""
Financial statements and the strategy screens derived from them.

fetch_financial_data() is the single fetch of /v2/symbols/{symbol}/financials.
Everything else reshapes that document into a smaller, strategy-specific
subset:

- PEAD essentials, valuation ratios, balance sheet health, company profile
- market cap screening, earnings surprise, health red flags, sentiment context

Error objects from the fetch pass through unchanged.
"""

import logging
import math
from typing import Any

from insightsentry_tools.calculations.classification import (
    classify_company_size,
    classify_risk_level,
    classify_valuation_tier,
)
from insightsentry_tools.calculations.growth import (
    calculate_qoq_growth,
    calculate_yoy_growth,
    check_revenue_decline,
)
from insightsentry_tools.client import InsightSentryClient
from insightsentry_tools.services.symbols import symbol_path

logger = logging.getLogger(__name__)

FINANCIAL_SECTIONS = (
    "income_statement",
    "balance_sheet",
    "cash_flow",
    "valuation_ratios",
    "profitability",
    "company_info",
)

# Red-flag thresholds for fetch_financial_health_flags
HIGH_DEBT_TO_EQUITY = 2.0
LOW_CURRENT_RATIO = 1.0
HIGH_PE = 50
LOW_ROE = 0.1


def limit_historical_data(section: dict[str, Any], quarters_limit: int) -> dict[str, Any]:
    """Truncate *_fq_h arrays to quarters_limit entries and *_fy_h arrays to the matching years"""
    years_limit = math.ceil(quarters_limit / 4)
    result: dict[str, Any] = {}
    for key, value in section.items():
        if key.endswith("_fq_h") and isinstance(value, list):
            result[key] = value[:quarters_limit]
        elif key.endswith("_fy_h") and isinstance(value, list):
            result[key] = value[:years_limit]
        else:
            result[key] = value
    return result


def optimize_financial_data(
    raw: Any,  # noqa: ANN401
    sections: list[str] | None = None,
    quarters_limit: int = 4,
) -> Any:  # noqa: ANN401
    """Keep only the requested sections (all when None) with shortened histories"""
    if not isinstance(raw, dict) or not isinstance(raw.get("data"), dict):
        return raw

    data = raw["data"]
    optimized: dict[str, Any] = {
        "code": raw.get("code"),
        "last_update": raw.get("last_update"),
        "data": {},
    }

    if sections:
        for section in sections:
            if data.get(section):
                optimized["data"][section] = limit_historical_data(data[section], quarters_limit)
    else:
        for section, section_data in data.items():
            if isinstance(section_data, dict):
                optimized["data"][section] = limit_historical_data(section_data, quarters_limit)
            else:
                optimized["data"][section] = section_data

    return optimized


async def fetch_financial_data(
    client: InsightSentryClient,
    symbol: str,
    sections: list[str] | None = None,
    optimize: bool = False,
    quarters_limit: int = 4,
) -> Any:  # noqa: ANN401
    """Fetch the financials document, optionally reduced to sections / recent quarters"""
    raw = await client.get(
        symbol_path(symbol, "financials"),
        error_message="An error occurred while fetching financial data.",
    )
    if optimize or sections:
        return optimize_financial_data(raw, sections=sections, quarters_limit=quarters_limit)
    return raw


def _sections(raw: dict[str, Any], *names: str) -> list[dict[str, Any]]:
    data = raw.get("data") or {}
    return [data.get(name) or {} for name in names]


def _has_data(raw: Any) -> bool:  # noqa: ANN401
    return isinstance(raw, dict) and isinstance(raw.get("data"), dict)


def extract_pead_essentials(raw: Any) -> Any:  # noqa: ANN401
    """Earnings and revenue essentials for post-earnings-announcement drift"""
    if not _has_data(raw):
        return raw
    income, company = _sections(raw, "income_statement", "company_info")

    return {
        "symbol": raw.get("code"),
        "last_update": raw.get("last_update"),
        "essentials": {
            "earnings_per_share_diluted_fq": income.get("earnings_per_share_diluted_fq"),
            "earnings_per_share_diluted_fy": income.get("earnings_per_share_diluted_fy"),
            "earnings_quarterly": (income.get("earnings_per_share_diluted_fq_h") or [])[:4],
            "revenue_fq": income.get("revenue_fq"),
            "revenue_fy": income.get("revenue_fy"),
            "revenue_quarterly": (income.get("revenue_fq_h") or [])[:4],
            "shares_outstanding": income.get("basic_shares_outstanding_fq"),
            "sector": company.get("sector"),
            # Needs a live price; filled in by the caller
            "market_cap": None,
        },
    }


def extract_valuation_ratios(raw: Any) -> Any:  # noqa: ANN401
    if not _has_data(raw):
        return raw
    valuation, profitability, company = _sections(
        raw, "valuation_ratios", "profitability", "company_info"
    )

    return {
        "symbol": raw.get("code"),
        "last_update": raw.get("last_update"),
        "valuation": {
            "pe_ratio": valuation.get("price_earnings"),
            "pb_ratio": valuation.get("price_book_ratio"),
            "price_sales": valuation.get("price_sales_ratio"),
            "ev_ebitda": valuation.get("enterprise_value_ebitda_current"),
            "roe": profitability.get("return_on_equity"),
            "roa": profitability.get("return_on_assets"),
            "operating_margin": profitability.get("operating_margin"),
            "net_margin": profitability.get("net_margin"),
            "sector": company.get("sector"),
            "industry": company.get("industry"),
            "employees": company.get("number_of_employees"),
        },
    }


def extract_balance_sheet_health(raw: Any) -> Any:  # noqa: ANN401
    if not _has_data(raw):
        return raw
    balance, profitability, cash_flow = _sections(
        raw, "balance_sheet", "profitability", "cash_flow"
    )

    return {
        "symbol": raw.get("code"),
        "last_update": raw.get("last_update"),
        "health": {
            "cash_and_equivalents": balance.get("cash_n_equivalents_fq"),
            "cash_and_short_term": balance.get("cash_n_short_term_invest_fq"),
            "total_debt": balance.get("total_debt_fq"),
            "current_ratio": balance.get("current_ratio_fq"),
            "debt_to_equity": balance.get("total_debt_to_equity_fq"),
            "roe": profitability.get("return_on_equity_current"),
            "roa": profitability.get("return_on_assets_current"),
            "operating_margin": profitability.get("operating_margin_current"),
            "operating_cf_per_share": cash_flow.get("operating_cash_flow_per_share"),
            "free_cf_per_share": profitability.get("free_cash_flow_per_share_fq"),
        },
    }


async def fetch_pead_essentials(
    client: InsightSentryClient, symbol: str, include_estimates: bool = False
) -> Any:  # noqa: ANN401
    raw = await fetch_financial_data(
        client, symbol, optimize=True, quarters_limit=8 if include_estimates else 4
    )
    return extract_pead_essentials(raw)


async def fetch_valuation_ratios(client: InsightSentryClient, symbol: str) -> Any:  # noqa: ANN401
    raw = await fetch_financial_data(client, symbol, optimize=True, quarters_limit=4)
    return extract_valuation_ratios(raw)


async def fetch_balance_sheet_health(
    client: InsightSentryClient, symbol: str, debt_analysis: bool = True
) -> Any:  # noqa: ANN401
    raw = await fetch_financial_data(
        client, symbol, optimize=True, quarters_limit=4 if debt_analysis else 2
    )
    return extract_balance_sheet_health(raw)


async def fetch_company_info(
    client: InsightSentryClient, symbol: str, include_business_description: bool = True
) -> Any:  # noqa: ANN401
    """Company profile; the name is the first sentence of the business description"""
    raw = await fetch_financial_data(
        client, symbol, sections=["company_info"], optimize=True, quarters_limit=1
    )
    if not _has_data(raw):
        return raw
    (company,) = _sections(raw, "company_info")
    description = company.get("business_description") or ""

    profile: dict[str, Any] = {
        "name": description.split(".")[0],
        "sector": company.get("sector"),
        "industry": company.get("industry"),
        "location": company.get("location"),
        "country": company.get("country"),
        "employees": company.get("number_of_employees"),
        "founded": company.get("founded"),
        "website": company.get("web_site_url"),
        "ceo": company.get("ceo"),
    }
    if include_business_description:
        profile["business_description"] = company.get("business_description")

    return {
        "symbol": raw.get("code"),
        "last_update": raw.get("last_update"),
        "company": profile,
    }


async def fetch_market_cap_screening(client: InsightSentryClient, symbol: str) -> Any:  # noqa: ANN401
    """Size and headline-ratio screen for position sizing and market cap filters"""
    raw = await fetch_financial_data(client, symbol, optimize=True, quarters_limit=1)
    if not _has_data(raw):
        return raw
    income, company, valuation = _sections(
        raw, "income_statement", "company_info", "valuation_ratios"
    )
    shares_outstanding = income.get("basic_shares_outstanding_fq") or income.get(
        "basic_shares_outstanding_fy"
    )

    return {
        "symbol": raw.get("code"),
        "last_update": raw.get("last_update"),
        "screening": {
            "shares_outstanding": shares_outstanding,
            "estimated_market_cap": None,
            "sector": company.get("sector"),
            "industry": company.get("industry"),
            "employees": company.get("number_of_employees"),
            "pe_ratio": valuation.get("price_earnings"),
            "pb_ratio": valuation.get("price_book_ratio"),
            "latest_eps": income.get("earnings_per_share_diluted_fq"),
            "annual_eps": income.get("earnings_per_share_diluted_fy"),
            "size_category": classify_company_size(company.get("number_of_employees")),
        },
    }


async def fetch_earnings_surprise_data(client: InsightSentryClient, symbol: str) -> Any:  # noqa: ANN401
    """Eight quarters of EPS/revenue with YoY and QoQ growth"""
    raw = await fetch_financial_data(client, symbol, optimize=True, quarters_limit=8)
    if not _has_data(raw):
        return raw
    income, company = _sections(raw, "income_statement", "company_info")

    eps_quarterly = (income.get("earnings_per_share_diluted_fq_h") or [])[:8]
    revenue_quarterly = (income.get("revenue_fq_h") or [])[:8]

    return {
        "symbol": raw.get("code"),
        "last_update": raw.get("last_update"),
        "earnings_analysis": {
            "latest_eps": income.get("earnings_per_share_diluted_fq"),
            "latest_revenue": income.get("revenue_fq"),
            "eps_quarterly_history": eps_quarterly,
            "revenue_quarterly_history": revenue_quarterly,
            "eps_yoy_growth": calculate_yoy_growth(eps_quarterly),
            "revenue_yoy_growth": calculate_yoy_growth(revenue_quarterly),
            "eps_qoq_growth": calculate_qoq_growth(eps_quarterly),
            "revenue_qoq_growth": calculate_qoq_growth(revenue_quarterly),
            "sector": company.get("sector"),
            "market_cap_estimate": None,
        },
    }


def compute_health_flags(
    balance: dict[str, Any], profitability: dict[str, Any], income: dict[str, Any]
) -> dict[str, bool]:
    """Boolean red flags; missing metrics count as 0"""
    return {
        "high_debt": (balance.get("total_debt_to_equity_fq") or 0) > HIGH_DEBT_TO_EQUITY,
        "low_liquidity": (balance.get("current_ratio_fq") or 0) < LOW_CURRENT_RATIO,
        "negative_margins": (profitability.get("operating_margin_current") or 0) < 0,
        "declining_revenue": check_revenue_decline(income.get("revenue_fq_h") or []),
        "high_valuation": (profitability.get("price_earnings") or 0) > HIGH_PE,
        "low_roe": (profitability.get("return_on_equity_current") or 0) < LOW_ROE,
    }


async def fetch_financial_health_flags(client: InsightSentryClient, symbol: str) -> Any:  # noqa: ANN401
    raw = await fetch_financial_data(client, symbol, optimize=True, quarters_limit=4)
    if not _has_data(raw):
        return raw
    balance, profitability, income, company = _sections(
        raw, "balance_sheet", "profitability", "income_statement", "company_info"
    )

    flags = compute_health_flags(balance, profitability, income)
    flag_count = sum(1 for raised in flags.values() if raised)
    logger.debug(f"{symbol} health flags: {flag_count} raised")

    return {
        "symbol": raw.get("code"),
        "last_update": raw.get("last_update"),
        "health_assessment": {
            "flags": flags,
            "total_red_flags": flag_count,
            "risk_level": classify_risk_level(flag_count),
            "debt_to_equity": balance.get("total_debt_to_equity_fq"),
            "current_ratio": balance.get("current_ratio_fq"),
            "operating_margin": profitability.get("operating_margin_current"),
            "pe_ratio": profitability.get("price_earnings"),
            "roe": profitability.get("return_on_equity_current"),
            "sector": company.get("sector"),
            "size": company.get("number_of_employees"),
        },
    }


async def fetch_sentiment_context(client: InsightSentryClient, symbol: str) -> Any:  # noqa: ANN401
    raw = await fetch_financial_data(
        client,
        symbol,
        sections=["company_info", "valuation_ratios"],
        optimize=True,
        quarters_limit=1,
    )
    if not _has_data(raw):
        return raw
    company, valuation = _sections(raw, "company_info", "valuation_ratios")

    return {
        "symbol": raw.get("code"),
        "last_update": raw.get("last_update"),
        "sentiment_context": {
            "sector": company.get("sector"),
            "industry": company.get("industry"),
            "employees": company.get("number_of_employees"),
            "pe_ratio": valuation.get("price_earnings"),
            "pb_ratio": valuation.get("price_book_ratio"),
            "price_sales": valuation.get("price_sales_ratio"),
            "valuation_tier": classify_valuation_tier(valuation.get("price_earnings")),
            "size_tier": classify_company_size(company.get("number_of_employees")),
        },
    }
