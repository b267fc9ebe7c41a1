"""Threshold classifications used by the strategy screens."""

# Employee-count thresholds (headcount is the only size signal in the financials document)
MEGA_CAP_EMPLOYEES = 100_000
LARGE_CAP_EMPLOYEES = 10_000
MID_CAP_EMPLOYEES = 1_000

# Trailing P/E tiers
EXPENSIVE_PE = 40
MODERATE_PE = 20
CHEAP_PE = 10

HIGH_RISK_FLAGS = 4
MEDIUM_RISK_FLAGS = 2


def classify_company_size(employees: float | None) -> str:
    """Bucket a company by headcount: mega_cap, large_cap, mid_cap or small_cap"""
    if employees is None:
        return "small_cap"
    if employees > MEGA_CAP_EMPLOYEES:
        return "mega_cap"
    if employees > LARGE_CAP_EMPLOYEES:
        return "large_cap"
    if employees > MID_CAP_EMPLOYEES:
        return "mid_cap"
    return "small_cap"


def classify_valuation_tier(pe_ratio: float | None) -> str:
    """Bucket a P/E ratio: expensive, moderate, cheap or value (missing counts as 0)"""
    pe = pe_ratio or 0
    if pe > EXPENSIVE_PE:
        return "expensive"
    if pe > MODERATE_PE:
        return "moderate"
    if pe > CHEAP_PE:
        return "cheap"
    return "value"


def classify_risk_level(flag_count: int) -> str:
    """Map a red-flag count to high / medium / low"""
    if flag_count >= HIGH_RISK_FLAGS:
        return "high"
    if flag_count >= MEDIUM_RISK_FLAGS:
        return "medium"
    return "low"
