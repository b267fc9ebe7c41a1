#!/usr/bin/env python3
"""Test classification thresholds and growth arithmetic."""

import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

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


def test_company_size():
    """Test headcount buckets (thresholds are exclusive)"""
    assert classify_company_size(None) == "small_cap"
    assert classify_company_size(500) == "small_cap"
    assert classify_company_size(1_000) == "small_cap"
    assert classify_company_size(1_001) == "mid_cap"
    assert classify_company_size(10_001) == "large_cap"
    assert classify_company_size(164_000) == "mega_cap"
    print("✓ Company size buckets work")


def test_valuation_tier():
    assert classify_valuation_tier(None) == "value"
    assert classify_valuation_tier(8) == "value"
    assert classify_valuation_tier(15) == "cheap"
    assert classify_valuation_tier(25) == "moderate"
    assert classify_valuation_tier(60) == "expensive"


def test_risk_level():
    assert classify_risk_level(0) == "low"
    assert classify_risk_level(1) == "low"
    assert classify_risk_level(2) == "medium"
    assert classify_risk_level(4) == "high"


def test_yoy_growth():
    """Test index 0 vs index 4, newest first"""
    assert calculate_yoy_growth([1.5, 1.4, 1.3, 1.2, 1.0]) == pytest.approx(0.5)
    assert calculate_yoy_growth([-0.5, 0, 0, 0, -1.0]) == pytest.approx(0.5)
    assert calculate_yoy_growth([1.5, 1.4, 1.3, 1.2]) is None
    assert calculate_yoy_growth([1.5, 1.4, 1.3, 1.2, 0]) is None
    assert calculate_yoy_growth([None, 1.4, 1.3, 1.2, 1.0]) is None
    print("✓ YoY growth works")


def test_qoq_growth():
    assert calculate_qoq_growth([110, 100]) == pytest.approx(0.1)
    assert calculate_qoq_growth([110]) is None
    assert calculate_qoq_growth([]) is None
    assert calculate_qoq_growth([110, 0]) is None


def test_revenue_decline():
    """Test both recent quarter-over-quarter steps must decline"""
    assert check_revenue_decline([80, 90, 100]) is True
    assert check_revenue_decline([95, 90, 100]) is False
    assert check_revenue_decline([80, 90]) is False
    assert check_revenue_decline([80, None, 100]) is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
