"""Growth-rate arithmetic over quarterly histories.

Histories are newest-first, as returned in the *_fq_h arrays of the
financials document.
"""

from collections.abc import Sequence

QUARTERS_PER_YEAR = 4


def _growth(current: float | None, base: float | None) -> float | None:
    # Missing or zero values give no growth figure (no division by zero)
    if not current or not base:
        return None
    return (current - base) / abs(base)


def calculate_yoy_growth(quarterly: Sequence[float | None]) -> float | None:
    """Latest quarter vs the same quarter a year earlier (index 0 vs index 4)

    Returns None when the history is too short or either value is missing/zero.
    """
    if len(quarterly) <= QUARTERS_PER_YEAR:
        return None
    return _growth(quarterly[0], quarterly[QUARTERS_PER_YEAR])


def calculate_qoq_growth(quarterly: Sequence[float | None]) -> float | None:
    """Latest quarter vs the previous quarter (index 0 vs index 1)"""
    if len(quarterly) < 2:
        return None
    return _growth(quarterly[0], quarterly[1])


def check_revenue_decline(revenue_history: Sequence[float | None]) -> bool:
    """True when revenue fell in both of the two most recent quarter-over-quarter steps"""
    if len(revenue_history) < 3:
        return False

    declines = 0
    for i in range(2):
        newer, older = revenue_history[i], revenue_history[i + 1]
        if newer is not None and older is not None and newer < older:
            declines += 1
    return declines >= 2
