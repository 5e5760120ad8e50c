"""Date proximity scorer.

Compares calendar dates only (time-of-day is ignored).  A missing or
unparseable date on either side is never treated as zero distance: the
difference is undefined and every range check fails.
"""

from __future__ import annotations

from collections.abc import Sequence

from solar_recon.matching.config import DateBonusTier
from solar_recon.preprocessing.fiscal_year import coerce_date


def days_between(date_a: object, date_b: object) -> int | None:
    """Absolute whole-day difference between two dates, or ``None``."""
    a = coerce_date(date_a)
    b = coerce_date(date_b)
    if a is None or b is None:
        return None
    return abs((a - b).days)


def dates_within(date_a: object, date_b: object, days: int) -> bool:
    """True if both dates are known and at most ``days`` apart."""
    diff = days_between(date_a, date_b)
    return diff is not None and diff <= days


def date_bonus(days: int | None, tiers: Sequence[DateBonusTier]) -> float:
    """Look up the bonus for a day difference in ascending ``tiers``.

    Returns 0.0 when the difference is undefined or beyond the last tier.
    """
    if days is None:
        return 0.0
    for tier in tiers:
        if days <= tier.max_days:
            return tier.bonus
    return 0.0
