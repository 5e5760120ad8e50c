"""Calendar date coercion and fiscal-year bucketing.

The fiscal year runs October 1 through September 30: FY *n* spans
Oct 1 of year *n-1* through Sep 30 of year *n*.
"""

from __future__ import annotations

import datetime as dt

FISCAL_YEAR_START_MONTH = 10


def coerce_date(value: object) -> dt.date | None:
    """Coerce a date-like value to a calendar date, dropping time-of-day.

    Accepts ``date``, ``datetime`` and ISO-8601 strings (date or datetime).
    Returns ``None`` for missing or unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return dt.date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def fiscal_year_for(value: object) -> int | None:
    """Return the fiscal year a date falls in, or ``None`` if undated."""
    d = coerce_date(value)
    if d is None:
        return None
    return d.year + 1 if d.month >= FISCAL_YEAR_START_MONTH else d.year
