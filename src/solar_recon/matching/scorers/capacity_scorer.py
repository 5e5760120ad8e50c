"""Capacity (kW) match scorer.

A step function over the relative difference of two ratings.  The
discrete tiers are treated downstream as near-categorical evidence, so
a 1.9% and a 0.1% difference deliberately score the same.
"""

from __future__ import annotations

import math

# (max relative difference, score), checked in order
CAPACITY_TIERS: tuple[tuple[float, int], ...] = (
    (0.02, 95),
    (0.05, 85),
    (0.10, 70),
    (0.15, 50),
    (0.25, 30),
)


def capacity_score(kw_a: float | None, kw_b: float | None) -> int:
    """Score the agreement of two capacity ratings.

    Returns one of {0, 30, 50, 70, 85, 95, 100}:
    - 100 if identical
    - the first tier whose relative difference bound is met
    - 0 if beyond 25%, or if either value is missing or zero
    """
    if not kw_a or not kw_b:
        return 0

    relative_diff = abs(kw_a - kw_b) / max(kw_a, kw_b)
    if relative_diff == 0:
        return 100
    for bound, score in CAPACITY_TIERS:
        if relative_diff <= bound:
            return score
    return 0


def capacity_bucket(kw: float | None, width: float = 0.5) -> float | None:
    """Snap a capacity to its nearest bucket key (rounding half up).

    ``capacity_bucket(7.24) == 7.0``, ``capacity_bucket(7.25) == 7.5``.
    Returns ``None`` for missing, non-positive or non-finite capacities.
    """
    if not kw or kw <= 0 or not math.isfinite(kw):
        return None
    return math.floor(kw / width + 0.5) * width
