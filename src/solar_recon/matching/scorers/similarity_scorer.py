"""Installer-name similarity using RapidFuzz edit distance.

Plain unit-cost Levenshtein distance (insert/delete/substitute) is used
rather than RapidFuzz's token ratios: normalized company names are short,
and token reordering ("SOLAR ACME" vs "ACME SOLAR") is not a pattern seen
in permit and interconnection data.
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def name_similarity(name_a: str | None, name_b: str | None) -> float:
    """Compute the edit-distance similarity of two normalized names.

    Returns a percentage in [0, 100]:
    - 0.0 if either name is missing or empty
    - ``(max_len - distance) / max_len * 100`` otherwise
    """
    if not name_a or not name_b:
        return 0.0

    distance = Levenshtein.distance(name_a, name_b)
    max_len = max(len(name_a), len(name_b))
    return (max_len - distance) / max_len * 100
