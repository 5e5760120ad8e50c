"""Company name normalization for installer/contractor matching.

Permit contractors and utility installers are typed by different people
into different systems, so the same company shows up as
``"Acme Solar Energy, LLC"`` in one place and ``"ACME SOLAR"`` in the
other.  ``normalize_company_name`` reduces both to a comparable key.
"""

import re

# Legal-entity suffixes, with or without a trailing period
_LEGAL_SUFFIX_RE = re.compile(
    r"\b(LLC|INC|CORP|CORPORATION|CO|COMPANY|LTD|LIMITED|LP|LLP)\b\.?"
)
_DBA_RE = re.compile(r"\bDBA\b.*")
_LEADING_THE_RE = re.compile(r"^THE\s+")
# "SOLAR POWER", "SOLAR ENERGY SYSTEMS", "SOLARINSTALLS" -> "SOLAR"
_SOLAR_PHRASE_RE = re.compile(r"\bSOLAR\s*(PANEL|POWER|ENERGY|SYSTEM|INSTALL)S?\b")
_PUNCTUATION_RE = re.compile(r"[.,'\"()-]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_company_name(name: str | None) -> str:
    """Canonicalize a company or installer name for comparison.

    Steps:
        1. Return empty string for None/empty input
        2. Uppercase and trim
        3. Strip legal suffixes (LLC, INC, CORP, CO, LTD, LP, LLP, ...)
        4. Drop everything from a ``DBA`` marker onward
        5. Drop a leading ``THE``
        6. Collapse ``SOLAR POWER/ENERGY/PANEL/SYSTEM/INSTALL(S)`` to ``SOLAR``
        7. Strip punctuation
        8. Collapse whitespace

    Args:
        name: Free-text company name.

    Returns:
        Normalized name; empty string never matches anything.
    """
    if not name:
        return ""

    result = name.upper().strip()
    result = _LEGAL_SUFFIX_RE.sub("", result)
    result = _DBA_RE.sub("", result)
    result = _LEADING_THE_RE.sub("", result)
    result = _SOLAR_PHRASE_RE.sub("SOLAR", result)
    result = _PUNCTUATION_RE.sub("", result)
    result = _WHITESPACE_RE.sub(" ", result)

    return result.strip()
