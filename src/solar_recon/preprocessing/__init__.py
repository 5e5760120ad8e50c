"""Preprocessing helpers: company-name normalization and fiscal-year bucketing."""

from solar_recon.preprocessing.fiscal_year import coerce_date, fiscal_year_for
from solar_recon.preprocessing.normalizer import normalize_company_name

__all__ = [
    "coerce_date",
    "fiscal_year_for",
    "normalize_company_name",
]
