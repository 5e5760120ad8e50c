"""Pydantic response schemas for the reconciliation API."""

from __future__ import annotations

import datetime as dt
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class MethodCounts(BaseModel):
    exact_kw_date: int = 0
    installer_fiscal_year: int = 0
    fuzzy_installer_kw: int = 0
    date_kw_only: int = 0


class ReconciliationSummary(BaseModel):
    """Counters returned by a reconciliation run."""

    status: str
    error: str | None = None
    processed: int
    skipped: int
    unmatched: int
    quarantined: int
    new_matches: int
    confirmed: int
    pending_review: int
    matches_by_method: MethodCounts
    conflicts: int
    errors: list[str]


class ComparisonStats(BaseModel):
    installations_total: int
    interconnections_total: int
    matched: int
    confirmed: int
    pending_review: int
    unmatched_installations: int
    unmatched_interconnections: int
    matches_by_method: MethodCounts


class MatchResultSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    solar_installation_id: str
    pir_installation_id: str
    match_confidence: int
    match_type: str
    status: str
    reviewed_notes: str | None = None
    created_at: dt.datetime | None = None


class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    size: int
    pages: int
