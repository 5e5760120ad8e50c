"""API routes for running and inspecting permit/interconnection reconciliation."""

from __future__ import annotations

import math
from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solar_recon.api.deps import (
    get_db,
    get_reconciliation_config,
    get_sessionmaker,
    require_operator,
)
from solar_recon.api.schemas import (
    ComparisonStats,
    MatchResultSchema,
    PaginatedResponse,
    ReconciliationSummary,
)
from solar_recon.matching.config import ReconciliationConfig
from solar_recon.worker.orchestrator import run_reconciliation
from solar_recon.worker.persistence import comparison_stats, list_match_results

router = APIRouter(prefix="/api/reconciliation", tags=["reconciliation"])

MatchStatus = Literal["confirmed", "pending_review"]
MatchMethod = Literal["exact_kw_date", "installer_fiscal_year", "fuzzy_installer_kw", "date_kw_only"]


@router.post("/run", response_model=ReconciliationSummary)
async def run(
    _operator: str = Depends(require_operator),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    config: ReconciliationConfig = Depends(get_reconciliation_config),
):
    """Run one reconciliation over all unmatched records.

    Responds 503 with the (zeroed) summary if either source could not be read.
    """
    summary = await run_reconciliation(session_factory, config)
    if summary["status"] == "error":
        return JSONResponse(status_code=503, content=summary)
    return ReconciliationSummary(**summary)


@router.get("/stats", response_model=ComparisonStats)
async def stats(db: AsyncSession = Depends(get_db)) -> ComparisonStats:
    """Matched/unmatched counts for both sources."""
    return ComparisonStats(**await comparison_stats(db))


@router.get("/matches", response_model=PaginatedResponse[MatchResultSchema])
async def matches(
    db: AsyncSession = Depends(get_db),
    status: MatchStatus | None = Query(default=None),
    method: MatchMethod | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=100),
) -> PaginatedResponse[MatchResultSchema]:
    """List match results, highest confidence first."""
    rows, total = await list_match_results(db, status=status, method=method, page=page, size=size)
    items = [MatchResultSchema.model_validate(r) for r in rows]
    pages = math.ceil(total / size) if total > 0 else 1
    return PaginatedResponse(items=items, total=total, page=page, size=size, pages=pages)
