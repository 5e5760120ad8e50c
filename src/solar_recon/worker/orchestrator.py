"""Reconciliation run orchestrator bridging storage and the engine.

One run:
1. Loads all unmatched permits and interconnection requests.
2. Runs the reconciliation engine (pure function).
3. Appends accepted links in bounded batches.

A run is always safe to re-invoke: already-linked records are filtered
out on load, so an interrupted run resumes where it stopped and a
repeated run on unchanged data writes nothing.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solar_recon.config.settings import get_settings
from solar_recon.matching.config import ReconciliationConfig, load_reconciliation_config
from solar_recon.matching.engine import CONFIRMED, MATCH_METHODS, reconcile
from solar_recon.worker.persistence import (
    InputUnavailableError,
    fetch_unmatched_installations,
    fetch_unmatched_interconnections,
    insert_match_results,
)

logger = structlog.get_logger()


def _empty_method_counts() -> dict[str, int]:
    return {method: 0 for method in MATCH_METHODS}


def _error_summary(error: str) -> dict:
    return {
        "status": "error",
        "error": error,
        "processed": 0,
        "skipped": 0,
        "unmatched": 0,
        "quarantined": 0,
        "new_matches": 0,
        "confirmed": 0,
        "pending_review": 0,
        "matches_by_method": _empty_method_counts(),
        "conflicts": 0,
        "errors": [error],
    }


async def run_reconciliation(
    session_factory: async_sessionmaker[AsyncSession],
    config: ReconciliationConfig | None = None,
) -> dict:
    """Run one full reconciliation and return summary counters.

    Args:
        session_factory: Async session factory for DB access.
        config: Reconciliation policy.  If ``None``, it is loaded from the
            configured YAML file (or defaults if the file is absent).

    Returns:
        Stats dict.  ``status`` is ``"completed"`` or, when either input
        collection cannot be read, ``"error"`` with nothing written.
    """
    if config is None:
        config = load_reconciliation_config(get_settings().reconciliation_config_path)
    log = logger.bind(run_id=uuid.uuid4().hex[:12])
    log.info("reconciliation_started")

    # Step 1: Load both snapshots; either failing aborts the run
    try:
        async with session_factory() as session:
            installations = await fetch_unmatched_installations(
                session, limit=config.persistence.max_installations_per_run
            )
            interconnections = await fetch_unmatched_interconnections(session)
    except InputUnavailableError as e:
        log.error("reconciliation_input_unavailable", source=e.source, error=str(e), exc_info=True)
        return _error_summary(str(e))

    quarantined = len(installations.quarantined) + len(interconnections.quarantined)
    log.info(
        "records_loaded",
        installations=len(installations.records),
        interconnections=len(interconnections.records),
        quarantined=quarantined,
    )

    # Step 2: Match (pure function)
    result = reconcile(installations.records, interconnections.records, config)
    log.info(
        "matching_complete",
        processed=result.processed,
        skipped=result.skipped,
        unmatched=result.unmatched,
        accepted=len(result.matches),
    )

    # Step 3: Persist in bounded batches
    report = await insert_match_results(
        session_factory, result.matches, batch_size=config.persistence.batch_size
    )

    matches_by_method = _empty_method_counts()
    for match in report.written:
        matches_by_method[match.method] += 1
    confirmed = sum(1 for m in report.written if m.status == CONFIRMED)

    summary = {
        "status": "completed",
        "processed": result.processed,
        "skipped": result.skipped,
        "unmatched": result.unmatched,
        "quarantined": quarantined,
        "new_matches": len(report.written),
        "confirmed": confirmed,
        "pending_review": len(report.written) - confirmed,
        "matches_by_method": matches_by_method,
        "conflicts": report.conflicts,
        "errors": report.errors,
    }
    log.info(
        "reconciliation_complete",
        new_matches=summary["new_matches"],
        conflicts=report.conflicts,
        errors=len(report.errors),
    )
    return summary
