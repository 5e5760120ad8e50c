"""Storage boundary for reconciliation runs.

Provides the read and write operations the engine needs:
- ``fetch_unmatched_installations`` / ``fetch_unmatched_interconnections``:
  load every row not yet referenced by a match result, validated into
  typed records.  Rows that fail validation are quarantined, not passed on.
- ``insert_match_results``: chunked append of accepted links that treats
  a uniqueness violation on one row as "already claimed" and keeps going.
- ``comparison_stats`` / ``list_match_results``: read-side summaries for
  the operator console.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import sqlalchemy as sa
import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solar_recon.matching.engine import CONFIRMED, MATCH_METHODS, PENDING_REVIEW, MatchResultRecord
from solar_recon.matching.records import InstallationRecord, InterconnectionRecord
from solar_recon.models.installation import Installation
from solar_recon.models.interconnection import Interconnection
from solar_recon.models.match_result import MatchResult

logger = structlog.get_logger()


class InputUnavailableError(Exception):
    """One of the input collections could not be read at all."""

    def __init__(self, source: str, cause: BaseException) -> None:
        super().__init__(f"Failed to fetch {source}: {cause}")
        self.source = source


@dataclass
class LoadResult:
    """Validated records plus the ids of rows that failed validation."""

    records: list
    quarantined: list[str] = field(default_factory=list)


@dataclass
class WriteReport:
    """Outcome of writing a batch of match results.

    Attributes:
        written: Rows actually persisted, in submission order.
        conflicts: Rows skipped because one side was already claimed.
        errors: Human-readable notes, one per skipped row or failed chunk.
    """

    written: list[MatchResultRecord] = field(default_factory=list)
    conflicts: int = 0
    errors: list[str] = field(default_factory=list)


def _installation_to_dict(row: Installation) -> dict:
    return {
        "id": row.id,
        "project_id": row.project_id,
        "address": row.address,
        "capacity_kw": row.installed_kw,
        "applied_date": row.applied_date,
        "issued_date": row.issued_date,
        "completed_date": row.completed_date,
        "contractor": row.contractor_company,
    }


def _interconnection_to_dict(row: Interconnection) -> dict:
    return {
        "id": row.id,
        "pir_number": row.pir_number,
        "capacity_kw": row.system_kw,
        "interconnection_date": row.interconnection_date,
        "payload": row.raw_data,
    }


async def _load_rows(session: AsyncSession, stmt: sa.Select, source: str) -> Sequence:
    try:
        result = await session.execute(stmt)
    except (SQLAlchemyError, OSError) as e:
        raise InputUnavailableError(source, e) from e
    return result.scalars().all()


def _validate_rows(
    rows: Sequence,
    to_dict: Callable[[object], dict],
    model: type[BaseModel],
    source: str,
) -> LoadResult:
    loaded = LoadResult(records=[])
    for row in rows:
        try:
            loaded.records.append(model.model_validate(to_dict(row)))
        except ValidationError as e:
            loaded.quarantined.append(str(row.id))
            logger.warning(
                "row_quarantined",
                source=source,
                row_id=row.id,
                errors=e.error_count(),
                detail=e.errors(include_url=False)[0]["msg"],
            )
    return loaded


async def fetch_unmatched_installations(
    session: AsyncSession, limit: int | None = None
) -> LoadResult:
    """Load permits whose id does not yet appear in any match result.

    Rows are ordered by id so that the engine's processing order (and
    therefore first-come exclusivity) is stable across runs.

    Raises:
        InputUnavailableError: If the query cannot be executed.
    """
    stmt = (
        sa.select(Installation)
        .where(Installation.id.not_in(sa.select(MatchResult.solar_installation_id)))
        .order_by(Installation.id)
    )
    if limit is not None:
        stmt = stmt.limit(limit)

    rows = await _load_rows(session, stmt, "solar_installations")
    return _validate_rows(rows, _installation_to_dict, InstallationRecord, "solar_installations")


async def fetch_unmatched_interconnections(session: AsyncSession) -> LoadResult:
    """Load interconnection requests not yet referenced by any match result.

    Raises:
        InputUnavailableError: If the query cannot be executed.
    """
    stmt = (
        sa.select(Interconnection)
        .where(Interconnection.id.not_in(sa.select(MatchResult.pir_installation_id)))
        .order_by(Interconnection.id)
    )
    rows = await _load_rows(session, stmt, "interconnection_requests")
    return _validate_rows(
        rows, _interconnection_to_dict, InterconnectionRecord, "interconnection_requests"
    )


_UNIQUE_VIOLATION_SQLSTATE = "23505"


def _is_unique_violation(error: IntegrityError) -> bool:
    """True if ``error`` is a uniqueness violation rather than a FK or CHECK failure."""
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate:
        return sqlstate == _UNIQUE_VIOLATION_SQLSTATE
    # sqlite3 carries no SQLSTATE; its message names the failed constraint kind
    return "UNIQUE constraint failed" in str(orig)


def _to_row(match: MatchResultRecord) -> MatchResult:
    return MatchResult(
        solar_installation_id=match.installation_id,
        pir_installation_id=match.interconnection_id,
        match_confidence=match.confidence,
        match_type=match.method,
        status=match.status,
        reviewed_notes=match.notes,
    )


async def _insert_rows_individually(
    session_factory: async_sessionmaker[AsyncSession],
    chunk: Sequence[MatchResultRecord],
    offset: int,
    report: WriteReport,
) -> None:
    """Insert each row in its own transaction, skipping claimed pairs."""
    for position, match in enumerate(chunk, start=offset + 1):
        try:
            async with session_factory() as session, session.begin():
                session.add(_to_row(match))
        except IntegrityError as e:
            if not _is_unique_violation(e):
                report.errors.append(f"Row {position}: insert error: {e.orig}")
                logger.error("match_write_rejected", position=position, error=str(e.orig))
                continue
            report.conflicts += 1
            report.errors.append(
                f"Row {position}: installation {match.installation_id} / "
                f"interconnection {match.interconnection_id} already claimed, skipped"
            )
            logger.warning(
                "match_write_conflict",
                position=position,
                installation_id=match.installation_id,
                interconnection_id=match.interconnection_id,
            )
        except (SQLAlchemyError, OSError) as e:
            report.errors.append(f"Row {position}: insert error: {e}")
            logger.error("match_write_failed", position=position, error=str(e))
        else:
            report.written.append(match)


async def insert_match_results(
    session_factory: async_sessionmaker[AsyncSession],
    matches: Sequence[MatchResultRecord],
    batch_size: int = 100,
) -> WriteReport:
    """Append match results in chunks of at most ``batch_size`` rows.

    Each chunk is written in its own transaction.  If a chunk violates a
    uniqueness constraint (a concurrent run already claimed one side of a
    pair), it is retried row by row so that only the conflicting rows are
    dropped.  Any other database error fails just that chunk; the run
    continues with the next one and the error is reported.
    """
    report = WriteReport()

    for start in range(0, len(matches), batch_size):
        chunk = matches[start : start + batch_size]
        try:
            async with session_factory() as session, session.begin():
                session.add_all([_to_row(m) for m in chunk])
        except IntegrityError:
            logger.warning("match_batch_conflict", batch_start=start, batch_size=len(chunk))
            await _insert_rows_individually(session_factory, chunk, start, report)
        except (SQLAlchemyError, OSError) as e:
            report.errors.append(
                f"Batch insert error (rows {start + 1}-{start + len(chunk)}): {e}"
            )
            logger.error("match_batch_failed", batch_start=start, error=str(e))
        else:
            report.written.extend(chunk)

    return report


async def comparison_stats(session: AsyncSession) -> dict:
    """Counts comparing the two sources and the links between them."""
    installations_total = await session.scalar(sa.select(sa.func.count(Installation.id)))
    interconnections_total = await session.scalar(sa.select(sa.func.count(Interconnection.id)))

    status_rows = (
        await session.execute(
            sa.select(MatchResult.status, sa.func.count(MatchResult.id)).group_by(MatchResult.status)
        )
    ).all()
    by_status = {CONFIRMED: 0, PENDING_REVIEW: 0}
    for status, cnt in status_rows:
        by_status[status] = cnt

    method_rows = (
        await session.execute(
            sa.select(MatchResult.match_type, sa.func.count(MatchResult.id)).group_by(
                MatchResult.match_type
            )
        )
    ).all()
    by_method = {method: 0 for method in MATCH_METHODS}
    for method, cnt in method_rows:
        by_method[method] = cnt

    matched = sum(by_status.values())
    return {
        "installations_total": installations_total or 0,
        "interconnections_total": interconnections_total or 0,
        "matched": matched,
        "confirmed": by_status[CONFIRMED],
        "pending_review": by_status[PENDING_REVIEW],
        "unmatched_installations": (installations_total or 0) - matched,
        "unmatched_interconnections": (interconnections_total or 0) - matched,
        "matches_by_method": by_method,
    }


async def list_match_results(
    session: AsyncSession,
    status: str | None = None,
    method: str | None = None,
    page: int = 1,
    size: int = 20,
) -> tuple[list[MatchResult], int]:
    """Page through match results, highest confidence first.

    Returns:
        ``(rows, total)`` where ``total`` counts all rows matching the filters.
    """
    stmt = sa.select(MatchResult)
    if status is not None:
        stmt = stmt.where(MatchResult.status == status)
    if method is not None:
        stmt = stmt.where(MatchResult.match_type == method)

    total = await session.scalar(sa.select(sa.func.count()).select_from(stmt.subquery()))

    stmt = (
        stmt.order_by(MatchResult.match_confidence.desc(), MatchResult.id)
        .offset((page - 1) * size)
        .limit(size)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all()), total or 0
