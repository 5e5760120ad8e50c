"""Cross-source reconciliation engine.

Links city permits (source A) to utility interconnection requests
(source B).  The two sources share no identifier, so each permit is
scored against indexed interconnection records in four passes of
decreasing strictness, and the single best candidate above the
acceptance threshold is kept.  All functions are PURE -- no database
access; loading and writing live in ``solar_recon.worker``.

Exclusivity: once an interconnection record is accepted for a permit it
is consumed for the rest of the run, so permits processed later never
see it.  Permits are therefore order-sensitive by nature; for a fixed
input order the output is fully reproducible because the best candidate
is chosen by ``(score desc, pass order asc, interconnection id asc)``
rather than by incidental collection order.
"""

from __future__ import annotations

import datetime as dt
import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from solar_recon.matching.config import ReconciliationConfig
from solar_recon.matching.index import ReconciliationIndex
from solar_recon.matching.records import InstallationRecord, InterconnectionRecord
from solar_recon.matching.scorers import (
    capacity_score,
    date_bonus,
    days_between,
    name_similarity,
)
from solar_recon.preprocessing.normalizer import normalize_company_name

EXACT_KW_DATE = "exact_kw_date"
INSTALLER_FISCAL_YEAR = "installer_fiscal_year"
FUZZY_INSTALLER_KW = "fuzzy_installer_kw"
DATE_KW_ONLY = "date_kw_only"

# Evaluation order; also the tie-break order between passes
MATCH_METHODS: tuple[str, ...] = (
    EXACT_KW_DATE,
    INSTALLER_FISCAL_YEAR,
    FUZZY_INSTALLER_KW,
    DATE_KW_ONLY,
)

CONFIRMED = "confirmed"
PENDING_REVIEW = "pending_review"


def round_confidence(score: float) -> int:
    """Round half up to an integer confidence."""
    return int(math.floor(score + 0.5))


@dataclass
class MatchCandidate:
    """A scored permit/interconnection pairing produced by one pass.

    Attributes:
        interconnection_id: The candidate interconnection record.
        method: Pass that produced the candidate.
        score: Raw confidence, already clamped to the method ceiling.
        evidence: Human-readable fragments, in the order they contributed.
    """

    interconnection_id: str
    method: str
    score: float
    evidence: list[str]

    @property
    def pass_order(self) -> int:
        return MATCH_METHODS.index(self.method)

    @property
    def confidence(self) -> int:
        return round_confidence(self.score)

    def sort_key(self) -> tuple[float, int, str]:
        return (-self.score, self.pass_order, self.interconnection_id)


@dataclass
class MatchResultRecord:
    """An accepted link, ready to persist.

    Attributes:
        installation_id: Permit id (source A).
        interconnection_id: Interconnection request id (source B).
        confidence: Integer confidence 0-100.
        method: One of ``MATCH_METHODS``.
        status: ``"confirmed"`` or ``"pending_review"``.
        evidence: Ordered evidence fragments behind the score.
    """

    installation_id: str
    interconnection_id: str
    confidence: int
    method: str
    status: str
    evidence: list[str] = field(default_factory=list)

    @property
    def notes(self) -> str:
        return "; ".join(self.evidence)


@dataclass
class ReconciliationResult:
    """Aggregate result from one engine run.

    Attributes:
        matches: Accepted links, in permit processing order.
        processed: Permits examined.
        skipped: Permits with too little data for any pass.
        unmatched: Permits with candidates, none reaching the threshold
            (or no candidates at all).
        method_counts: Accepted links per method.
    """

    matches: list[MatchResultRecord]
    processed: int
    skipped: int
    unmatched: int
    method_counts: dict[str, int]

    @property
    def confirmed_count(self) -> int:
        return sum(1 for m in self.matches if m.status == CONFIRMED)

    @property
    def pending_review_count(self) -> int:
        return sum(1 for m in self.matches if m.status == PENDING_REVIEW)


@dataclass(frozen=True)
class _PermitKeys:
    """Matching keys derived once per permit."""

    contractor: str
    capacity_kw: float | None
    match_date: dt.date | None
    fiscal_year: int | None

    @classmethod
    def of(cls, permit: InstallationRecord) -> _PermitKeys:
        return cls(
            contractor=normalize_company_name(permit.contractor),
            capacity_kw=permit.capacity_kw,
            match_date=permit.match_date,
            fiscal_year=permit.fiscal_year,
        )

    @property
    def has_any_pass(self) -> bool:
        has_kw = self.capacity_kw is not None
        has_date = self.match_date is not None
        return (
            (has_kw and has_date)
            or (bool(self.contractor) and self.fiscal_year is not None)
            or (bool(self.contractor) and has_kw)
        )


def _kw_evidence(permit_kw: float | None, pir_kw: float | None, score: int) -> str:
    return f"kW: {_fmt_kw(permit_kw)} vs {_fmt_kw(pir_kw)} ({score}% match)"


def _fmt_kw(kw: float | None) -> str:
    return "n/a" if kw is None else f"{kw:g}"


def _exact_kw_date_pass(
    keys: _PermitKeys,
    index: ReconciliationIndex,
    consumed: set[str],
    config: ReconciliationConfig,
) -> list[MatchCandidate]:
    """Pass 1: same capacity bucket, dates within the window."""
    cfg = config.exact_kw_date
    candidates: list[MatchCandidate] = []

    for pir in index.by_capacity(keys.capacity_kw):
        if pir.id in consumed:
            continue

        kw_score = capacity_score(keys.capacity_kw, pir.capacity_kw)
        days = days_between(keys.match_date, pir.interconnection_date)
        if kw_score < cfg.min_capacity_score or days is None or days > cfg.max_days:
            continue

        score = cfg.base + kw_score / 100 * cfg.capacity_weight
        evidence = [_kw_evidence(keys.capacity_kw, pir.capacity_kw, kw_score)]

        score += date_bonus(days, cfg.date_bonuses)
        evidence.append(f"Date: {days} days apart")

        pir_installer = index.normalized_installer(pir)
        if keys.contractor and pir_installer:
            similarity = name_similarity(keys.contractor, pir_installer)
            if similarity >= cfg.installer_min_similarity:
                score += cfg.installer_bonus
                evidence.append(f"Installer: {similarity:.0f}% similar")

        candidates.append(
            MatchCandidate(pir.id, EXACT_KW_DATE, min(score, cfg.ceiling), evidence)
        )

    return candidates


def _installer_fiscal_year_pass(
    keys: _PermitKeys,
    contractor_display: str | None,
    index: ReconciliationIndex,
    consumed: set[str],
    config: ReconciliationConfig,
) -> list[MatchCandidate]:
    """Pass 2: same normalized installer within the same fiscal year."""
    cfg = config.installer_fiscal_year
    candidates: list[MatchCandidate] = []

    for pir in index.by_installer_fiscal_year(keys.contractor, keys.fiscal_year):
        if pir.id in consumed:
            continue

        score = cfg.base
        evidence = [
            f"Installer match: {contractor_display}",
            f"Same fiscal year: FY{keys.fiscal_year}",
        ]

        kw_score = capacity_score(keys.capacity_kw, pir.capacity_kw)
        if kw_score >= cfg.min_capacity_score:
            score += kw_score / 100 * cfg.capacity_weight
            evidence.append(_kw_evidence(keys.capacity_kw, pir.capacity_kw, kw_score))

        days = days_between(keys.match_date, pir.interconnection_date)
        bonus = date_bonus(days, cfg.date_bonuses)
        if bonus:
            score += bonus
            evidence.append(f"Date: {days} days apart")

        candidates.append(
            MatchCandidate(pir.id, INSTALLER_FISCAL_YEAR, min(score, cfg.ceiling), evidence)
        )

    return candidates


def _fuzzy_installer_kw_pass(
    keys: _PermitKeys,
    index: ReconciliationIndex,
    consumed: set[str],
    config: ReconciliationConfig,
) -> list[MatchCandidate]:
    """Pass 3: similar installer name and similar capacity, wide date window."""
    cfg = config.fuzzy_installer_kw
    candidates: list[MatchCandidate] = []

    for installer_key, records in index.installer_buckets():
        similarity = name_similarity(keys.contractor, installer_key)
        if similarity < cfg.min_similarity:
            continue

        for pir in records:
            if pir.id in consumed:
                continue

            kw_score = capacity_score(keys.capacity_kw, pir.capacity_kw)
            if kw_score < cfg.min_capacity_score:
                continue

            score = cfg.base + similarity / 100 * cfg.similarity_weight
            evidence = [f"Installer: {similarity:.0f}% similar"]

            score += kw_score / 100 * cfg.capacity_weight
            evidence.append(_kw_evidence(keys.capacity_kw, pir.capacity_kw, kw_score))

            days = days_between(keys.match_date, pir.interconnection_date)
            bonus = date_bonus(days, cfg.date_bonuses)
            if bonus:
                score += bonus
                evidence.append(f"Date: {days} days apart")

            if score >= cfg.min_confidence:
                candidates.append(
                    MatchCandidate(pir.id, FUZZY_INSTALLER_KW, min(score, cfg.ceiling), evidence)
                )

    return candidates


def _date_kw_only_pass(
    keys: _PermitKeys,
    index: ReconciliationIndex,
    consumed: set[str],
    config: ReconciliationConfig,
) -> list[MatchCandidate]:
    """Pass 4: permit has no installer; near-identical capacity and date."""
    cfg = config.date_kw_only
    candidates: list[MatchCandidate] = []

    for pir in index.records:
        if pir.id in consumed:
            continue

        kw_score = capacity_score(keys.capacity_kw, pir.capacity_kw)
        days = days_between(keys.match_date, pir.interconnection_date)
        if kw_score < cfg.min_capacity_score or days is None or days > cfg.max_days:
            continue

        score = cfg.base + kw_score / 100 * cfg.capacity_weight
        evidence = [_kw_evidence(keys.capacity_kw, pir.capacity_kw, kw_score)]

        score += date_bonus(days, cfg.date_bonuses)
        evidence.append(f"Date: {days} days apart")

        candidates.append(
            MatchCandidate(pir.id, DATE_KW_ONLY, min(score, cfg.ceiling), evidence)
        )

    return candidates


def generate_candidates(
    permit: InstallationRecord,
    index: ReconciliationIndex,
    consumed: set[str],
    config: ReconciliationConfig,
) -> list[MatchCandidate]:
    """Run every eligible pass for one permit, in pass order.

    Passes whose required permit fields are missing are not run; a
    missing date, capacity or installer is never an error.
    """
    return _run_passes(_PermitKeys.of(permit), permit.contractor, index, consumed, config)


def _run_passes(
    keys: _PermitKeys,
    contractor_display: str | None,
    index: ReconciliationIndex,
    consumed: set[str],
    config: ReconciliationConfig,
) -> list[MatchCandidate]:
    has_kw = keys.capacity_kw is not None
    has_date = keys.match_date is not None
    candidates: list[MatchCandidate] = []

    if has_kw and has_date:
        candidates.extend(_exact_kw_date_pass(keys, index, consumed, config))

    if keys.contractor and keys.fiscal_year is not None:
        candidates.extend(
            _installer_fiscal_year_pass(keys, contractor_display, index, consumed, config)
        )

    if keys.contractor and has_kw:
        candidates.extend(_fuzzy_installer_kw_pass(keys, index, consumed, config))

    if not keys.contractor and has_kw and has_date:
        candidates.extend(_date_kw_only_pass(keys, index, consumed, config))

    return candidates


def select_best(candidates: Iterable[MatchCandidate]) -> MatchCandidate | None:
    """Pick the highest-scoring candidate.

    Ties are broken by pass order (an earlier pass wins), then by the
    lowest interconnection id, so the choice never depends on the order
    in which candidates happened to be collected.
    """
    return min(candidates, key=MatchCandidate.sort_key, default=None)


def disposition(confidence: int, config: ReconciliationConfig) -> str:
    """Map a final confidence to ``"confirmed"`` or ``"pending_review"``."""
    return CONFIRMED if confidence >= config.thresholds.confirm else PENDING_REVIEW


def reconcile(
    installations: Iterable[InstallationRecord],
    interconnections: Iterable[InterconnectionRecord],
    config: ReconciliationConfig | None = None,
) -> ReconciliationResult:
    """Link permits to interconnection requests.  PURE FUNCTION -- no DB access.

    1. Indexes the interconnection snapshot (capacity bucket, fiscal year,
       normalized installer).
    2. For each permit, in the given order, collects candidates from the
       four passes against records not yet consumed in this run.
    3. Accepts the best candidate if its score reaches the acceptance
       threshold and consumes its interconnection record.

    Args:
        installations: Unmatched permits, in processing order.
        interconnections: Unmatched interconnection requests.
        config: Reconciliation policy; defaults when ``None``.

    Returns:
        A ``ReconciliationResult`` with accepted links and run counters.
    """
    if config is None:
        config = ReconciliationConfig()

    index = ReconciliationIndex.from_records(
        interconnections, bucket_width=config.capacity_bucket_kw
    )
    consumed: set[str] = set()
    matches: list[MatchResultRecord] = []
    method_counts = {method: 0 for method in MATCH_METHODS}
    processed = 0
    skipped = 0
    unmatched = 0

    for permit in installations:
        processed += 1

        keys = _PermitKeys.of(permit)
        if not keys.has_any_pass:
            skipped += 1
            continue

        best = select_best(_run_passes(keys, permit.contractor, index, consumed, config))
        if best is None or best.score < config.thresholds.accept:
            unmatched += 1
            continue

        consumed.add(best.interconnection_id)
        confidence = best.confidence
        matches.append(
            MatchResultRecord(
                installation_id=permit.id,
                interconnection_id=best.interconnection_id,
                confidence=confidence,
                method=best.method,
                status=disposition(confidence, config),
                evidence=best.evidence,
            )
        )
        method_counts[best.method] += 1

    return ReconciliationResult(
        matches=matches,
        processed=processed,
        skipped=skipped,
        unmatched=unmatched,
        method_counts=method_counts,
    )
