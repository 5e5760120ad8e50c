"""Lookup indexes over the interconnection snapshot for one run.

A ``ReconciliationIndex`` is built fresh from the records loaded for a
single reconciliation and discarded afterwards; nothing is cached at
module level.  Bucket contents keep snapshot order so that candidate
generation is reproducible for a fixed input order.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from solar_recon.matching.records import InterconnectionRecord
from solar_recon.matching.scorers.capacity_scorer import capacity_bucket
from solar_recon.preprocessing.normalizer import normalize_company_name


@dataclass
class ReconciliationIndex:
    """Capacity, fiscal-year and installer indexes over interconnection records.

    Attributes:
        records: All records, in snapshot order.
        by_capacity_bucket: Bucketed capacity -> records (null capacity omitted).
        by_fiscal_year: Fiscal year -> records (undated, unlabelled omitted).
        by_installer: Normalized installer -> records (missing/empty omitted).
        installer_keys: Record id -> normalized installer, for indexed records.
        bucket_width: Capacity bucket width in kW.
    """

    records: list[InterconnectionRecord]
    by_capacity_bucket: dict[float, list[InterconnectionRecord]] = field(default_factory=dict)
    by_fiscal_year: dict[int, list[InterconnectionRecord]] = field(default_factory=dict)
    by_installer: dict[str, list[InterconnectionRecord]] = field(default_factory=dict)
    installer_keys: dict[str, str] = field(default_factory=dict)
    bucket_width: float = 0.5

    @classmethod
    def from_records(
        cls, records: Iterable[InterconnectionRecord], bucket_width: float = 0.5
    ) -> ReconciliationIndex:
        """Build all three indexes in a single pass over ``records``."""
        index = cls(records=list(records), bucket_width=bucket_width)

        for rec in index.records:
            bucket = capacity_bucket(rec.capacity_kw, bucket_width)
            if bucket is not None:
                index.by_capacity_bucket.setdefault(bucket, []).append(rec)

            fy = rec.fiscal_year
            if fy is not None:
                index.by_fiscal_year.setdefault(fy, []).append(rec)

            installer = normalize_company_name(rec.installer)
            if installer:
                index.by_installer.setdefault(installer, []).append(rec)
                index.installer_keys[rec.id] = installer

        return index

    def by_capacity(self, kw: float | None) -> list[InterconnectionRecord]:
        """Records whose capacity falls in the same bucket as ``kw``."""
        bucket = capacity_bucket(kw, self.bucket_width)
        if bucket is None:
            return []
        return self.by_capacity_bucket.get(bucket, [])

    def by_installer_fiscal_year(
        self, installer: str, fiscal_year: int
    ) -> list[InterconnectionRecord]:
        """Records sharing both the normalized installer and the fiscal year.

        Iterates the installer bucket (snapshot order) and keeps those also
        present in the fiscal-year bucket.
        """
        installer_records = self.by_installer.get(installer, [])
        if not installer_records:
            return []
        same_year = {rec.id for rec in self.by_fiscal_year.get(fiscal_year, [])}
        return [rec for rec in installer_records if rec.id in same_year]

    def installer_buckets(self) -> Iterator[tuple[str, list[InterconnectionRecord]]]:
        """Yield ``(normalized_installer, records)`` in first-seen order."""
        yield from self.by_installer.items()

    def normalized_installer(self, record: InterconnectionRecord) -> str:
        """Normalized installer of an indexed record (empty if it has none)."""
        return self.installer_keys.get(record.id, "")
