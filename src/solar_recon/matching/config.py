"""Reconciliation policy configuration with the production defaults.

The acceptance threshold, per-method ceilings and date-bonus tiers are
policy judgments about tolerable false-positive risk, not derived
constants.  All of them can be overridden via ``config/reconciliation.yaml``;
if the file does not exist, defaults are used.
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, field_validator, model_validator


class DateBonusTier(BaseModel):
    """Bonus awarded when two dates are at most ``max_days`` apart."""

    max_days: int
    bonus: float


class PassConfig(BaseModel):
    """Fields shared by every matching pass."""

    base: float
    date_bonuses: list[DateBonusTier] = []
    ceiling: int = 100

    @field_validator("date_bonuses")
    @classmethod
    def check_tiers_sorted(cls, tiers: list[DateBonusTier]) -> list[DateBonusTier]:
        days = [t.max_days for t in tiers]
        if days != sorted(days):
            raise ValueError("date bonus tiers must be ordered by ascending max_days")
        return tiers


class ThresholdConfig(BaseModel):
    """Acceptance and disposition thresholds on the final confidence."""

    accept: int = 55
    confirm: int = 85

    @model_validator(mode="after")
    def check_order(self) -> "ThresholdConfig":
        if self.accept > self.confirm:
            raise ValueError("accept threshold must not exceed confirm threshold")
        return self


class ExactKwDateConfig(PassConfig):
    """Pass 1: same capacity bucket, dates within a month."""

    base: float = 70
    min_capacity_score: int = 85
    capacity_weight: float = 15
    max_days: int = 30
    date_bonuses: list[DateBonusTier] = [
        DateBonusTier(max_days=7, bonus=15),
        DateBonusTier(max_days=14, bonus=12),
        DateBonusTier(max_days=21, bonus=8),
        DateBonusTier(max_days=30, bonus=5),
    ]
    installer_min_similarity: float = 80
    installer_bonus: float = 10
    ceiling: int = 98


class InstallerFiscalYearConfig(PassConfig):
    """Pass 2: same normalized installer in the same fiscal year."""

    base: float = 50
    min_capacity_score: int = 50
    capacity_weight: float = 20
    date_bonuses: list[DateBonusTier] = [
        DateBonusTier(max_days=30, bonus=15),
        DateBonusTier(max_days=60, bonus=10),
        DateBonusTier(max_days=90, bonus=5),
    ]
    ceiling: int = 90


class FuzzyInstallerKwConfig(PassConfig):
    """Pass 3: similar installer name and similar capacity."""

    base: float = 35
    min_similarity: float = 70
    similarity_weight: float = 15
    min_capacity_score: int = 50
    capacity_weight: float = 15
    date_bonuses: list[DateBonusTier] = [
        DateBonusTier(max_days=60, bonus=15),
        DateBonusTier(max_days=120, bonus=10),
        DateBonusTier(max_days=180, bonus=5),
    ]
    min_confidence: float = 55
    ceiling: int = 85


class DateKwOnlyConfig(PassConfig):
    """Pass 4: no installer on the permit, near-identical capacity and date."""

    base: float = 60
    min_capacity_score: int = 90
    capacity_weight: float = 15
    max_days: int = 14
    date_bonuses: list[DateBonusTier] = [
        DateBonusTier(max_days=3, bonus=15),
        DateBonusTier(max_days=7, bonus=12),
        DateBonusTier(max_days=14, bonus=8),
    ]
    ceiling: int = 80


class PersistenceConfig(BaseModel):
    """Bounds on how much one run reads and writes at a time."""

    batch_size: int = 100
    max_installations_per_run: int | None = None

    @field_validator("batch_size")
    @classmethod
    def check_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("batch_size must be at least 1")
        return v


class ReconciliationConfig(BaseModel):
    """Top-level reconciliation configuration combining all sub-configs."""

    thresholds: ThresholdConfig = ThresholdConfig()
    capacity_bucket_kw: float = 0.5
    exact_kw_date: ExactKwDateConfig = ExactKwDateConfig()
    installer_fiscal_year: InstallerFiscalYearConfig = InstallerFiscalYearConfig()
    fuzzy_installer_kw: FuzzyInstallerKwConfig = FuzzyInstallerKwConfig()
    date_kw_only: DateKwOnlyConfig = DateKwOnlyConfig()
    persistence: PersistenceConfig = PersistenceConfig()

    @model_validator(mode="after")
    def warn_if_ceiling_below_threshold(self) -> "ReconciliationConfig":
        """Log a warning for passes that can never produce an accepted match."""
        for name in ("exact_kw_date", "installer_fiscal_year", "fuzzy_installer_kw", "date_kw_only"):
            ceiling = getattr(self, name).ceiling
            if ceiling < self.thresholds.accept:
                structlog.get_logger().warning(
                    "pass_ceiling_below_threshold",
                    match_pass=name,
                    ceiling=ceiling,
                    accept=self.thresholds.accept,
                )
        return self


def load_reconciliation_config(path: Path) -> ReconciliationConfig:
    """Load reconciliation configuration from a YAML file.

    If the file does not exist, returns a ``ReconciliationConfig`` with all
    default values.  Partial overrides are supported -- only the keys
    present in the YAML file will override defaults.
    """
    if not path.exists():
        return ReconciliationConfig()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return ReconciliationConfig(**data)
