"""Typed record shapes consumed by the reconciliation engine.

Rows coming back from the store are validated into these models before
any scoring happens.  Soft problems (an unparseable date, a zero kW
rating, a junk fiscal-year string) are coerced to ``None`` so the record
simply becomes eligible for fewer passes.  Hard problems (no id, a
non-numeric capacity, a payload that is not a mapping) raise
``pydantic.ValidationError`` and the caller quarantines the row.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from solar_recon.preprocessing.fiscal_year import coerce_date, fiscal_year_for

_FISCAL_YEAR_RE = re.compile(r"^\s*(?:FY\s*)?(\d{4})", re.IGNORECASE)


def _coerce_id(value: object) -> str:
    if value is None:
        raise ValueError("record id is required")
    text = str(value).strip()
    if not text:
        raise ValueError("record id is required")
    return text


def _coerce_capacity(value: object) -> float | None:
    """Numeric capacity in kW; missing, zero, negative and NaN become ``None``.

    Infinite values (``"inf"``, ``"1e400"``, a stored ``Infinity``) are rejected
    so the row is quarantined.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("capacity must be numeric")
    if isinstance(value, (int, float, Decimal)):
        kw = float(value)
    elif isinstance(value, str):
        kw = float(value.strip())  # ValueError -> quarantine
    else:
        raise ValueError(f"capacity must be numeric, got {type(value).__name__}")
    if math.isinf(kw):
        raise ValueError(f"capacity must be finite, got {value!r}")
    if math.isnan(kw) or kw <= 0:
        return None
    return kw


def _coerce_optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class InstallationRecord(BaseModel):
    """A city permit (source A)."""

    model_config = ConfigDict(frozen=True)

    id: str
    project_id: str | None = None
    address: str | None = None
    capacity_kw: float | None = None
    applied_date: dt.date | None = None
    issued_date: dt.date | None = None
    completed_date: dt.date | None = None
    contractor: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def check_id(cls, v: object) -> str:
        return _coerce_id(v)

    @field_validator("capacity_kw", mode="before")
    @classmethod
    def check_capacity(cls, v: object) -> float | None:
        return _coerce_capacity(v)

    @field_validator("applied_date", "issued_date", "completed_date", mode="before")
    @classmethod
    def parse_dates(cls, v: object) -> dt.date | None:
        return coerce_date(v)

    @field_validator("project_id", "address", "contractor", mode="before")
    @classmethod
    def strip_text(cls, v: object) -> str | None:
        return _coerce_optional_text(v)

    @property
    def match_date(self) -> dt.date | None:
        """Completion date, falling back to the issue date."""
        return self.completed_date or self.issued_date

    @property
    def fiscal_year(self) -> int | None:
        return fiscal_year_for(self.match_date)


class InterconnectionPayload(BaseModel):
    """Auxiliary fields carried in an interconnection request's ``raw_data``.

    Attributes:
        installer: Installer company name as typed by the utility.
        fiscal_year: Fiscal year supplied by the utility export, if any.
        extras: Every other key of the original payload (``battery_kwh``,
            ``cost``, ``ae_rebate``, future import columns), passed through
            untouched and never used for matching.
    """

    model_config = ConfigDict(frozen=True)

    installer: str | None = None
    fiscal_year: int | None = None
    extras: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def collect_extras(cls, data: object) -> dict:
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"payload must be a mapping, got {type(data).__name__}")
        extras = dict(data.get("extras") or {})
        extras.update(
            (k, v) for k, v in data.items() if k not in ("installer", "fiscal_year", "extras")
        )
        return {
            "installer": data.get("installer"),
            "fiscal_year": data.get("fiscal_year"),
            "extras": extras,
        }

    @field_validator("installer", mode="before")
    @classmethod
    def strip_installer(cls, v: object) -> str | None:
        return _coerce_optional_text(v)

    @field_validator("fiscal_year", mode="before")
    @classmethod
    def parse_fiscal_year(cls, v: object) -> int | None:
        """Accept ``2023``, ``"2023"``, ``"FY2023"``, ``"2023-24"``; else ``None``."""
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, int):
            return v
        if isinstance(v, float):
            return int(v) if v.is_integer() else None
        if isinstance(v, str):
            m = _FISCAL_YEAR_RE.match(v)
            return int(m.group(1)) if m else None
        return None


class InterconnectionRecord(BaseModel):
    """A utility interconnection request (source B)."""

    model_config = ConfigDict(frozen=True)

    id: str
    pir_number: str | None = None
    capacity_kw: float | None = None
    interconnection_date: dt.date | None = None
    payload: InterconnectionPayload = Field(default_factory=InterconnectionPayload)

    @field_validator("id", mode="before")
    @classmethod
    def check_id(cls, v: object) -> str:
        return _coerce_id(v)

    @field_validator("pir_number", mode="before")
    @classmethod
    def strip_pir_number(cls, v: object) -> str | None:
        return _coerce_optional_text(v)

    @field_validator("capacity_kw", mode="before")
    @classmethod
    def check_capacity(cls, v: object) -> float | None:
        return _coerce_capacity(v)

    @field_validator("interconnection_date", mode="before")
    @classmethod
    def parse_date(cls, v: object) -> dt.date | None:
        return coerce_date(v)

    @field_validator("payload", mode="before")
    @classmethod
    def default_payload(cls, v: object) -> object:
        return {} if v is None else v

    @property
    def installer(self) -> str | None:
        return self.payload.installer

    @property
    def fiscal_year(self) -> int | None:
        """Explicit payload fiscal year, else derived from the interconnection date."""
        if self.payload.fiscal_year is not None:
            return self.payload.fiscal_year
        return fiscal_year_for(self.interconnection_date)
