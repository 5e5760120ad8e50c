"""Persisted links between a permit and an interconnection request."""

from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from solar_recon.models.base import Base


class MatchResult(Base):
    """One accepted reconciliation link.

    Rows are append-only.  Each side of a pair may be claimed at most once,
    enforced by the two single-column unique constraints so that concurrent
    runs cannot double-match a record.
    """

    __tablename__ = "data_match_results"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    solar_installation_id: Mapped[str] = mapped_column(sa.String, sa.ForeignKey("solar_installations.id"))
    pir_installation_id: Mapped[str] = mapped_column(sa.String, sa.ForeignKey("interconnection_requests.id"))

    match_confidence: Mapped[int] = mapped_column(sa.Integer)
    match_type: Mapped[str] = mapped_column(sa.String)
    status: Mapped[str] = mapped_column(sa.String, default="pending_review")
    reviewed_notes: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        sa.UniqueConstraint("solar_installation_id", name="uq_match_results_installation"),
        sa.UniqueConstraint("pir_installation_id", name="uq_match_results_interconnection"),
        sa.CheckConstraint("match_confidence >= 0 AND match_confidence <= 100", name="valid_confidence"),
        sa.CheckConstraint(
            "match_type IN ('exact_kw_date', 'installer_fiscal_year', 'fuzzy_installer_kw', 'date_kw_only')",
            name="valid_match_type",
        ),
        sa.CheckConstraint("status IN ('confirmed', 'pending_review')", name="valid_status"),
        sa.Index("ix_match_results_status", "status"),
        sa.Index("ix_match_results_confidence", "match_confidence"),
    )
