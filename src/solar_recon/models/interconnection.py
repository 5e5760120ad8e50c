"""Utility interconnection request (PIR) records (source B)."""

from __future__ import annotations

import datetime as dt
import uuid

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from solar_recon.models.base import Base


class Interconnection(Base):
    """A utility interconnection request.

    The utility redacts street addresses, so ``address`` only ever holds a
    synthetic placeholder (installer + date + kW) and is never matched on.
    Installer and fiscal year arrive inside the loosely typed ``raw_data``
    payload and are validated into ``InterconnectionPayload`` on read.
    """

    __tablename__ = "interconnection_requests"

    id: Mapped[str] = mapped_column(sa.String, primary_key=True, default=lambda: str(uuid.uuid4()))
    pir_number: Mapped[str | None] = mapped_column(sa.String, unique=True, nullable=True)
    address: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    system_kw: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    interconnection_date: Mapped[dt.date | None] = mapped_column(sa.Date, nullable=True)
    customer_type: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    raw_data: Mapped[dict | None] = mapped_column(sa.JSON, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))

    __table_args__ = (
        sa.Index("ix_interconnection_requests_system_kw", "system_kw"),
        sa.Index("ix_interconnection_requests_interconnection_date", "interconnection_date"),
    )
