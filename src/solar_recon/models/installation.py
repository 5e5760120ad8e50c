"""City permit records (source A)."""

from __future__ import annotations

import datetime as dt
import uuid

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from solar_recon.models.base import Base


class Installation(Base):
    __tablename__ = "solar_installations"

    id: Mapped[str] = mapped_column(sa.String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id: Mapped[str | None] = mapped_column(sa.String, unique=True, nullable=True)
    permit_class: Mapped[str | None] = mapped_column(sa.String, nullable=True)

    # Address is authoritative for this source (geocoding happens elsewhere)
    address: Mapped[str] = mapped_column(sa.String)

    installed_kw: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    applied_date: Mapped[dt.date | None] = mapped_column(sa.Date, nullable=True)
    issued_date: Mapped[dt.date | None] = mapped_column(sa.Date, nullable=True)
    completed_date: Mapped[dt.date | None] = mapped_column(sa.Date, nullable=True)
    calendar_year_issued: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)

    contractor_company: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    contractor_city: Mapped[str | None] = mapped_column(sa.String, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))

    __table_args__ = (sa.Index("ix_solar_installations_installed_kw", "installed_kw"),)
