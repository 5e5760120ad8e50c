"""Initial schema: permits, interconnection requests, match results, admin sessions.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "solar_installations",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("project_id", sa.String(), nullable=True, unique=True),
        sa.Column("permit_class", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=False),
        sa.Column("installed_kw", sa.Float(), nullable=True),
        sa.Column("applied_date", sa.Date(), nullable=True),
        sa.Column("issued_date", sa.Date(), nullable=True),
        sa.Column("completed_date", sa.Date(), nullable=True),
        sa.Column("calendar_year_issued", sa.Integer(), nullable=True),
        sa.Column("contractor_company", sa.String(), nullable=True),
        sa.Column("contractor_city", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_solar_installations_installed_kw", "solar_installations", ["installed_kw"])

    op.create_table(
        "interconnection_requests",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("pir_number", sa.String(), nullable=True, unique=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("system_kw", sa.Float(), nullable=True),
        sa.Column("interconnection_date", sa.Date(), nullable=True),
        sa.Column("customer_type", sa.String(), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index(
        "ix_interconnection_requests_system_kw", "interconnection_requests", ["system_kw"]
    )
    op.create_index(
        "ix_interconnection_requests_interconnection_date",
        "interconnection_requests",
        ["interconnection_date"],
    )

    op.create_table(
        "data_match_results",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "solar_installation_id",
            sa.String(),
            sa.ForeignKey("solar_installations.id"),
            nullable=False,
        ),
        sa.Column(
            "pir_installation_id",
            sa.String(),
            sa.ForeignKey("interconnection_requests.id"),
            nullable=False,
        ),
        sa.Column("match_confidence", sa.Integer(), nullable=False),
        sa.Column("match_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending_review"),
        sa.Column("reviewed_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("solar_installation_id", name="uq_match_results_installation"),
        sa.UniqueConstraint("pir_installation_id", name="uq_match_results_interconnection"),
        sa.CheckConstraint(
            "match_confidence >= 0 AND match_confidence <= 100", name="valid_confidence"
        ),
        sa.CheckConstraint(
            "match_type IN ('exact_kw_date', 'installer_fiscal_year', "
            "'fuzzy_installer_kw', 'date_kw_only')",
            name="valid_match_type",
        ),
        sa.CheckConstraint("status IN ('confirmed', 'pending_review')", name="valid_status"),
    )
    op.create_index("ix_match_results_status", "data_match_results", ["status"])
    op.create_index("ix_match_results_confidence", "data_match_results", ["match_confidence"])

    op.create_table(
        "admin_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("token", sa.String(), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
    )


def downgrade() -> None:
    op.drop_table("admin_sessions")
    op.drop_index("ix_match_results_confidence")
    op.drop_index("ix_match_results_status")
    op.drop_table("data_match_results")
    op.drop_index("ix_interconnection_requests_interconnection_date")
    op.drop_index("ix_interconnection_requests_system_kw")
    op.drop_table("interconnection_requests")
    op.drop_index("ix_solar_installations_installed_kw")
    op.drop_table("solar_installations")
