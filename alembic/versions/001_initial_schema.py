"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all tables for the chargeback case-management service:
- Institutions and users
- Card transactions
- Litiges and their chargeback workflow
- Evidence (justificatifs), case history (echanges), arbitrations
- Institution notifications
"""

from typing import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

PHASES = (
    "CHARGEBACK_INITIAL",
    "REPRESENTATION_RECUE",
    "SECOND_PRESENTMENT",
    "ARBITRAGE_DEMANDE",
    "ARBITRAGE_DECIDE",
    "ANNULE",
)


def _phase_check(column: str, nullable: bool = False) -> sa.CheckConstraint:
    values = ", ".join(f"'{p}'" for p in PHASES)
    condition = f"{column} IN ({values})"
    if nullable:
        condition = f"{column} IS NULL OR {condition}"
    return sa.CheckConstraint(condition)


def upgrade() -> None:
    """Create all database tables."""

    # ==================== INSTITUTIONS & USERS ====================
    op.create_table(
        "institutions",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(150), unique=True, nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "utilisateurs",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(10), nullable=False, server_default="USER"),
        sa.Column("access_level", sa.String(10), nullable=False, server_default="MOYEN"),
        sa.Column("institution_id", sa.Uuid, sa.ForeignKey("institutions.id"), index=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("role IN ('USER', 'ADMIN')"),
    )

    # ==================== TRANSACTIONS ====================
    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("reference", sa.String(64), unique=True, nullable=False, index=True),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="MAD"),
        sa.Column("transaction_date", sa.Date, nullable=False),
        sa.Column("issuer_institution_id", sa.Uuid, sa.ForeignKey("institutions.id"), index=True),
        sa.Column("acquirer_institution_id", sa.Uuid, sa.ForeignKey("institutions.id"), index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("amount > 0"),
    )

    # ==================== LITIGES ====================
    op.create_table(
        "litiges",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("transaction_id", sa.Uuid, sa.ForeignKey("transactions.id"), nullable=False, unique=True),
        sa.Column("type", sa.String(30), nullable=False, server_default="AUTRE"),
        sa.Column("status", sa.String(20), nullable=False, server_default="OUVERT", index=True),
        sa.Column("description", sa.Text),
        sa.Column("declared_by_id", sa.Uuid, sa.ForeignKey("utilisateurs.id"), nullable=False),
        sa.Column("declaring_institution_id", sa.Uuid, sa.ForeignKey("institutions.id"), index=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "litiges_chargeback",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("litige_id", sa.Uuid, sa.ForeignKey("litiges.id"), nullable=False, unique=True),
        sa.Column("phase", sa.String(30), nullable=False, index=True),
        sa.Column("reason", sa.String(100), nullable=False),
        sa.Column("contested_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("accepted_amount", sa.Numeric(15, 2)),
        sa.Column("representation_response", sa.String(30)),
        sa.Column("can_escalate", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("deadline", sa.DateTime(timezone=True), index=True),
        sa.Column("estimated_arbitration_fee", sa.Numeric(15, 2)),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("closed_at", sa.DateTime(timezone=True)),
        _phase_check("phase"),
        sa.CheckConstraint("contested_amount > 0"),
    )

    # ==================== EVIDENCE & HISTORY ====================
    op.create_table(
        "justificatifs",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("litige_id", sa.Uuid, sa.ForeignKey("litiges.id"), nullable=False, index=True),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.Text, nullable=False),
        sa.Column("evidence_type", sa.String(30), nullable=False),
        sa.Column("phase", sa.String(30), nullable=False),
        sa.Column("submitted_by_id", sa.Uuid, sa.ForeignKey("utilisateurs.id"), nullable=False),
        sa.Column("visible_to_counterparty", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        _phase_check("phase"),
    )

    op.create_table(
        "echanges",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("litige_id", sa.Uuid, sa.ForeignKey("litiges.id"), nullable=False, index=True),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("exchange_type", sa.String(30), nullable=False),
        sa.Column("phase", sa.String(30)),
        sa.Column("author_id", sa.Uuid, sa.ForeignKey("utilisateurs.id"), nullable=False),
        sa.Column("institution_id", sa.Uuid, sa.ForeignKey("institutions.id")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        _phase_check("phase", nullable=True),
    )

    # ==================== ARBITRATION ====================
    op.create_table(
        "arbitrages",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("litige_id", sa.Uuid, sa.ForeignKey("litiges.id"), nullable=False, index=True),
        sa.Column("chargeback_id", sa.Uuid, sa.ForeignKey("litiges_chargeback.id"), nullable=False),
        sa.Column("requested_by_id", sa.Uuid, sa.ForeignKey("utilisateurs.id"), nullable=False),
        sa.Column("requested_by_institution_id", sa.Uuid, sa.ForeignKey("institutions.id")),
        sa.Column("justification", sa.Text, nullable=False),
        sa.Column("cost", sa.Numeric(15, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="DEMANDE", index=True),
        sa.Column("decision", sa.String(30)),
        sa.Column("grounds", sa.Text),
        sa.Column("fee_allocation", sa.String(20)),
        sa.Column("arbitrator_id", sa.Uuid, sa.ForeignKey("utilisateurs.id")),
        sa.Column("requested_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("decided_at", sa.DateTime(timezone=True)),
    )

    # ==================== NOTIFICATIONS ====================
    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column(
            "institution_id",
            sa.Uuid,
            sa.ForeignKey("institutions.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("litige_id", sa.Uuid, sa.ForeignKey("litiges.id")),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True)),
        sa.Column("webhook_delivered", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("notifications")
    op.drop_table("arbitrages")
    op.drop_table("echanges")
    op.drop_table("justificatifs")
    op.drop_table("litiges_chargeback")
    op.drop_table("litiges")
    op.drop_table("transactions")
    op.drop_table("utilisateurs")
    op.drop_table("institutions")
