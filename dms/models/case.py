"""Dispute case models: litige, chargeback workflow, evidence, history, arbitration."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from dms.database import Base, str_enum
from dms.domain.arbitration import ArbitrageDecision, ArbitrageStatus, FeeAllocation
from dms.domain.chargeback_state import (
    ChargebackPhase,
    EvidenceType,
    ExchangeType,
    RepresentationResponse,
)
from dms.domain.litige_state import LitigeStatus, LitigeType
from dms.utils.dates import utc_now


class Litige(Base):
    """A disputed transaction. At most one per transaction."""

    __tablename__ = "litiges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    transaction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("transactions.id"), nullable=False, unique=True
    )

    # Details
    type: Mapped[LitigeType] = mapped_column(
        str_enum(LitigeType), nullable=False, default=LitigeType.AUTRE
    )
    status: Mapped[LitigeStatus] = mapped_column(
        str_enum(LitigeStatus, 20), nullable=False, default=LitigeStatus.OUVERT, index=True
    )
    description: Mapped[str | None] = mapped_column(Text)

    # Declared by
    declared_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("utilisateurs.id"), nullable=False
    )
    declaring_institution_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("institutions.id"), index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class LitigeChargeback(Base):
    """Chargeback sub-workflow of a litige, created on first initiation.

    ``version`` is bumped on every UPDATE; a writer holding a stale version
    fails its flush instead of overwriting the phase.
    """

    __tablename__ = "litiges_chargeback"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    litige_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("litiges.id"), nullable=False, unique=True
    )

    # Workflow
    phase: Mapped[ChargebackPhase] = mapped_column(
        str_enum(ChargebackPhase),
        nullable=False,
        default=ChargebackPhase.CHARGEBACK_INITIAL,
        index=True,
    )
    reason: Mapped[str] = mapped_column(String(100), nullable=False)
    contested_amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    accepted_amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))
    representation_response: Mapped[RepresentationResponse | None] = mapped_column(
        str_enum(RepresentationResponse)
    )
    can_escalate: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    estimated_arbitration_fee: Mapped[Decimal | None] = mapped_column(Numeric(15, 2))

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __mapper_args__ = {"version_id_col": version}


class Justificatif(Base):
    """Evidence document attached to a case. Immutable once stored."""

    __tablename__ = "justificatifs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    litige_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("litiges.id"), nullable=False, index=True
    )

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    evidence_type: Mapped[EvidenceType] = mapped_column(str_enum(EvidenceType), nullable=False)
    phase: Mapped[ChargebackPhase] = mapped_column(str_enum(ChargebackPhase), nullable=False)
    submitted_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("utilisateurs.id"), nullable=False
    )
    visible_to_counterparty: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )


class Echange(Base):
    """Append-only history entry on a case."""

    __tablename__ = "echanges"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    litige_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("litiges.id"), nullable=False, index=True
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)
    exchange_type: Mapped[ExchangeType] = mapped_column(str_enum(ExchangeType), nullable=False)
    phase: Mapped[ChargebackPhase | None] = mapped_column(str_enum(ChargebackPhase))
    author_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("utilisateurs.id"), nullable=False
    )
    institution_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("institutions.id"))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, index=True
    )


class Arbitrage(Base):
    """Third-party ruling requested after second presentment."""

    __tablename__ = "arbitrages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    litige_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("litiges.id"), nullable=False, index=True
    )
    chargeback_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("litiges_chargeback.id"), nullable=False
    )

    # Request
    requested_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("utilisateurs.id"), nullable=False
    )
    requested_by_institution_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("institutions.id")
    )
    justification: Mapped[str] = mapped_column(Text, nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    status: Mapped[ArbitrageStatus] = mapped_column(
        str_enum(ArbitrageStatus, 20), nullable=False, default=ArbitrageStatus.DEMANDE, index=True
    )

    # Ruling
    decision: Mapped[ArbitrageDecision | None] = mapped_column(str_enum(ArbitrageDecision))
    grounds: Mapped[str | None] = mapped_column(Text)
    fee_allocation: Mapped[FeeAllocation | None] = mapped_column(str_enum(FeeAllocation, 20))
    arbitrator_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("utilisateurs.id"))

    # Timestamps
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
