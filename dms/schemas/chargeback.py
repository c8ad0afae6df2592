"""Chargeback workflow request and response schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from dms.domain.arbitration import ArbitrageDecision, ArbitrageStatus, FeeAllocation
from dms.domain.chargeback_state import (
    ChargebackPhase,
    EvidenceType,
    ExchangeType,
    RepresentationResponse,
)
from dms.utils.dates import days_remaining


# ============ Requests ============


class ChargebackInitiate(BaseModel):
    """Issuer opens a chargeback on a litige."""

    litige_id: UUID
    reason: str = Field(..., min_length=1, max_length=100)
    contested_amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    evidence: list[str] = Field(default_factory=list, description="Evidence file names")
    share_evidence: bool = Field(True, description="False keeps the evidence from the other side")


class RepresentationCreate(BaseModel):
    """Acquirer's answer to a chargeback."""

    response_type: RepresentationResponse
    arguments: str = Field(..., min_length=20)
    accepted_amount: Decimal | None = Field(None, gt=0, max_digits=15, decimal_places=2)
    evidence: list[str] = Field(default_factory=list)
    share_evidence: bool = True


class SecondPresentmentCreate(BaseModel):
    refutation: str = Field(..., min_length=1)
    evidence: list[str] = Field(default_factory=list)
    share_evidence: bool = True


class ArbitrageRequestCreate(BaseModel):
    justification: str = Field(..., min_length=1)


class ArbitrageDecisionCreate(BaseModel):
    decision: ArbitrageDecision
    grounds: str = Field(..., min_length=1)
    fee_allocation: FeeAllocation


class ChargebackCancel(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


# ============ Responses ============


class ChargebackResponse(BaseModel):
    """Case DTO: phase, amounts and deadline of a chargeback."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    litige_id: UUID
    phase: ChargebackPhase
    reason: str
    contested_amount: Decimal
    accepted_amount: Decimal | None
    representation_response: RepresentationResponse | None
    can_escalate: bool
    deadline: datetime | None
    estimated_arbitration_fee: Decimal | None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None

    @computed_field
    @property
    def days_remaining(self) -> int | None:
        return days_remaining(self.deadline)


class CancelResponse(BaseModel):
    litige_id: UUID
    cancelled: bool


class ArbitrageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    litige_id: UUID
    chargeback_id: UUID
    requested_by_id: UUID
    requested_by_institution_id: UUID | None
    justification: str
    cost: Decimal
    status: ArbitrageStatus
    decision: ArbitrageDecision | None
    grounds: str | None
    fee_allocation: FeeAllocation | None
    arbitrator_id: UUID | None
    requested_at: datetime
    decided_at: datetime | None


class EchangeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    litige_id: UUID
    content: str
    exchange_type: ExchangeType
    phase: ChargebackPhase | None
    author_id: UUID
    institution_id: UUID | None
    created_at: datetime


class JustificatifResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    litige_id: UUID
    file_name: str
    file_path: str
    evidence_type: EvidenceType
    phase: ChargebackPhase
    submitted_by_id: UUID
    visible_to_counterparty: bool
    created_at: datetime


class PhaseCheckResponse(BaseModel):
    litige_id: UUID
    current_phase: ChargebackPhase
    target_phase: ChargebackPhase
    allowed: bool
