"""Chargeback reporting schemas (read-only)."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from dms.domain.chargeback_state import ChargebackPhase
from dms.schemas.chargeback import (
    ArbitrageResponse,
    ChargebackResponse,
    EchangeResponse,
    JustificatifResponse,
)
from dms.schemas.institution import TransactionResponse
from dms.schemas.litige import LitigeResponse


class InstitutionChargebackStats(BaseModel):
    """Chargeback totals for one institution, either side of the transaction."""

    institution_id: UUID
    total: int
    in_progress: int
    closed: int
    overdue: int
    total_contested_amount: Decimal
    by_phase: dict[str, int]
    currency: str = "MAD"


class PhaseDuration(BaseModel):
    phase: ChargebackPhase
    count: int
    average_days: float | None


class ArbitrationStats(BaseModel):
    """Arbitration outcomes over a request-date window; rates are percentages of decided cases."""

    period_start: datetime
    period_end: datetime
    total: int
    pending: int
    decided: int
    cancelled: int
    average_decision_days: float | None
    total_fees: Decimal
    issuer_win_rate: Decimal
    acquirer_win_rate: Decimal
    by_decision: dict[str, int]
    currency: str = "MAD"


class ArbitrationDossier(BaseModel):
    arbitrage: ArbitrageResponse
    chargeback: ChargebackResponse
    litige: LitigeResponse
    transaction: TransactionResponse | None
    evidence: list[JustificatifResponse]
    history: list[EchangeResponse]
    days_waiting: int
