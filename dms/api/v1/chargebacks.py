"""Chargeback workflow endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from dms.api.deps import AdminUser, CurrentUser, DbSession
from dms.core.middleware import case_action_limiter
from dms.domain.chargeback_state import ChargebackPhase
from dms.models.case import Arbitrage, Echange, Justificatif, LitigeChargeback
from dms.schemas.chargeback import (
    ArbitrageDecisionCreate,
    ArbitrageRequestCreate,
    ArbitrageResponse,
    CancelResponse,
    ChargebackCancel,
    ChargebackInitiate,
    ChargebackResponse,
    EchangeResponse,
    JustificatifResponse,
    MessageCreate,
    PhaseCheckResponse,
    RepresentationCreate,
    SecondPresentmentCreate,
)
from dms.services.chargeback_workflow_service import chargeback_workflow_service

router = APIRouter(dependencies=[Depends(case_action_limiter)])


# ============ TRANSITIONS ============


@router.post("/initiate", response_model=ChargebackResponse, status_code=status.HTTP_201_CREATED)
async def initiate_chargeback(
    data: ChargebackInitiate,
    current_user: CurrentUser,
    db: DbSession,
) -> LitigeChargeback:
    """Open a chargeback on a litige (issuing institution)."""
    return await chargeback_workflow_service.initiate_chargeback(
        db,
        litige_id=data.litige_id,
        user_id=current_user.id,
        reason=data.reason,
        contested_amount=data.contested_amount,
        evidence=data.evidence,
        share_evidence=data.share_evidence,
    )


@router.post("/arbitrages/{arbitrage_id}/decision", response_model=ArbitrageResponse)
async def decide_arbitrage(
    arbitrage_id: UUID,
    data: ArbitrageDecisionCreate,
    admin: AdminUser,
    db: DbSession,
) -> Arbitrage:
    """Record an arbitration ruling (admin only)."""
    return await chargeback_workflow_service.decide_arbitrage(
        db,
        arbitrage_id=arbitrage_id,
        decision=data.decision,
        grounds=data.grounds,
        fee_allocation=data.fee_allocation,
        admin_id=admin.id,
    )


@router.post("/{litige_id}/representation", response_model=ChargebackResponse)
async def process_representation(
    litige_id: UUID,
    data: RepresentationCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> LitigeChargeback:
    """Acquirer's answer to the chargeback."""
    return await chargeback_workflow_service.process_representation(
        db,
        litige_id=litige_id,
        user_id=current_user.id,
        response_type=data.response_type,
        arguments=data.arguments,
        accepted_amount=data.accepted_amount,
        evidence=data.evidence,
        share_evidence=data.share_evidence,
    )


@router.post("/{litige_id}/second-presentment", response_model=ChargebackResponse)
async def second_presentment(
    litige_id: UUID,
    data: SecondPresentmentCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> LitigeChargeback:
    return await chargeback_workflow_service.second_presentment(
        db,
        litige_id=litige_id,
        user_id=current_user.id,
        refutation=data.refutation,
        evidence=data.evidence,
        share_evidence=data.share_evidence,
    )


@router.post(
    "/{litige_id}/arbitrage",
    response_model=ArbitrageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_arbitrage(
    litige_id: UUID,
    data: ArbitrageRequestCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> Arbitrage:
    return await chargeback_workflow_service.request_arbitrage(
        db,
        litige_id=litige_id,
        user_id=current_user.id,
        justification=data.justification,
    )


@router.post("/{litige_id}/cancel", response_model=CancelResponse)
async def cancel_chargeback(
    litige_id: UUID,
    data: ChargebackCancel,
    current_user: CurrentUser,
    db: DbSession,
) -> CancelResponse:
    """Cancel a chargeback; ``cancelled`` is false when it was already closed."""
    cancelled = await chargeback_workflow_service.cancel_chargeback(
        db,
        litige_id=litige_id,
        user_id=current_user.id,
        reason=data.reason,
    )
    return CancelResponse(litige_id=litige_id, cancelled=cancelled)


@router.post(
    "/{litige_id}/messages",
    response_model=EchangeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    litige_id: UUID,
    data: MessageCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> Echange:
    return await chargeback_workflow_service.post_message(
        db, litige_id=litige_id, user_id=current_user.id, content=data.content
    )


# ============ QUERIES ============


@router.get("/{litige_id}", response_model=ChargebackResponse)
async def get_chargeback(
    litige_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> LitigeChargeback:
    return await chargeback_workflow_service.get_case(db, litige_id, current_user.id)


@router.get("/{litige_id}/history", response_model=list[EchangeResponse])
async def get_history(
    litige_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> list[Echange]:
    """Case history, oldest first."""
    return await chargeback_workflow_service.get_history(db, litige_id, current_user.id)


@router.get("/{litige_id}/justificatifs", response_model=list[JustificatifResponse])
async def get_evidence(
    litige_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> list[Justificatif]:
    return await chargeback_workflow_service.get_evidence(db, litige_id, current_user.id)


@router.get("/{litige_id}/can-progress/{phase}", response_model=PhaseCheckResponse)
async def can_progress(
    litige_id: UUID,
    phase: ChargebackPhase,
    current_user: CurrentUser,
    db: DbSession,
) -> PhaseCheckResponse:
    """Whether the case may move to ``phase`` from where it stands now."""
    chargeback = await chargeback_workflow_service.get_case(db, litige_id, current_user.id)
    allowed = await chargeback_workflow_service.can_progress_to(db, litige_id, phase)
    return PhaseCheckResponse(
        litige_id=litige_id,
        current_phase=chargeback.phase,
        target_phase=phase,
        allowed=allowed,
    )
