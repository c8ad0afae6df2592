"""Chargeback reporting endpoints (read-only)."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter

from dms.api.deps import AdminUser, CurrentUser, DbSession
from dms.core.exceptions import AuthorizationError
from dms.core.permissions import is_admin
from dms.domain.chargeback_state import ChargebackPhase
from dms.models.case import Arbitrage, LitigeChargeback
from dms.models.institution import Utilisateur
from dms.schemas.chargeback import ArbitrageResponse, ChargebackResponse
from dms.schemas.reporting import (
    ArbitrationDossier,
    ArbitrationStats,
    InstitutionChargebackStats,
    PhaseDuration,
)
from dms.services.reporting_service import reporting_service

router = APIRouter()


def _assert_institution_scope(user: Utilisateur, institution_id: UUID) -> None:
    if not is_admin(user) and user.institution_id != institution_id:
        raise AuthorizationError("Reports are limited to your own institution")


def _scope_for(user: Utilisateur) -> UUID | None:
    """Institution filter for the caller; None means unrestricted (admin)."""
    if is_admin(user):
        return None
    if user.institution_id is None:
        raise AuthorizationError("User must belong to an institution")
    return user.institution_id


@router.get("/chargebacks/institution/{institution_id}", response_model=list[ChargebackResponse])
async def chargebacks_by_institution(
    institution_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> list[LitigeChargeback]:
    _assert_institution_scope(current_user, institution_id)
    return await reporting_service.get_chargebacks_by_institution(db, institution_id)


@router.get("/chargebacks/phase/{phase}", response_model=list[ChargebackResponse])
async def chargebacks_by_phase(
    phase: ChargebackPhase,
    current_user: CurrentUser,
    db: DbSession,
) -> list[LitigeChargeback]:
    return await reporting_service.get_chargebacks_by_phase(db, phase, _scope_for(current_user))


@router.get("/chargebacks/overdue", response_model=list[ChargebackResponse])
async def overdue_chargebacks(current_user: CurrentUser, db: DbSession) -> list[LitigeChargeback]:
    """Open chargebacks past their response deadline."""
    return await reporting_service.get_overdue_chargebacks(db, _scope_for(current_user))


@router.get("/chargebacks/phase-durations", response_model=list[PhaseDuration])
async def phase_durations(current_user: CurrentUser, db: DbSession) -> list[dict]:
    """Average days spent per phase across the caller's chargebacks."""
    return await reporting_service.get_phase_durations(db, _scope_for(current_user))


@router.get("/chargebacks/stats/{institution_id}", response_model=InstitutionChargebackStats)
async def institution_stats(
    institution_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> dict:
    _assert_institution_scope(current_user, institution_id)
    return await reporting_service.get_institution_stats(db, institution_id)


@router.get("/arbitrages/pending", response_model=list[ArbitrageResponse])
async def pending_arbitrations(admin: AdminUser, db: DbSession) -> list[Arbitrage]:
    return await reporting_service.get_pending_arbitrations(db)


@router.get("/arbitrages/stats", response_model=ArbitrationStats)
async def arbitration_stats(
    admin: AdminUser,
    db: DbSession,
    since: datetime | None = None,
    until: datetime | None = None,
) -> dict:
    return await reporting_service.get_arbitration_stats(db, since=since, until=until)


@router.get("/arbitrages/{arbitrage_id}/dossier", response_model=ArbitrationDossier)
async def arbitration_dossier(arbitrage_id: UUID, admin: AdminUser, db: DbSession) -> dict:
    """Arbitrage, chargeback, transaction, every justificatif and the full history."""
    return await reporting_service.get_arbitration_dossier(db, arbitrage_id)
