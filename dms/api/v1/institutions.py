"""Institution reference data endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, status
from sqlalchemy import select

from dms.api.deps import AdminUser, CurrentUser, DbSession
from dms.core.exceptions import ConflictError, NotFoundError
from dms.models.institution import Institution
from dms.schemas.institution import InstitutionCreate, InstitutionResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[InstitutionResponse])
async def list_institutions(current_user: CurrentUser, db: DbSession) -> list[Institution]:
    result = await db.execute(select(Institution).order_by(Institution.name))
    return list(result.scalars().all())


@router.post("", response_model=InstitutionResponse, status_code=status.HTTP_201_CREATED)
async def create_institution(
    data: InstitutionCreate,
    admin: AdminUser,
    db: DbSession,
) -> Institution:
    """Register a participating institution (admin only)."""
    result = await db.execute(select(Institution).where(Institution.name == data.name))
    if result.scalar_one_or_none():
        raise ConflictError(f"Institution '{data.name}' already exists")

    institution = Institution(name=data.name, type=data.type, enabled=data.enabled)
    db.add(institution)
    await db.flush()
    return institution


@router.get("/{institution_id}", response_model=InstitutionResponse)
async def get_institution(
    institution_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> Institution:
    institution = await db.get(Institution, institution_id)
    if not institution:
        raise NotFoundError("Institution", str(institution_id))
    return institution


@router.post("/{institution_id}/toggle", response_model=InstitutionResponse)
async def toggle_institution(
    institution_id: UUID,
    admin: AdminUser,
    db: DbSession,
) -> Institution:
    """Enable or disable an institution; users of a disabled one lose case standing."""
    institution = await db.get(Institution, institution_id)
    if not institution:
        raise NotFoundError("Institution", str(institution_id))
    institution.enabled = not institution.enabled
    await db.flush()
    logger.info(
        f"Institution {institution_id} {'enabled' if institution.enabled else 'disabled'} "
        f"by admin {admin.id}"
    )
    return institution
