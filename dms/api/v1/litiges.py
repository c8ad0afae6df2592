"""Litige (dispute case) endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from dms.api.deps import CurrentUser, DbSession
from dms.domain.litige_state import LitigeStatus
from dms.models.case import Litige
from dms.schemas.litige import LitigeFlag, LitigeResponse
from dms.services.litige_service import litige_service

router = APIRouter()


@router.post("/flag", response_model=LitigeResponse, status_code=status.HTTP_201_CREATED)
async def flag_transaction(
    data: LitigeFlag,
    current_user: CurrentUser,
    db: DbSession,
) -> Litige:
    """Open a dispute on a transaction."""
    return await litige_service.flag_transaction(
        db,
        transaction_id=data.transaction_id,
        user_id=current_user.id,
        litige_type=data.type,
        description=data.description,
    )


@router.get("", response_model=list[LitigeResponse])
async def list_litiges(
    current_user: CurrentUser,
    db: DbSession,
    status_filter: LitigeStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[Litige]:
    return await litige_service.list_litiges(
        db, current_user, status=status_filter, limit=limit, offset=offset
    )


@router.get("/{litige_id}", response_model=LitigeResponse)
async def get_litige(
    litige_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> Litige:
    return await litige_service.get_litige(db, litige_id, current_user.id)
