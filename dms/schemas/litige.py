"""Litige schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dms.domain.litige_state import LitigeStatus, LitigeType


class LitigeFlag(BaseModel):
    """Schema for flagging a transaction as disputed."""

    transaction_id: UUID
    type: LitigeType = LitigeType.AUTRE
    description: str | None = Field(None, max_length=2000)


class LitigeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    transaction_id: UUID
    type: LitigeType
    status: LitigeStatus
    description: str | None
    declared_by_id: UUID
    declaring_institution_id: UUID | None
    created_at: datetime
    resolved_at: datetime | None
