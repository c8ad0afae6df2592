"""Institution and transaction schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dms.models.institution import InstitutionType


class InstitutionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    type: InstitutionType
    enabled: bool = True


class InstitutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    type: InstitutionType
    enabled: bool
    created_at: datetime


class TransactionCreate(BaseModel):
    """Schema for registering a card transaction."""

    reference: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0, max_digits=15, decimal_places=2)
    currency: str = Field(default="MAD", min_length=3, max_length=3)
    transaction_date: date
    issuer_institution_id: UUID
    acquirer_institution_id: UUID

    @model_validator(mode="after")
    def check_distinct_institutions(self) -> "TransactionCreate":
        if self.issuer_institution_id == self.acquirer_institution_id:
            raise ValueError("Issuing and acquiring institutions must differ")
        return self


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reference: str
    amount: Decimal
    currency: str
    transaction_date: date
    issuer_institution_id: UUID | None
    acquirer_institution_id: UUID | None
    created_at: datetime
