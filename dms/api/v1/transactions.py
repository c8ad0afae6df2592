"""Card transaction endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status
from sqlalchemy import or_, select

from dms.api.deps import AdminUser, CurrentUser, DbSession
from dms.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from dms.core.permissions import is_admin
from dms.models.institution import Institution
from dms.models.transaction import Transaction
from dms.schemas.institution import TransactionCreate, TransactionResponse

router = APIRouter()


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    data: TransactionCreate,
    admin: AdminUser,
    db: DbSession,
) -> Transaction:
    """Record a card transaction between two institutions (admin only)."""
    result = await db.execute(select(Transaction).where(Transaction.reference == data.reference))
    if result.scalar_one_or_none():
        raise ConflictError(f"Transaction '{data.reference}' already exists")

    for institution_id in (data.issuer_institution_id, data.acquirer_institution_id):
        if not await db.get(Institution, institution_id):
            raise ValidationError(f"Institution {institution_id} does not exist")

    transaction = Transaction(**data.model_dump())
    db.add(transaction)
    await db.flush()
    return transaction


@router.get("", response_model=list[TransactionResponse])
async def list_transactions(
    current_user: CurrentUser,
    db: DbSession,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> list[Transaction]:
    """Transactions of the caller's institution; admins see all."""
    query = select(Transaction)
    if not is_admin(current_user):
        query = query.where(
            or_(
                Transaction.issuer_institution_id == current_user.institution_id,
                Transaction.acquirer_institution_id == current_user.institution_id,
            )
        )
    result = await db.execute(
        query.order_by(Transaction.transaction_date.desc()).limit(limit).offset(offset)
    )
    return list(result.scalars().all())


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> Transaction:
    transaction = await db.get(Transaction, transaction_id)
    if not transaction:
        raise NotFoundError("Transaction", str(transaction_id))
    if not is_admin(current_user) and current_user.institution_id not in (
        transaction.issuer_institution_id,
        transaction.acquirer_institution_id,
    ):
        raise AuthorizationError("Transaction belongs to other institutions")
    return transaction
