"""Litige intake and lookup."""

import logging
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dms.core.exceptions import ConflictError
from dms.core.permissions import Permission, assert_case_action, is_admin
from dms.domain.litige_state import LitigeStatus, LitigeType
from dms.models.case import Litige
from dms.models.institution import Utilisateur
from dms.models.transaction import Transaction
from dms.services.case_store import CaseStore, case_store
from dms.services.notification_service import NotificationService, notification_service

logger = logging.getLogger(__name__)


class LitigeService:
    """Service for opening and reading dispute cases."""

    def __init__(
        self,
        store: CaseStore | None = None,
        notifier: NotificationService | None = None,
    ) -> None:
        self.store = store or case_store
        self.notifier = notifier or notification_service

    async def flag_transaction(
        self,
        db: AsyncSession,
        transaction_id: UUID,
        user_id: UUID,
        litige_type: LitigeType = LitigeType.AUTRE,
        description: str | None = None,
    ) -> Litige:
        """Open a dispute on a transaction.

        Raises:
            NotFoundError: Unknown transaction or user
            AuthorizationError: User is not a party to the transaction
            ConflictError: The transaction is already disputed
        """
        transaction = await self.store.get_transaction(db, transaction_id)
        user = await self.store.get_user(db, user_id)
        institution = await self.store.find_institution(db, user.institution_id)
        assert_case_action(user, transaction, Permission.FLAG_TRANSACTION, institution)

        if await self.store.find_litige_for_transaction(db, transaction_id):
            raise ConflictError(f"Transaction {transaction.reference} is already disputed")

        litige = Litige(
            transaction_id=transaction_id,
            type=litige_type,
            status=LitigeStatus.OUVERT,
            description=description,
            declared_by_id=user.id,
            declaring_institution_id=user.institution_id,
        )
        db.add(litige)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"Transaction {transaction_id} is already disputed")

        logger.info(f"Litige {litige.id} opened on transaction {transaction.reference} by {user.id}")
        await self.notifier.notify_safely(
            db,
            litige.id,
            NotificationService.counterpart_institution_ids(transaction, user.institution_id),
            f"Transaction {transaction.reference} was flagged as disputed ({litige_type.value})",
        )
        return litige

    async def get_litige(self, db: AsyncSession, litige_id: UUID, user_id: UUID) -> Litige:
        litige = await self.store.get_litige(db, litige_id)
        user = await self.store.get_user(db, user_id)
        transaction = await self.store.find_transaction(db, litige.transaction_id)
        institution = await self.store.find_institution(db, user.institution_id)
        assert_case_action(user, transaction, Permission.VIEW_CASE, institution)
        return litige

    async def list_litiges(
        self,
        db: AsyncSession,
        user: Utilisateur,
        status: LitigeStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Litige]:
        """Litiges on transactions of the user's institution; admins see all."""
        stmt = select(Litige).join(Transaction, Transaction.id == Litige.transaction_id)
        if not is_admin(user):
            if user.institution_id is None:
                return []
            stmt = stmt.where(
                or_(
                    Transaction.issuer_institution_id == user.institution_id,
                    Transaction.acquirer_institution_id == user.institution_id,
                )
            )
        if status is not None:
            stmt = stmt.where(Litige.status == status)
        stmt = stmt.order_by(Litige.created_at.desc()).limit(limit).offset(offset)
        result = await db.execute(stmt)
        return list(result.scalars().all())


litige_service = LitigeService()
