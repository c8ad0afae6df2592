"""Persistence helpers for dispute cases.

Lookups raise ``NotFoundError`` for unknown ids; ``find_*`` variants return
None instead. Writes only add to the session; the calling service owns the
transaction.
"""

from uuid import UUID

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dms.core.exceptions import NotFoundError
from dms.domain.arbitration import ArbitrageStatus
from dms.domain.chargeback_state import EVIDENCE_TYPE_BY_PHASE, ChargebackPhase, ExchangeType
from dms.models.case import Arbitrage, Echange, Justificatif, Litige, LitigeChargeback
from dms.models.institution import Institution, Utilisateur
from dms.models.transaction import Transaction

EVIDENCE_UPLOAD_ROOT = "/uploads/chargeback"


class CaseStore:
    """Read-by-id, existence checks and append helpers over case entities."""

    # ==================== LOOKUPS ====================

    async def get_litige(self, db: AsyncSession, litige_id: UUID) -> Litige:
        litige = await db.get(Litige, litige_id)
        if not litige:
            raise NotFoundError("Litige", str(litige_id))
        return litige

    async def get_user(self, db: AsyncSession, user_id: UUID) -> Utilisateur:
        user = await db.get(Utilisateur, user_id)
        if not user:
            raise NotFoundError("Utilisateur", str(user_id))
        return user

    async def get_transaction(self, db: AsyncSession, transaction_id: UUID) -> Transaction:
        transaction = await db.get(Transaction, transaction_id)
        if not transaction:
            raise NotFoundError("Transaction", str(transaction_id))
        return transaction

    async def find_transaction(
        self, db: AsyncSession, transaction_id: UUID | None
    ) -> Transaction | None:
        if transaction_id is None:
            return None
        return await db.get(Transaction, transaction_id)

    async def find_institution(
        self, db: AsyncSession, institution_id: UUID | None
    ) -> Institution | None:
        if institution_id is None:
            return None
        return await db.get(Institution, institution_id)

    async def find_litige_for_transaction(
        self, db: AsyncSession, transaction_id: UUID
    ) -> Litige | None:
        result = await db.execute(select(Litige).where(Litige.transaction_id == transaction_id))
        return result.scalar_one_or_none()

    async def find_chargeback(
        self,
        db: AsyncSession,
        litige_id: UUID,
        for_update: bool = False,
    ) -> LitigeChargeback | None:
        """Load the chargeback of a litige.

        With ``for_update`` the row is locked until the transaction ends and
        any copy already in the session is overwritten with the locked state.
        """
        stmt = select(LitigeChargeback).where(LitigeChargeback.litige_id == litige_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_chargeback(
        self,
        db: AsyncSession,
        litige_id: UUID,
        for_update: bool = False,
    ) -> LitigeChargeback:
        chargeback = await self.find_chargeback(db, litige_id, for_update=for_update)
        if not chargeback:
            raise NotFoundError("Chargeback for litige", str(litige_id))
        return chargeback

    async def chargeback_exists(self, db: AsyncSession, litige_id: UUID) -> bool:
        result = await db.execute(
            select(exists().where(LitigeChargeback.litige_id == litige_id))
        )
        return bool(result.scalar())

    async def get_arbitrage(
        self,
        db: AsyncSession,
        arbitrage_id: UUID,
        for_update: bool = False,
    ) -> Arbitrage:
        stmt = select(Arbitrage).where(Arbitrage.id == arbitrage_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        arbitrage = result.scalar_one_or_none()
        if not arbitrage:
            raise NotFoundError("Arbitrage", str(arbitrage_id))
        return arbitrage

    async def find_pending_arbitrage(self, db: AsyncSession, litige_id: UUID) -> Arbitrage | None:
        result = await db.execute(
            select(Arbitrage).where(
                Arbitrage.litige_id == litige_id,
                Arbitrage.status == ArbitrageStatus.DEMANDE,
            )
        )
        return result.scalar_one_or_none()

    async def list_arbitrages(self, db: AsyncSession, litige_id: UUID) -> list[Arbitrage]:
        result = await db.execute(
            select(Arbitrage)
            .where(Arbitrage.litige_id == litige_id)
            .order_by(Arbitrage.requested_at)
        )
        return list(result.scalars().all())

    # ==================== EVIDENCE & HISTORY ====================

    async def list_evidence(self, db: AsyncSession, litige_id: UUID) -> list[Justificatif]:
        """Evidence for a case in submission order."""
        result = await db.execute(
            select(Justificatif)
            .where(Justificatif.litige_id == litige_id)
            .order_by(Justificatif.created_at, Justificatif.file_name)
        )
        return list(result.scalars().all())

    async def list_history(self, db: AsyncSession, litige_id: UUID) -> list[Echange]:
        """History entries for a case, oldest first."""
        result = await db.execute(
            select(Echange).where(Echange.litige_id == litige_id).order_by(Echange.created_at)
        )
        return list(result.scalars().all())

    async def count_evidence(self, db: AsyncSession, litige_id: UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(Justificatif).where(Justificatif.litige_id == litige_id)
        )
        return result.scalar_one()

    async def count_history(self, db: AsyncSession, litige_id: UUID) -> int:
        result = await db.execute(
            select(func.count()).select_from(Echange).where(Echange.litige_id == litige_id)
        )
        return result.scalar_one()

    def add_evidence(
        self,
        db: AsyncSession,
        litige_id: UUID,
        file_names: list[str],
        phase: ChargebackPhase,
        submitted_by_id: UUID,
        shared: bool = True,
    ) -> list[Justificatif]:
        """Stage one justificatif per file reference.

        The evidence type follows the phase; unshared documents stay hidden
        from the other side of the case.
        """
        evidence_type = EVIDENCE_TYPE_BY_PHASE[phase]
        documents = [
            Justificatif(
                litige_id=litige_id,
                file_name=name,
                file_path=f"{EVIDENCE_UPLOAD_ROOT}/{name}",
                evidence_type=evidence_type,
                phase=phase,
                submitted_by_id=submitted_by_id,
                visible_to_counterparty=shared,
            )
            for name in file_names
        ]
        db.add_all(documents)
        return documents

    def append_exchange(
        self,
        db: AsyncSession,
        litige_id: UUID,
        content: str,
        exchange_type: ExchangeType,
        author: Utilisateur,
        phase: ChargebackPhase | None = None,
    ) -> Echange:
        """Stage a history entry authored by ``author``."""
        echange = Echange(
            litige_id=litige_id,
            content=content,
            exchange_type=exchange_type,
            phase=phase,
            author_id=author.id,
            institution_id=author.institution_id,
        )
        db.add(echange)
        return echange


case_store = CaseStore()
