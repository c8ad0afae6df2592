"""Chargeback reporting service (read-only queries)."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dms.config import settings
from dms.domain.arbitration import ArbitrageDecision, ArbitrageStatus
from dms.domain.chargeback_state import TERMINAL_PHASES, ChargebackPhase
from dms.models.case import Arbitrage, Litige, LitigeChargeback
from dms.models.transaction import Transaction
from dms.services.case_store import CaseStore, case_store
from dms.utils.dates import as_utc

ARBITRATION_STATS_WINDOW_DAYS = 90


def _days_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 86400


def _institution_filter(institution_id: UUID):
    return or_(
        Transaction.issuer_institution_id == institution_id,
        Transaction.acquirer_institution_id == institution_id,
    )


def _chargebacks_with_transaction():
    return (
        select(LitigeChargeback)
        .join(Litige, Litige.id == LitigeChargeback.litige_id)
        .join(Transaction, Transaction.id == Litige.transaction_id)
    )


class ReportingService:
    """Read-only chargeback reporting service."""

    def __init__(self, store: CaseStore | None = None) -> None:
        self.store = store or case_store

    async def get_chargebacks_by_institution(
        self,
        db: AsyncSession,
        institution_id: UUID,
    ) -> list[LitigeChargeback]:
        """Chargebacks where the institution is issuer or acquirer."""
        result = await db.execute(
            _chargebacks_with_transaction()
            .where(_institution_filter(institution_id))
            .order_by(LitigeChargeback.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_chargebacks_by_phase(
        self,
        db: AsyncSession,
        phase: ChargebackPhase,
        institution_id: UUID | None = None,
    ) -> list[LitigeChargeback]:
        query = _chargebacks_with_transaction().where(LitigeChargeback.phase == phase)
        if institution_id is not None:
            query = query.where(_institution_filter(institution_id))
        result = await db.execute(query.order_by(LitigeChargeback.created_at.desc()))
        return list(result.scalars().all())

    async def get_overdue_chargebacks(
        self,
        db: AsyncSession,
        institution_id: UUID | None = None,
        now: datetime | None = None,
    ) -> list[LitigeChargeback]:
        """Open chargebacks whose response deadline has passed."""
        query = _chargebacks_with_transaction().where(
            LitigeChargeback.deadline.is_not(None),
            LitigeChargeback.deadline < (now or datetime.now(UTC)),
            LitigeChargeback.phase.not_in(TERMINAL_PHASES),
        )
        if institution_id is not None:
            query = query.where(_institution_filter(institution_id))
        result = await db.execute(query.order_by(LitigeChargeback.deadline))
        return list(result.scalars().all())

    async def get_institution_stats(
        self,
        db: AsyncSession,
        institution_id: UUID,
        now: datetime | None = None,
    ) -> dict:
        """Chargeback counts and amounts for an institution."""
        by_phase_result = await db.execute(
            select(
                LitigeChargeback.phase,
                func.count(),
                func.coalesce(func.sum(LitigeChargeback.contested_amount), 0),
            )
            .join(Litige, Litige.id == LitigeChargeback.litige_id)
            .join(Transaction, Transaction.id == Litige.transaction_id)
            .where(_institution_filter(institution_id))
            .group_by(LitigeChargeback.phase)
        )
        by_phase: dict[str, int] = {phase.value: 0 for phase in ChargebackPhase}
        total = 0
        closed = 0
        contested_total = Decimal("0.00")
        for phase, count, contested in by_phase_result.all():
            by_phase[phase.value] = count
            total += count
            contested_total += Decimal(str(contested))
            if phase in TERMINAL_PHASES:
                closed += count

        overdue = await self.get_overdue_chargebacks(db, institution_id, now)

        return {
            "institution_id": institution_id,
            "total": total,
            "in_progress": total - closed,
            "closed": closed,
            "overdue": len(overdue),
            "total_contested_amount": contested_total.quantize(Decimal("0.01")),
            "by_phase": by_phase,
            "currency": settings.currency,
        }

    async def get_pending_arbitrations(self, db: AsyncSession) -> list[Arbitrage]:
        """Arbitrations awaiting a ruling, oldest first."""
        result = await db.execute(
            select(Arbitrage)
            .where(Arbitrage.status == ArbitrageStatus.DEMANDE)
            .order_by(Arbitrage.requested_at)
        )
        return list(result.scalars().all())

    async def get_phase_durations(
        self,
        db: AsyncSession,
        institution_id: UUID | None = None,
        now: datetime | None = None,
    ) -> list[dict]:
        """Average age of chargebacks per phase, in days.

        For open phases this is the time cases have been waiting since they
        entered the phase; for terminal phases it is the time from initiation
        to closure.
        """
        query = _chargebacks_with_transaction()
        if institution_id is not None:
            query = query.where(_institution_filter(institution_id))
        result = await db.execute(query)

        now = now or datetime.now(UTC)
        samples: dict[ChargebackPhase, list[float]] = {phase: [] for phase in ChargebackPhase}
        for chargeback in result.scalars().all():
            if chargeback.phase in TERMINAL_PHASES:
                days = _days_between(
                    chargeback.created_at, chargeback.closed_at or chargeback.updated_at
                )
            else:
                days = _days_between(chargeback.updated_at, now)
            samples[chargeback.phase].append(days)

        return [
            {
                "phase": phase,
                "count": len(days),
                "average_days": round(sum(days) / len(days), 2) if days else None,
            }
            for phase, days in samples.items()
        ]

    async def get_arbitration_stats(
        self,
        db: AsyncSession,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> dict:
        """Arbitration volumes, outcomes and decision delay over a period.

        The period defaults to the last ``ARBITRATION_STATS_WINDOW_DAYS`` days
        and filters on the request date.
        """
        until = until or datetime.now(UTC)
        since = since or until - timedelta(days=ARBITRATION_STATS_WINDOW_DAYS)
        result = await db.execute(
            select(Arbitrage).where(
                Arbitrage.requested_at >= since,
                Arbitrage.requested_at <= until,
            )
        )
        arbitrages = list(result.scalars().all())

        decided = [a for a in arbitrages if a.status == ArbitrageStatus.DECIDE]
        by_decision = {decision.value: 0 for decision in ArbitrageDecision}
        for arbitrage in decided:
            by_decision[arbitrage.decision.value] += 1
        delays = [
            _days_between(a.requested_at, a.decided_at) for a in decided if a.decided_at
        ]

        def win_rate(decision: ArbitrageDecision) -> Decimal:
            if not decided:
                return Decimal("0.00")
            share = Decimal(by_decision[decision.value] * 100) / Decimal(len(decided))
            return share.quantize(Decimal("0.01"))

        total_fees = sum((Decimal(str(a.cost)) for a in arbitrages), Decimal("0"))
        return {
            "period_start": since,
            "period_end": until,
            "total": len(arbitrages),
            "pending": sum(1 for a in arbitrages if a.status == ArbitrageStatus.DEMANDE),
            "decided": len(decided),
            "cancelled": sum(1 for a in arbitrages if a.status == ArbitrageStatus.ANNULE),
            "average_decision_days": round(sum(delays) / len(delays), 2) if delays else None,
            "total_fees": total_fees.quantize(Decimal("0.01")),
            "issuer_win_rate": win_rate(ArbitrageDecision.FAVORABLE_EMETTEUR),
            "acquirer_win_rate": win_rate(ArbitrageDecision.FAVORABLE_ACQUEREUR),
            "by_decision": by_decision,
            "currency": settings.currency,
        }

    async def get_arbitration_dossier(
        self,
        db: AsyncSession,
        arbitrage_id: UUID,
        now: datetime | None = None,
    ) -> dict:
        """Everything an arbitrator needs to rule on one arbitration.

        Raises:
            NotFoundError: Unknown arbitrage
        """
        arbitrage = await self.store.get_arbitrage(db, arbitrage_id)
        litige = await self.store.get_litige(db, arbitrage.litige_id)
        waited_until = arbitrage.decided_at or now or datetime.now(UTC)
        return {
            "arbitrage": arbitrage,
            "chargeback": await self.store.get_chargeback(db, litige.id),
            "litige": litige,
            "transaction": await self.store.find_transaction(db, litige.transaction_id),
            "evidence": await self.store.list_evidence(db, litige.id),
            "history": await self.store.list_history(db, litige.id),
            "days_waiting": int(_days_between(arbitrage.requested_at, waited_until)),
        }


reporting_service = ReportingService()
