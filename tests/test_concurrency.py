"""
Race tests for concurrent transitions on one case.

Two sessions attempt the same transition at once; exactly one may win and the
history must record a single transition.
"""
import asyncio

import pytest
from sqlalchemy import func, select

from dms.core.exceptions import ConflictError, ValidationError
from dms.domain.chargeback_state import ChargebackPhase, ExchangeType
from dms.models import Echange, LitigeChargeback
from dms.services.chargeback_workflow_service import ChargebackWorkflowService


class TestConcurrentTransitions:
    """Single logical writer per case."""

    @pytest.mark.asyncio
    async def test_concurrent_initiations(self, session_factory, ids) -> None:
        workflow = ChargebackWorkflowService()

        async def initiate(reason: str):
            async with session_factory() as session:
                return await workflow.initiate_chargeback(
                    session, ids.litige, ids.issuer, reason, "250.00"
                )

        results = await asyncio.gather(
            initiate("Unrecognised payment"), initiate("Fraud"), return_exceptions=True
        )

        successes = [r for r in results if isinstance(r, LitigeChargeback)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], ConflictError)

        async with session_factory() as session:
            chargebacks = await session.scalar(
                select(func.count())
                .select_from(LitigeChargeback)
                .where(LitigeChargeback.litige_id == ids.litige)
            )
            actions = await session.scalar(
                select(func.count())
                .select_from(Echange)
                .where(Echange.litige_id == ids.litige)
            )
        assert chargebacks == 1
        assert actions == 1

    @pytest.mark.asyncio
    async def test_unique_constraint_reports_conflict(
        self, db, workflow, ids, advance, monkeypatch
    ) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)

        async def missed_winner(session, litige_id) -> bool:
            return False

        # Existence check ran before the winner committed
        monkeypatch.setattr(workflow.store, "chargeback_exists", missed_winner)
        with pytest.raises(ConflictError):
            await workflow.initiate_chargeback(db, ids.litige, ids.issuer, "Fraud", "100.00")

        chargebacks = await db.scalar(
            select(func.count())
            .select_from(LitigeChargeback)
            .where(LitigeChargeback.litige_id == ids.litige)
        )
        assert chargebacks == 1

    @pytest.mark.asyncio
    async def test_concurrent_second_presentments(self, session_factory, ids, advance) -> None:
        await advance(ChargebackPhase.REPRESENTATION_RECUE)
        workflow = ChargebackWorkflowService()

        async def present(refutation: str):
            async with session_factory() as session:
                return await workflow.second_presentment(
                    session, ids.litige, ids.issuer, refutation
                )

        results = await asyncio.gather(
            present("First rebuttal"), present("Second rebuttal"), return_exceptions=True
        )

        successes = [r for r in results if isinstance(r, LitigeChargeback)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], ValidationError)

        async with session_factory() as session:
            phase = await session.scalar(
                select(LitigeChargeback.phase).where(LitigeChargeback.litige_id == ids.litige)
            )
            escalations = await session.scalar(
                select(func.count())
                .select_from(Echange)
                .where(
                    Echange.litige_id == ids.litige,
                    Echange.exchange_type == ExchangeType.ESCALADE,
                )
            )
        assert phase == ChargebackPhase.SECOND_PRESENTMENT
        assert escalations == 1

    @pytest.mark.asyncio
    async def test_cancel_races_representation(self, session_factory, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)
        workflow = ChargebackWorkflowService()

        async def cancel():
            async with session_factory() as session:
                return await workflow.cancel_chargeback(session, ids.litige, ids.issuer, "Withdrawn")

        async def represent():
            async with session_factory() as session:
                return await workflow.process_representation(
                    session,
                    ids.litige,
                    ids.acquirer,
                    "CONTESTATION",
                    "The merchant shipped the goods and holds proof of delivery.",
                )

        results = await asyncio.gather(cancel(), represent(), return_exceptions=True)

        errors = [r for r in results if isinstance(r, Exception)]
        assert all(isinstance(e, ValidationError) for e in errors)

        async with session_factory() as session:
            phase = await session.scalar(
                select(LitigeChargeback.phase).where(LitigeChargeback.litige_id == ids.litige)
            )
        if errors:
            assert len(errors) == 1
            assert phase in (ChargebackPhase.ANNULE, ChargebackPhase.REPRESENTATION_RECUE)
        else:
            # Both applied in sequence: representation first, then cancel
            assert phase == ChargebackPhase.ANNULE
