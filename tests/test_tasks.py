"""Tests for the overdue chargeback reminder job."""
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from dms.domain.chargeback_state import ChargebackPhase
from dms.models import Notification
from dms.tasks import send_overdue_reminders


async def reminders_for(db, institution_id) -> list[Notification]:
    result = await db.execute(
        select(Notification).where(
            Notification.institution_id == institution_id,
            Notification.message.like("Chargeback deadline passed%"),
        )
    )
    return list(result.scalars().all())


class TestOverdueReminders:
    @pytest.mark.asyncio
    async def test_nothing_due(self, db, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)

        assert await send_overdue_reminders(db, now=datetime.now(UTC)) == 0

    @pytest.mark.asyncio
    async def test_acquirer_reminded_to_answer(self, db, ids, advance) -> None:
        await advance(ChargebackPhase.CHARGEBACK_INITIAL)

        sent = await send_overdue_reminders(db, now=datetime.now(UTC) + timedelta(days=11))
        await db.commit()

        assert sent == 1
        assert len(await reminders_for(db, ids.acquirer_bank)) == 1
        assert await reminders_for(db, ids.issuer_bank) == []

    @pytest.mark.asyncio
    async def test_issuer_reminded_after_representation(self, db, ids, advance) -> None:
        await advance(ChargebackPhase.REPRESENTATION_RECUE)

        sent = await send_overdue_reminders(db, now=datetime.now(UTC) + timedelta(days=11))
        await db.commit()

        assert sent == 1
        assert len(await reminders_for(db, ids.issuer_bank)) == 1

    @pytest.mark.asyncio
    async def test_reminder_does_not_move_phase(self, db, ids, advance, workflow) -> None:
        await advance(ChargebackPhase.SECOND_PRESENTMENT)

        sent = await send_overdue_reminders(db, now=datetime.now(UTC) + timedelta(days=6))
        await db.commit()

        assert sent == 2
        chargeback = await workflow.store.get_chargeback(db, ids.litige)
        assert chargeback.phase == ChargebackPhase.SECOND_PRESENTMENT
