"""Celery background tasks.

Deadlines are never enforced by a clock: these tasks only remind the
institution expected to act. Phase changes still go through the workflow
service.
"""

import asyncio
import logging
from datetime import datetime
from uuid import UUID

from celery import shared_task
from sqlalchemy.ext.asyncio import AsyncSession

from dms.database import close_db, get_db_context
from dms.domain.chargeback_state import ChargebackPhase
from dms.models.case import Litige, LitigeChargeback
from dms.models.transaction import Transaction
from dms.services.notification_service import notification_service
from dms.services.reporting_service import reporting_service

logger = logging.getLogger(__name__)


def institutions_to_remind(chargeback: LitigeChargeback, transaction: Transaction) -> list[UUID]:
    """Side(s) whose move is overdue in the chargeback's current phase."""
    issuer_id = transaction.issuer_institution_id
    acquirer_id = transaction.acquirer_institution_id
    if chargeback.phase == ChargebackPhase.CHARGEBACK_INITIAL:
        expected = [acquirer_id]
    elif chargeback.phase == ChargebackPhase.REPRESENTATION_RECUE:
        expected = [issuer_id]
    else:
        expected = [issuer_id, acquirer_id]
    return [i for i in expected if i is not None]


async def send_overdue_reminders(db: AsyncSession, now: datetime | None = None) -> int:
    """Notify institutions about overdue chargebacks.

    Returns:
        int: Number of notifications created
    """
    sent = 0
    for chargeback in await reporting_service.get_overdue_chargebacks(db, now=now):
        litige = await db.get(Litige, chargeback.litige_id)
        transaction = await db.get(Transaction, litige.transaction_id) if litige else None
        if transaction is None:
            continue

        message = (
            f"Chargeback deadline passed on {chargeback.deadline:%Y-%m-%d} "
            f"(phase {chargeback.phase.value})"
        )
        for institution_id in institutions_to_remind(chargeback, transaction):
            await notification_service.notify_institution(
                db, institution_id, message, chargeback.litige_id
            )
            sent += 1
    return sent


async def _remind_overdue_chargebacks() -> int:
    try:
        async with get_db_context() as db:
            return await send_overdue_reminders(db)
    finally:
        await notification_service.close()
        await close_db()


@shared_task(bind=True, max_retries=3)
def remind_overdue_chargebacks(self):
    """Daily reminder for chargebacks past their response deadline."""
    try:
        sent = asyncio.run(_remind_overdue_chargebacks())
    except Exception as exc:
        logger.exception("Overdue chargeback reminders failed")
        raise self.retry(exc=exc, countdown=300)
    logger.info(f"Sent {sent} overdue chargeback reminders")
    return {"status": "success", "sent": sent}
