"""Institution notifications.

Every notification is stored as an in-app row addressed to an institution.
When a webhook URL is configured the same message is also POSTed there.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dms.config import settings
from dms.core.exceptions import AuthorizationError, NotFoundError
from dms.models.institution import UserRole, Utilisateur
from dms.models.notification import Notification
from dms.models.transaction import Transaction

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for notifying institutions about case activity."""

    def __init__(self, http_client: httpx.AsyncClient | None = None) -> None:
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=settings.notification_webhook_timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ==================== DELIVERY ====================

    async def notify_institution(
        self,
        db: AsyncSession,
        institution_id: UUID,
        message: str,
        litige_id: UUID | None = None,
    ) -> Notification:
        """Store a notification for an institution and push it to the webhook.

        Args:
            db: Database session
            institution_id: Institution to notify
            message: Notification text
            litige_id: Related case

        Returns:
            Notification: Created notification
        """
        notification = Notification(
            institution_id=institution_id,
            litige_id=litige_id,
            message=message,
        )
        db.add(notification)
        await db.flush()

        notification.webhook_delivered = await self.send_webhook(
            {
                "notification_id": str(notification.id),
                "institution_id": str(institution_id),
                "litige_id": str(litige_id) if litige_id else None,
                "message": message,
                "created_at": notification.created_at.isoformat(),
            }
        )
        logger.info(f"Notified institution {institution_id} about litige {litige_id}")
        return notification

    async def notify_counterpart(
        self,
        db: AsyncSession,
        transaction: Transaction,
        acting_institution_id: UUID | None,
        message: str,
        litige_id: UUID | None = None,
    ) -> list[Notification]:
        """Notify the side of ``transaction`` opposite to the acting institution.

        An actor outside both sides (the administrative centre) notifies both.
        """
        return [
            await self.notify_institution(db, institution_id, message, litige_id)
            for institution_id in self.counterpart_institution_ids(transaction, acting_institution_id)
        ]

    @staticmethod
    def counterpart_institution_ids(
        transaction: Transaction, acting_institution_id: UUID | None
    ) -> list[UUID]:
        issuer_id = transaction.issuer_institution_id
        acquirer_id = transaction.acquirer_institution_id
        if acting_institution_id is not None and acting_institution_id == issuer_id:
            return [acquirer_id] if acquirer_id else []
        if acting_institution_id is not None and acting_institution_id == acquirer_id:
            return [issuer_id] if issuer_id else []
        return [i for i in (issuer_id, acquirer_id) if i is not None]

    async def notify_safely(
        self,
        db: AsyncSession,
        litige_id: UUID | None,
        recipients: list[UUID],
        message: str,
    ) -> None:
        """Notify institutions after a committed change, one session each.

        Failures are logged and never propagate to the caller.
        """
        for institution_id in recipients:
            try:
                async with AsyncSession(db.bind, expire_on_commit=False) as notify_db:
                    await self.notify_institution(notify_db, institution_id, message, litige_id)
                    await notify_db.commit()
            except Exception as e:
                logger.warning(
                    f"Notification to institution {institution_id} for litige {litige_id} "
                    f"failed: {e}"
                )

    async def send_webhook(self, payload: dict[str, Any]) -> bool:
        """POST a notification payload to the configured webhook.

        Returns:
            bool: True if delivered; False when disabled or delivery failed
        """
        if not settings.notification_webhook_url:
            return False

        try:
            response = await self.http_client.post(settings.notification_webhook_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Notification webhook delivery failed: {e}")
            return False
        return True

    # ==================== INBOX ====================

    async def list_for_institution(
        self,
        db: AsyncSession,
        institution_id: UUID,
        unread_only: bool = True,
        limit: int = 50,
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.institution_id == institution_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def mark_read(
        self,
        db: AsyncSession,
        notification_id: UUID,
        user: Utilisateur,
    ) -> Notification:
        """Mark a notification read on behalf of one of its institution's users."""
        notification = await db.get(Notification, notification_id)
        if not notification:
            raise NotFoundError("Notification", str(notification_id))
        if user.role != UserRole.ADMIN and notification.institution_id != user.institution_id:
            raise AuthorizationError("Notification belongs to another institution")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(UTC)
            await db.flush()
        return notification


notification_service = NotificationService()
