import logging
from typing import List, Optional
from uuid import UUID
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from marketplace_payments.core.exceptions import DuplicateEventError, WebhookEventNotFoundError
from marketplace_payments.models.mixins.timestamp import utcnow
from marketplace_payments.models.webhook_event import WebhookEvent, WebhookEventStatus

logger = logging.getLogger(__name__)


class CRUDWebhookEvent:
    """
    Event ledger for provider webhooks.

    The ledger operations used while processing a delivery (has_processed,
    record_pending, mark_processed, record_failed_no_match) never commit:
    they run inside the caller's transaction so the ledger row commits or
    rolls back together with the payment update.
    The admin operations further down commit on their own.
    """

    async def get_by_event_id(self, db: AsyncSession, event_id: str) -> Optional[WebhookEvent]:
        result = await db.execute(select(WebhookEvent).where(WebhookEvent.event_id == event_id))
        return result.scalar_one_or_none()

    async def has_processed(self, db: AsyncSession, event_id: str) -> bool:
        # a pending row only survives a commit when an operator reset it for retry
        result = await db.execute(
            select(WebhookEvent.id)
            .where(WebhookEvent.event_id == event_id)
            .where(WebhookEvent.status != WebhookEventStatus.PENDING)
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _get_or_add(self, db: AsyncSession, event_id: str, event_type: str) -> WebhookEvent:
        event = await self.get_by_event_id(db, event_id)
        if event is not None and event.status == WebhookEventStatus.PENDING:
            # the flush bumps version_id, a second delivery holding the same version loses
            logger.info(f"Re-driving webhook event {event_id} after reset")
            event.event_type = event_type
            event.received_at = utcnow()
            return event
        # terminal rows are never reused, inserting over one trips the unique index
        event = WebhookEvent(event_id=event_id, event_type=event_type)
        db.add(event)
        return event

    async def _claim(self, db: AsyncSession, event_id: str) -> None:
        """
        Flush the ledger row on its own. A unique violation or a lost version
        check here means another delivery of the event got there first.
        """
        try:
            await db.flush()
        except (IntegrityError, StaleDataError) as e:
            logger.info(f"Webhook event {event_id} claimed by a concurrent delivery: {e}")
            raise DuplicateEventError(event_id) from e

    async def record_pending(self, db: AsyncSession, event_id: str, event_type: str) -> WebhookEvent:
        """
        Insert (or claim a reset) ledger row with status pending.
        Raises DuplicateEventError when a concurrent delivery of the same
        event already holds the row.
        """
        event = await self._get_or_add(db, event_id, event_type)
        event.status = WebhookEventStatus.PENDING
        event.processed_at = None
        await self._claim(db, event_id)
        return event

    async def mark_processed(self, db: AsyncSession, event: WebhookEvent) -> WebhookEvent:
        event.status = WebhookEventStatus.PROCESSED
        event.processed_at = utcnow()
        await db.flush()
        return event

    async def record_failed(self, db: AsyncSession, event_id: str, event_type: str) -> WebhookEvent:
        event = await self._get_or_add(db, event_id, event_type)
        event.status = WebhookEventStatus.FAILED
        event.processed_at = utcnow()
        await self._claim(db, event_id)
        return event

    async def record_failed_no_match(self, db: AsyncSession, event_id: str, event_type: str) -> WebhookEvent:
        logger.warning(f"Webhook {event_id} ({event_type}) has no matching payment, recording as failed")
        return await self.record_failed(db, event_id, event_type)

    # admin operations

    async def get(self, db: AsyncSession, id: UUID) -> WebhookEvent:
        event = await db.get(WebhookEvent, id)
        if event is None:
            raise WebhookEventNotFoundError()
        return event

    async def list_events(self, db: AsyncSession, limit: int = 50, offset: int = 0) -> List[WebhookEvent]:
        result = await db.execute(
            select(WebhookEvent)
            .order_by(WebhookEvent.received_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def list_by_type(self, db: AsyncSession, event_type: str, limit: int = 50) -> List[WebhookEvent]:
        result = await db.execute(
            select(WebhookEvent)
            .where(WebhookEvent.event_type == event_type)
            .order_by(WebhookEvent.received_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_failed(self, db: AsyncSession, limit: int = 50) -> List[WebhookEvent]:
        result = await db.execute(
            select(WebhookEvent)
            .where(WebhookEvent.status == WebhookEventStatus.FAILED)
            .order_by(WebhookEvent.received_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def set_status(self, db: AsyncSession, id: UUID, status: WebhookEventStatus) -> WebhookEvent:
        try:
            event = await self.get(db, id)
            event.status = status
            event.processed_at = utcnow()
            await db.commit()
            await db.refresh(event)
            return event
        except Exception as e:
            logger.error(f"Failed to update webhook event {id}: {e}", exc_info=True)
            await db.rollback()
            raise

    async def reset_for_retry(self, db: AsyncSession, id: UUID) -> WebhookEvent:
        """Put an event back to pending so the next delivery of it is processed again."""
        try:
            event = await self.get(db, id)
            event.status = WebhookEventStatus.PENDING
            event.processed_at = None
            await db.commit()
            await db.refresh(event)
            logger.info(f"Webhook event {event.event_id} reset for retry")
            return event
        except Exception as e:
            logger.error(f"Failed to reset webhook event {id}: {e}", exc_info=True)
            await db.rollback()
            raise

    async def stats(self, db: AsyncSession) -> dict:
        result = await db.execute(
            select(WebhookEvent.status, func.count(WebhookEvent.id)).group_by(WebhookEvent.status)
        )
        counts = {status.value: 0 for status in WebhookEventStatus}
        for status, count in result.all():
            counts[WebhookEventStatus(status).value] = count
        counts["total"] = sum(counts.values())
        return counts


crud_webhook_event = CRUDWebhookEvent()
