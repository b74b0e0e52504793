import logging
from typing import Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace_payments.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


def create_notification(db: AsyncSession,
                        type: NotificationType,
                        message: str,
                        seller_id: Optional[UUID] = None,
                        buyer_id: Optional[UUID] = None,
                        order_id: Optional[UUID] = None) -> Optional[Notification]:
    """Queue a notification row on the caller's session, it commits with the caller."""
    if seller_id is None and buyer_id is None:
        logger.warning(f"Notification {type.value} for order {order_id} has no recipient, skipping")
        return None
    notification = Notification(
        seller_id=seller_id,
        buyer_id=buyer_id,
        order_id=order_id,
        type=type,
        message=message,
        is_read=False,
    )
    db.add(notification)
    return notification


def format_amount(amount_cents: int) -> str:
    return f"₦{amount_cents / 100:.2f}"
