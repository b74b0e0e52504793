import logging
from typing import Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace_payments.models.payment import Payment

logger = logging.getLogger(__name__)


class CRUDPayment:
    async def get(self, db: AsyncSession, payment_id: UUID) -> Optional[Payment]:
        return await db.get(Payment, payment_id)

    async def find_by_transaction_ref(self, db: AsyncSession, transaction_ref: Optional[str]) -> Optional[Payment]:
        """
        Exact match on transaction_ref. Not finding a payment is a normal
        outcome (payment started in another environment, deleted test data).
        transaction_ref is not guaranteed unique by the schema, so when
        several rows match the oldest one wins.
        """
        if not transaction_ref:
            return None
        result = await db.execute(
            select(Payment)
            .where(Payment.transaction_ref == transaction_ref)
            .order_by(Payment.created_at)
            .limit(2)
        )
        payments = result.scalars().all()
        if not payments:
            return None
        if len(payments) > 1:
            logger.warning(
                f"Multiple payments share transaction_ref {transaction_ref}, using {payments[0].id}")
        return payments[0]


crud_payment = CRUDPayment()
