import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace_payments.models.financial_ledger import FinancialLedgerEntry, LedgerEntryStatus, LedgerTransactionType
from marketplace_payments.models.mixins.timestamp import utcnow
from marketplace_payments.models.payment_hold import HoldStatus, PaymentHold

logger = logging.getLogger(__name__)


async def get_active_hold(db: AsyncSession, payment_id: UUID) -> Optional[PaymentHold]:
    result = await db.execute(
        select(PaymentHold)
        .where(PaymentHold.payment_id == payment_id)
        .where(PaymentHold.hold_status == HoldStatus.ACTIVE)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def create_payment_hold(db: AsyncSession,
                              payment_id: UUID,
                              order_id: UUID,
                              seller_id: UUID,
                              amount_cents: int,
                              currency: str,
                              hold_days: int = 30) -> PaymentHold:
    """
    Lock the seller's funds in escrow for hold_days and record the pending
    sale in the financial ledger.
    """
    now = utcnow()
    hold = PaymentHold(
        payment_id=payment_id,
        order_id=order_id,
        seller_id=seller_id,
        amount_cents=amount_cents,
        currency=currency,
        hold_status=HoldStatus.ACTIVE,
        held_at=now,
        releaseable_at=now + timedelta(days=hold_days),
    )
    ledger_entry = FinancialLedgerEntry(
        seller_id=seller_id,
        order_id=order_id,
        payment_id=payment_id,
        transaction_type=LedgerTransactionType.SALE,
        amount_cents=amount_cents,
        currency=currency,
        status=LedgerEntryStatus.PENDING,
        description=f"Payment hold for order {order_id}",
    )
    db.add_all([hold, ledger_entry])
    await db.flush()
    logger.info(f"Created payment hold {hold.id} for order {order_id}, releaseable at {hold.releaseable_at}")
    return hold


async def refund_payment_hold(db: AsyncSession, payment_id: UUID) -> Optional[PaymentHold]:
    hold = await get_active_hold(db, payment_id)
    if hold is None:
        logger.info(f"No active hold to refund for payment {payment_id}")
        return None
    hold.hold_status = HoldStatus.REFUNDED
    hold.refunded_at = utcnow()
    await db.flush()
    return hold


def record_refund(db: AsyncSession,
                  seller_id: UUID,
                  order_id: UUID,
                  payment_id: UUID,
                  amount_cents: int,
                  currency: str) -> FinancialLedgerEntry:
    entry = FinancialLedgerEntry(
        seller_id=seller_id,
        order_id=order_id,
        payment_id=payment_id,
        transaction_type=LedgerTransactionType.REFUND_COMPLETED,
        amount_cents=-amount_cents,
        currency=currency,
        status=LedgerEntryStatus.COMPLETED,
        description="Refund completed",
    )
    db.add(entry)
    return entry
