import logging
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace_payments.models.notification import NotificationType
from marketplace_payments.models.order import Order, OrderStatus, PayoutStatus
from marketplace_payments.schemas.webhook import PaymentFlowInput
from marketplace_payments.services.escrow import create_payment_hold, get_active_hold, record_refund, refund_payment_hold
from marketplace_payments.services.notifications import create_notification, format_amount

logger = logging.getLogger(__name__)


class PaymentFlowService:
    """
    Fulfillment side effects triggered by a payment status change.

    Both handlers work on the caller's session and never commit. Any
    exception they raise must reach the caller so the webhook transaction
    rolls back as a whole.
    """

    def __init__(self, hold_days: int = 30):
        self.hold_days = hold_days

    async def handle_payment_success(self, db: AsyncSession, data: PaymentFlowInput) -> None:
        if data.order_id is None:
            logger.warning(f"No order associated with payment {data.id}")
            return

        order = await db.get(Order, data.order_id)
        if order is None:
            logger.warning(f"Order not found: {data.order_id}")
            return

        order.order_status = OrderStatus.PROCESSING
        order.payout_status = PayoutStatus.IN_ESCROW

        # re-delivery after an operator reset must not lock the funds twice
        if await get_active_hold(db, data.id) is None:
            await create_payment_hold(
                db,
                payment_id=data.id,
                order_id=order.id,
                seller_id=order.seller_id,
                amount_cents=order.amount_cents,
                currency=order.currency,
                hold_days=self.hold_days,
            )
        else:
            logger.info(f"Payment {data.id} already has an active hold")

        create_notification(
            db,
            type=NotificationType.ORDER_CONFIRMED,
            message=f"Payment of {format_amount(order.amount_cents)} confirmed for "
                    f"\"{order.product_title}\". Please prepare and ship the item.",
            seller_id=order.seller_id,
            order_id=order.id,
        )
        await db.flush()
        logger.info(f"Payment success flow completed for order {order.id}")

    async def handle_payment_failure(self, db: AsyncSession, data: PaymentFlowInput, refunded: bool = False) -> None:
        """
        Handles failed payments, and refunds when refunded is True: the
        refund releases the escrow hold back to the buyer.
        """
        order = await db.get(Order, data.order_id) if data.order_id is not None else None
        if data.order_id is not None and order is None:
            logger.warning(f"Order not found: {data.order_id}")
        buyer_id = order.buyer_id if order is not None else data.buyer_id

        if refunded:
            hold = await refund_payment_hold(db, data.id)
            if order is not None:
                order.order_status = OrderStatus.CANCELLED
                order.payout_status = PayoutStatus.REFUNDED
                record_refund(
                    db,
                    seller_id=order.seller_id,
                    order_id=order.id,
                    payment_id=data.id,
                    amount_cents=data.amount,
                    currency=data.currency,
                )
            elif hold is not None:
                record_refund(
                    db,
                    seller_id=hold.seller_id,
                    order_id=hold.order_id,
                    payment_id=data.id,
                    amount_cents=data.amount,
                    currency=data.currency,
                )
            create_notification(
                db,
                type=NotificationType.REFUND_ISSUED,
                message=f"Your refund of {format_amount(data.amount)} has been completed.",
                buyer_id=buyer_id,
                order_id=order.id if order is not None else None,
            )
            await db.flush()
            logger.info(f"Refund flow completed for payment {data.id}")
            return

        if order is not None:
            order.order_status = OrderStatus.CANCELLED
        create_notification(
            db,
            type=NotificationType.PAYMENT_FAILED,
            message="Your payment failed. Please try again or use a different payment method.",
            buyer_id=buyer_id,
            order_id=order.id if order is not None else None,
        )
        await db.flush()
        logger.info(f"Payment failure flow completed for payment {data.id}")
