from datetime import timedelta
from sqlalchemy import select
from marketplace_payments.models import FinancialLedgerEntry, Notification, Order, Payment, PaymentHold
from marketplace_payments.models.financial_ledger import LedgerTransactionType
from marketplace_payments.models.notification import NotificationType
from marketplace_payments.models.order import OrderStatus, PayoutStatus
from marketplace_payments.models.payment_hold import HoldStatus
from marketplace_payments.schemas.webhook import PaymentFlowInput
from marketplace_payments.services.payment_flow import PaymentFlowService


async def flow_input(db_session_factory, payment_id, status) -> PaymentFlowInput:
    async with db_session_factory() as session:
        payment = await session.get(Payment, payment_id)
        return PaymentFlowInput(
            id=payment.id,
            reference=payment.transaction_ref,
            amount=payment.amount_cents,
            currency=payment.currency,
            status=status,
            order_id=payment.order_id,
            listing_id=payment.listing_id,
            buyer_id=payment.buyer_id,
        )


async def all_rows(db_session_factory, model):
    async with db_session_factory() as session:
        return list((await session.execute(select(model))).scalars().all())


async def test_success_creates_escrow_hold_and_notifies_seller(db_session, db_session_factory, make_payment):
    seeded = await make_payment(amount_cents=4500000)
    data = await flow_input(db_session_factory, seeded["payment_id"], "success")

    async with db_session.begin():
        await PaymentFlowService(hold_days=14).handle_payment_success(db_session, data)

    async with db_session_factory() as session:
        order = await session.get(Order, seeded["order_id"])
        assert order.order_status == OrderStatus.PROCESSING
        assert order.payout_status == PayoutStatus.IN_ESCROW

    holds = await all_rows(db_session_factory, PaymentHold)
    assert len(holds) == 1
    assert holds[0].hold_status == HoldStatus.ACTIVE
    assert holds[0].seller_id == seeded["seller_id"]
    assert holds[0].amount_cents == 4500000
    assert holds[0].releaseable_at - holds[0].held_at == timedelta(days=14)

    ledger = await all_rows(db_session_factory, FinancialLedgerEntry)
    assert [(e.transaction_type, e.amount_cents) for e in ledger] == [(LedgerTransactionType.SALE, 4500000)]

    notifications = await all_rows(db_session_factory, Notification)
    assert len(notifications) == 1
    assert notifications[0].type == NotificationType.ORDER_CONFIRMED
    assert notifications[0].seller_id == seeded["seller_id"]
    assert "₦45000.00" in notifications[0].message


async def test_success_twice_keeps_a_single_hold(db_session, db_session_factory, make_payment):
    seeded = await make_payment()
    data = await flow_input(db_session_factory, seeded["payment_id"], "success")
    flow = PaymentFlowService()

    async with db_session.begin():
        await flow.handle_payment_success(db_session, data)
    async with db_session.begin():
        await flow.handle_payment_success(db_session, data)

    assert len(await all_rows(db_session_factory, PaymentHold)) == 1


async def test_success_without_order_does_nothing(db_session, db_session_factory, make_payment):
    seeded = await make_payment(with_order=False)
    data = await flow_input(db_session_factory, seeded["payment_id"], "success")

    async with db_session.begin():
        await PaymentFlowService().handle_payment_success(db_session, data)

    assert await all_rows(db_session_factory, PaymentHold) == []
    assert await all_rows(db_session_factory, Notification) == []


async def test_failure_cancels_order_and_notifies_buyer(db_session, db_session_factory, make_payment):
    seeded = await make_payment()
    data = await flow_input(db_session_factory, seeded["payment_id"], "failed")

    async with db_session.begin():
        await PaymentFlowService().handle_payment_failure(db_session, data)

    async with db_session_factory() as session:
        order = await session.get(Order, seeded["order_id"])
        assert order.order_status == OrderStatus.CANCELLED

    notifications = await all_rows(db_session_factory, Notification)
    assert [(n.type, n.buyer_id) for n in notifications] == [(NotificationType.PAYMENT_FAILED, seeded["buyer_id"])]


async def test_refund_releases_hold_and_records_refund(db_session, db_session_factory, make_payment):
    seeded = await make_payment(amount_cents=1200000)
    success = await flow_input(db_session_factory, seeded["payment_id"], "success")
    refund = await flow_input(db_session_factory, seeded["payment_id"], "refunded")
    flow = PaymentFlowService()

    async with db_session.begin():
        await flow.handle_payment_success(db_session, success)
    async with db_session.begin():
        await flow.handle_payment_failure(db_session, refund, refunded=True)

    holds = await all_rows(db_session_factory, PaymentHold)
    assert holds[0].hold_status == HoldStatus.REFUNDED
    assert holds[0].refunded_at is not None

    async with db_session_factory() as session:
        order = await session.get(Order, seeded["order_id"])
        assert order.order_status == OrderStatus.CANCELLED
        assert order.payout_status == PayoutStatus.REFUNDED

    ledger = await all_rows(db_session_factory, FinancialLedgerEntry)
    assert sorted((e.transaction_type.value, e.amount_cents) for e in ledger) == [
        ("refund_completed", -1200000),
        ("sale", 1200000),
    ]

    refund_notices = [n for n in await all_rows(db_session_factory, Notification)
                      if n.type == NotificationType.REFUND_ISSUED]
    assert len(refund_notices) == 1
    assert refund_notices[0].buyer_id == seeded["buyer_id"]
