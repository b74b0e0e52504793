import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace_payments.core.exceptions import IllegalTransitionError
from marketplace_payments.crud.webhook_event import crud_webhook_event
from marketplace_payments.models.mixins.timestamp import utcnow
from marketplace_payments.models.payment import Payment, PaymentStatus
from marketplace_payments.schemas.webhook import PaymentFlowInput, TsaraWebhookPayload
from marketplace_payments.services.payment_flow import PaymentFlowService
from marketplace_payments.services.status_mapper import SideEffect, resolve_side_effect

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PROCESSING, PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.PROCESSING: frozenset({PaymentStatus.COMPLETED, PaymentStatus.FAILED}),
    PaymentStatus.COMPLETED: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.FAILED: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


def is_legal_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


@dataclass
class TransitionResult:
    success: bool
    payment_id: str
    mapped_status: PaymentStatus
    previous_status: PaymentStatus
    side_effect: SideEffect


class TransitionExecutor:
    """
    Applies a webhook's status to a payment and runs the matching
    fulfillment flow.

    Must be called inside an open transaction (session.begin()). Nothing here
    catches exceptions: a failing side effect rolls back the ledger insert
    and the payment update together, and the provider's retry starts over.
    """

    def __init__(self, flow_service: PaymentFlowService, enforce_transitions: bool = False):
        self.flow_service = flow_service
        self.enforce_transitions = enforce_transitions

    async def execute(self,
                      db: AsyncSession,
                      event: TsaraWebhookPayload,
                      payment: Payment,
                      mapped_status: PaymentStatus,
                      raw_body: str) -> TransitionResult:
        previous_status = payment.status
        if not is_legal_transition(previous_status, mapped_status):
            if self.enforce_transitions:
                raise IllegalTransitionError(previous_status.value, mapped_status.value)
            # applied anyway, the provider's ordering is trusted
            logger.warning(
                f"Payment {payment.id}: unexpected transition {previous_status.value} -> "
                f"{mapped_status.value} from webhook {event.id}")

        # 1. ledger row, pending until the side effects succeed
        ledger_row = await crud_webhook_event.record_pending(db, event.id, event.event)

        # 2. payment update
        now = utcnow()
        payment.status = mapped_status
        payment.updated_at = now
        payment.gateway_response = raw_body
        if mapped_status == PaymentStatus.REFUNDED:
            payment.is_refunded = True
            payment.refunded_at = now
        await db.flush()
        logger.info(
            f"Payment {payment.id} status {previous_status.value} -> {mapped_status.value} (event {event.id})")

        # 3. side effects
        side_effect = resolve_side_effect(event.data.status, mapped_status)
        flow_input = PaymentFlowInput(
            id=payment.id,
            reference=payment.transaction_ref,
            amount=payment.amount_cents,
            currency=payment.currency,
            status=event.data.status,
            order_id=payment.order_id,
            listing_id=payment.listing_id,
            buyer_id=payment.buyer_id,
        )
        if side_effect == SideEffect.SUCCESS:
            await self.flow_service.handle_payment_success(db, flow_input)
        elif side_effect == SideEffect.FAILURE:
            await self.flow_service.handle_payment_failure(db, flow_input)
        elif side_effect == SideEffect.REFUND:
            await self.flow_service.handle_payment_failure(db, flow_input, refunded=True)

        # only reached when every side effect succeeded
        await crud_webhook_event.mark_processed(db, ledger_row)

        return TransitionResult(
            success=True,
            payment_id=str(payment.id),
            mapped_status=mapped_status,
            previous_status=previous_status,
            side_effect=side_effect,
        )
