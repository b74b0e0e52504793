import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace_payments.core.exceptions import (
    DuplicateEventError,
    IllegalTransitionError,
    InvalidPayloadError,
    InvalidSignatureError,
    MissingEventIdError,
    MissingSignatureError,
    WebhookMisconfiguredError,
)
from marketplace_payments.crud.payment import crud_payment
from marketplace_payments.crud.webhook_event import crud_webhook_event
from marketplace_payments.models.webhook_event import EVENT_ID_MAX_LENGTH
from marketplace_payments.schemas.webhook import TsaraWebhookPayload
from marketplace_payments.services.event_publisher import EventPublisher
from marketplace_payments.services.signature import verify_signature
from marketplace_payments.services.status_mapper import map_status
from marketplace_payments.services.transition_executor import TransitionExecutor

logger = logging.getLogger(__name__)


@dataclass
class WebhookOutcome:
    status_code: int
    body: dict
    # (event_type, payload) pairs published once the transaction has committed
    events: List[Tuple[str, dict]] = field(default_factory=list)


IDEMPOTENT_OUTCOME_BODY = {"success": True, "idempotent": True}


class WebhookProcessor:
    """
    Runs one Tsara webhook delivery end to end:
    signature check, parse, idempotency check, payment lookup, status
    mapping and the transactional transition.

    Configuration, signature and payload problems raise PaymentError
    subclasses before the database is touched. Side-effect failures
    propagate after the transaction has rolled back.
    """

    def __init__(self, secret: Optional[str], executor: TransitionExecutor, publisher: EventPublisher):
        self.secret = secret
        self.executor = executor
        self.publisher = publisher

    def authenticate(self, raw_body: bytes, signature_header: Optional[str]) -> None:
        if self.secret is None or not self.secret.strip():
            logger.error("TSARA_WEBHOOK_SECRET is not set, refusing webhook. "
                         "Set it to the signing secret from the Tsara dashboard.")
            raise WebhookMisconfiguredError()
        if signature_header is None or not signature_header.strip():
            logger.warning("Tsara webhook without x-tsara-signature header")
            raise MissingSignatureError()
        if not verify_signature(raw_body, signature_header, self.secret):
            raise InvalidSignatureError()

    def parse_payload(self, raw_body: bytes) -> TsaraWebhookPayload:
        try:
            body = json.loads(raw_body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidPayloadError()
        if not isinstance(body, dict):
            raise InvalidPayloadError()

        event_id = body.get("id")
        if event_id is None or (isinstance(event_id, str) and not event_id.strip()):
            raise MissingEventIdError()
        if not isinstance(event_id, (str, int)) or isinstance(event_id, bool):
            raise InvalidPayloadError("Invalid event ID")
        body["id"] = str(event_id)
        if len(body["id"]) > EVENT_ID_MAX_LENGTH:
            raise InvalidPayloadError("Invalid event ID")
        if not isinstance(body.get("data"), dict):
            if body.get("data") is not None:
                logger.warning(f"Tsara webhook {event_id} has a non-object data field, ignoring it")
            body["data"] = {}

        try:
            return TsaraWebhookPayload.model_validate(body)
        except ValidationError as e:
            logger.warning(f"Tsara webhook {event_id} has an invalid payload: {e}")
            raise InvalidPayloadError()

    async def process(self, db: AsyncSession, raw_body: bytes, signature_header: Optional[str]) -> WebhookOutcome:
        self.authenticate(raw_body, signature_header)
        payload = self.parse_payload(raw_body)
        raw_text = raw_body.decode("utf-8", errors="replace")
        logger.info(f"Received Tsara webhook {payload.event} (id: {payload.id})")

        try:
            try:
                outcome = await self._apply(db, payload, raw_text)
            except IllegalTransitionError as e:
                outcome = await self._reject_transition(db, payload, e)
        except DuplicateEventError:
            # lost the ledger row to a concurrent delivery of the same event
            logger.info(f"Webhook {payload.id} claimed concurrently, treating as already processed")
            return WebhookOutcome(status_code=200, body=dict(IDEMPOTENT_OUTCOME_BODY))

        await self._publish(outcome)
        return outcome

    async def _apply(self, db: AsyncSession, payload: TsaraWebhookPayload, raw_text: str) -> WebhookOutcome:
        async with db.begin():
            if await crud_webhook_event.has_processed(db, payload.id):
                logger.info(f"Webhook {payload.id} already processed, skipping")
                return WebhookOutcome(status_code=200, body=dict(IDEMPOTENT_OUTCOME_BODY))

            payment = await crud_payment.find_by_transaction_ref(db, payload.data.reference)
            if payment is None:
                await crud_webhook_event.record_failed_no_match(db, payload.id, payload.event)
                return WebhookOutcome(
                    status_code=404,
                    body={"success": False, "message": "Payment not found"},
                    events=[("webhook.payment_not_found", {
                        "event_id": payload.id,
                        "event_type": payload.event,
                        "reference": payload.data.reference,
                    })],
                )

            mapped_status = map_status(payload.data.status)
            result = await self.executor.execute(db, payload, payment, mapped_status, raw_text)

        return WebhookOutcome(
            status_code=200,
            body={
                "success": True,
                "message": "Webhook processed",
                "paymentId": result.payment_id,
                "status": result.mapped_status.value,
            },
            events=[("payment.status_changed", {
                "event_id": payload.id,
                "payment_id": result.payment_id,
                "previous_status": result.previous_status.value,
                "status": result.mapped_status.value,
                "side_effect": result.side_effect.value,
            })],
        )

    async def _reject_transition(self, db: AsyncSession,
                                 payload: TsaraWebhookPayload,
                                 error: IllegalTransitionError) -> WebhookOutcome:
        logger.warning(f"Webhook {payload.id} rejected: {error.message}")
        async with db.begin():
            await crud_webhook_event.record_failed(db, payload.id, payload.event)
        return WebhookOutcome(
            status_code=409,
            body={
                "success": False,
                "message": "Illegal payment transition",
                "from": error.current_status,
                "to": error.target_status,
            },
        )

    async def _publish(self, outcome: WebhookOutcome) -> None:
        for event_type, payload in outcome.events:
            try:
                await self.publisher.publish(event_type, payload)
            except Exception as e:
                # the transaction is already committed, a lost realtime event is only logged
                logger.error(f"Failed to publish {event_type}: {e}", exc_info=True)
