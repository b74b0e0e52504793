from enum import Enum
from typing import Any
from marketplace_payments.models.payment import PaymentStatus


# Tsara status -> internal payment status
STATUS_MAP = {
    "pending": PaymentStatus.PENDING,
    "processing": PaymentStatus.PROCESSING,
    "success": PaymentStatus.COMPLETED,
    "failed": PaymentStatus.FAILED,
    "refunded": PaymentStatus.REFUNDED,
}


class SideEffect(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    REFUND = "refund"
    NONE = "none"


def map_status(provider_status: Any) -> PaymentStatus:
    """
    Unknown or malformed statuses fall back to pending, a non terminal
    state, instead of rejecting the webhook.
    """
    if not isinstance(provider_status, str):
        return PaymentStatus.PENDING
    return STATUS_MAP.get(provider_status, PaymentStatus.PENDING)


def resolve_side_effect(provider_status: Any, mapped_status: PaymentStatus) -> SideEffect:
    """
    Decide once which fulfillment flow a webhook triggers.
    Success and failure follow the raw provider status, refunds follow the
    mapped status.
    """
    if provider_status == "success":
        return SideEffect.SUCCESS
    if provider_status == "failed":
        return SideEffect.FAILURE
    if mapped_status == PaymentStatus.REFUNDED:
        return SideEffect.REFUND
    return SideEffect.NONE
