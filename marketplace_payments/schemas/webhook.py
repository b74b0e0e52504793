from datetime import datetime
from typing import Any, Literal, Optional
import uuid
from pydantic import BaseModel, ConfigDict, Field, field_validator
from marketplace_payments.models.webhook_event import EVENT_TYPE_MAX_LENGTH, WebhookEventStatus


class TsaraWebhookData(BaseModel):
    """
    Only reference and status drive processing. Every other provider field
    (amount, currency, metadata...) passes through untyped.
    """
    model_config = ConfigDict(extra="allow")

    reference: Optional[str] = None
    status: Optional[Any] = None

    @field_validator("reference", mode="before")
    @classmethod
    def coerce_reference(cls, value: Any) -> Optional[str]:
        # numeric references are matched as text, anything else finds no payment
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            return value
        return None


class TsaraWebhookPayload(BaseModel):
    """Body Tsara posts to the webhook endpoint."""
    model_config = ConfigDict(extra="allow")

    id: str
    event: str = "unknown"
    data: TsaraWebhookData = Field(default_factory=TsaraWebhookData)

    @field_validator("event", mode="before")
    @classmethod
    def coerce_event(cls, value: Any) -> str:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "unknown"
        return str(value)[:EVENT_TYPE_MAX_LENGTH]


class PaymentFlowInput(BaseModel):
    """What the fulfillment success/failure flows receive for a payment."""
    id: uuid.UUID
    reference: str
    amount: int
    currency: str
    status: Optional[Any] = None
    order_id: Optional[uuid.UUID] = None
    listing_id: Optional[uuid.UUID] = None
    buyer_id: Optional[uuid.UUID] = None


class WebhookEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    event_id: str
    event_type: str
    status: WebhookEventStatus
    received_at: datetime
    processed_at: Optional[datetime] = None


class WebhookEventStatusUpdate(BaseModel):
    status: Literal["processed", "failed"]


class WebhookEventStats(BaseModel):
    total: int
    pending: int
    processed: int
    failed: int

