from datetime import datetime
from enum import Enum
from typing import Optional
import uuid
from sqlalchemy import DateTime, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from marketplace_payments.db.base import Base, str_enum
from .mixins.timestamp import utcnow

EVENT_ID_MAX_LENGTH = 255
EVENT_TYPE_MAX_LENGTH = 100


class WebhookEventStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class WebhookEvent(Base):
    """
    Ledger of inbound provider webhooks.
    The unique index on event_id makes a concurrent duplicate delivery fail
    at insert time instead of being processed twice. Re-driving a row that
    was reset for retry goes through version_id, so only one delivery can
    claim it.
    """
    __tablename__ = "webhook_events"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[str] = mapped_column(
        String(EVENT_ID_MAX_LENGTH), unique=True, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(EVENT_TYPE_MAX_LENGTH), nullable=False)
    status: Mapped[WebhookEventStatus] = mapped_column(
        str_enum(WebhookEventStatus, "webhook_event_status"),
        default=WebhookEventStatus.PENDING, nullable=False)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False)
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}
