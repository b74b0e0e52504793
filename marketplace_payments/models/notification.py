from datetime import datetime
from enum import Enum
from typing import Optional
import uuid
from sqlalchemy import Boolean, DateTime, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from marketplace_payments.db.base import Base, str_enum
from .mixins.timestamp import utcnow


class NotificationType(str, Enum):
    ORDER_CONFIRMED = "order_confirmed"
    PAYMENT_FAILED = "payment_failed"
    REFUND_ISSUED = "refund_issued"


class Notification(Base):
    __tablename__ = "notifications"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    buyer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    type: Mapped[NotificationType] = mapped_column(
        str_enum(NotificationType, "notification_type"), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
