from datetime import datetime
from enum import Enum
from typing import Optional
import uuid
from sqlalchemy import BigInteger, Boolean, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from marketplace_payments.db.base import Base, str_enum
from .mixins.timestamp import TimestampMixin


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # not unique at the database level, see crud_payment.find_by_transaction_ref
    transaction_ref: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    status: Mapped[PaymentStatus] = mapped_column(
        str_enum(PaymentStatus, "payment_status"), default=PaymentStatus.PENDING, nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    listing_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    buyer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    is_refunded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    # raw provider body, kept for forensics
    gateway_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
