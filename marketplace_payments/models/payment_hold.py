from datetime import datetime
from enum import Enum
from typing import Optional
import uuid
from sqlalchemy import BigInteger, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from marketplace_payments.db.base import Base, str_enum
from .mixins.timestamp import utcnow


class HoldStatus(str, Enum):
    ACTIVE = "active"
    RELEASED = "released"
    REFUNDED = "refunded"


class PaymentHold(Base):
    """Escrow hold on seller funds, created when a payment succeeds."""
    __tablename__ = "payment_holds"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    payment_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    seller_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    hold_status: Mapped[HoldStatus] = mapped_column(
        str_enum(HoldStatus, "hold_status"), default=HoldStatus.ACTIVE, nullable=False)
    held_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    releaseable_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    released_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
