from enum import Enum
import uuid
from sqlalchemy import BigInteger, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from marketplace_payments.db.base import Base, str_enum
from .mixins.timestamp import TimestampMixin


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PayoutStatus(str, Enum):
    IN_ESCROW = "in_escrow"
    PROCESSING = "processing"
    RELEASED = "released"
    REFUNDED = "refunded"


class Order(Base, TimestampMixin):
    __tablename__ = "orders"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    buyer_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    seller_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    listing_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    product_title: Mapped[str] = mapped_column(String(255), nullable=False)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    order_status: Mapped[OrderStatus] = mapped_column(
        str_enum(OrderStatus, "order_status"), default=OrderStatus.PENDING, nullable=False)
    payout_status: Mapped[PayoutStatus] = mapped_column(
        str_enum(PayoutStatus, "payout_status"), default=PayoutStatus.IN_ESCROW, nullable=False)
