from datetime import datetime
from enum import Enum
from typing import Optional
import uuid
from sqlalchemy import BigInteger, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from marketplace_payments.db.base import Base, str_enum
from .mixins.timestamp import utcnow


class LedgerTransactionType(str, Enum):
    SALE = "sale"
    REFUND_COMPLETED = "refund_completed"


class LedgerEntryStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class FinancialLedgerEntry(Base):
    __tablename__ = "financial_ledger"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    transaction_type: Mapped[LedgerTransactionType] = mapped_column(
        str_enum(LedgerTransactionType, "ledger_transaction_type"), nullable=False)
    # negative for money leaving the seller (refunds)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[LedgerEntryStatus] = mapped_column(
        str_enum(LedgerEntryStatus, "ledger_entry_status"), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
