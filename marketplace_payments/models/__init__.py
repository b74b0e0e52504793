

from .webhook_event import WebhookEvent as WebhookEvent
from .payment import Payment as Payment
from .order import Order as Order
from .payment_hold import PaymentHold as PaymentHold
from .notification import Notification as Notification
from .financial_ledger import FinancialLedgerEntry as FinancialLedgerEntry

__all__ = ["WebhookEvent", "Payment", "Order", "PaymentHold", "Notification", "FinancialLedgerEntry"]
