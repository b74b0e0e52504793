from typing import Optional
from fastapi import Depends, Header, Request
from marketplace_payments.core.config import Settings, get_settings
from marketplace_payments.core.exceptions import AdminAuthError
from marketplace_payments.services.event_publisher import EventPublisher
from marketplace_payments.services.payment_flow import PaymentFlowService
from marketplace_payments.services.transition_executor import TransitionExecutor
from marketplace_payments.services.webhook_processor import WebhookProcessor


def get_event_publisher(request: Request) -> EventPublisher:
    """The publisher is built once per app in create_app() and kept on app.state."""
    return request.app.state.event_publisher


def get_payment_flow_service(settings: Settings = Depends(get_settings)) -> PaymentFlowService:
    return PaymentFlowService(hold_days=settings.PAYMENT_HOLD_DAYS)


def get_webhook_processor(settings: Settings = Depends(get_settings),
                          flow_service: PaymentFlowService = Depends(get_payment_flow_service),
                          publisher: EventPublisher = Depends(get_event_publisher)) -> WebhookProcessor:
    executor = TransitionExecutor(
        flow_service, enforce_transitions=settings.ENFORCE_PAYMENT_TRANSITIONS)
    return WebhookProcessor(
        secret=settings.TSARA_WEBHOOK_SECRET, executor=executor, publisher=publisher)


async def require_admin(x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
                        settings: Settings = Depends(get_settings)) -> None:
    if not settings.ADMIN_API_TOKEN or x_admin_token != settings.ADMIN_API_TOKEN:
        raise AdminAuthError()
