import logging
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace_payments.api.deps import get_webhook_processor
from marketplace_payments.core.exceptions import PaymentError
from marketplace_payments.db.session import get_db_session
from marketplace_payments.services.webhook_processor import WebhookProcessor

router = APIRouter(prefix="/webhooks")
logger = logging.getLogger(__name__)


@router.post("/tsara")
async def tsara_webhook(
    request: Request,
    x_tsara_signature: Optional[str] = Header(None, alias="x-tsara-signature"),
    db_session: AsyncSession = Depends(get_db_session),
    processor: WebhookProcessor = Depends(get_webhook_processor),
):
    """
    Handle Tsara payment webhooks.

    The body is read raw because the signature covers the exact bytes.
    Tsara retries on any non 2xx response, so a 500 here means the delivery
    will come back and be processed from scratch.
    """
    raw_body = await request.body()
    try:
        outcome = await processor.process(db_session, raw_body, x_tsara_signature)
    except PaymentError:
        raise
    except Exception as e:
        logger.error(f"Tsara webhook processing failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error", "details": str(e)})
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.get("/tsara")
async def tsara_webhook_health():
    return {
        "status": "ok",
        "provider": "tsara",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
