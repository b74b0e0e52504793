from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from marketplace_payments.api.deps import require_admin
from marketplace_payments.crud.webhook_event import crud_webhook_event
from marketplace_payments.db.session import get_db_session
from marketplace_payments.models.webhook_event import WebhookEventStatus
from marketplace_payments.schemas.webhook import WebhookEventResponse, WebhookEventStats, WebhookEventStatusUpdate

router = APIRouter(prefix="/webhook-events", dependencies=[Depends(require_admin)])


@router.get("/", response_model=List[WebhookEventResponse])
async def list_webhook_events(limit: int = Query(50, ge=1, le=100),
                              offset: int = Query(0, ge=0),
                              db_session: AsyncSession = Depends(get_db_session)):
    return await crud_webhook_event.list_events(db_session, limit=limit, offset=offset)


@router.get("/failed", response_model=List[WebhookEventResponse])
async def list_failed_webhook_events(limit: int = Query(50, ge=1, le=100),
                                     db_session: AsyncSession = Depends(get_db_session)):
    return await crud_webhook_event.list_failed(db_session, limit=limit)


@router.get("/stats", response_model=WebhookEventStats)
async def webhook_event_stats(db_session: AsyncSession = Depends(get_db_session)):
    return await crud_webhook_event.stats(db_session)


@router.get("/by-type/{event_type}", response_model=List[WebhookEventResponse])
async def list_webhook_events_by_type(event_type: str,
                                      limit: int = Query(50, ge=1, le=100),
                                      db_session: AsyncSession = Depends(get_db_session)):
    return await crud_webhook_event.list_by_type(db_session, event_type=event_type, limit=limit)


@router.get("/{event_id}", response_model=WebhookEventResponse)
async def get_webhook_event(event_id: UUID, db_session: AsyncSession = Depends(get_db_session)):
    return await crud_webhook_event.get(db_session, event_id)


@router.post("/{event_id}/status", response_model=WebhookEventResponse)
async def update_webhook_event_status(event_id: UUID,
                                      request: WebhookEventStatusUpdate,
                                      db_session: AsyncSession = Depends(get_db_session)):
    return await crud_webhook_event.set_status(db_session, event_id, WebhookEventStatus(request.status))


@router.post("/{event_id}/retry", response_model=WebhookEventResponse)
async def retry_webhook_event(event_id: UUID, db_session: AsyncSession = Depends(get_db_session)):
    return await crud_webhook_event.reset_for_retry(db_session, event_id)
