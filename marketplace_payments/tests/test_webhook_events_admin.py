from uuid import uuid4
import pytest
from marketplace_payments.crud.webhook_event import crud_webhook_event
from marketplace_payments.models.webhook_event import WebhookEventStatus


ADMIN_HEADERS = {"X-Admin-Token": "admin-test-token"}


@pytest.fixture
async def seeded_events(db_session_factory):
    """One processed and two failed ledger rows."""
    async with db_session_factory() as session:
        async with session.begin():
            processed = await crud_webhook_event.record_pending(session, "evt_ok", "payment.success")
            await crud_webhook_event.mark_processed(session, processed)
            failed = await crud_webhook_event.record_failed(session, "evt_orphan", "payment.success")
            await crud_webhook_event.record_failed(session, "evt_refund", "payment.refunded")
        return {"processed": processed.id, "failed": failed.id}


async def test_admin_token_is_required(client, seeded_events):
    response = await client.get("/api/v1/webhook-events/")
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid admin token"}

    response = await client.get("/api/v1/webhook-events/", headers={"X-Admin-Token": "guess"})
    assert response.status_code == 401


async def test_admin_routes_are_closed_without_a_configured_token(client, test_settings):
    test_settings.ADMIN_API_TOKEN = ""
    response = await client.get("/api/v1/webhook-events/stats", headers={"X-Admin-Token": ""})
    assert response.status_code == 401


async def test_list_events(client, seeded_events):
    response = await client.get("/api/v1/webhook-events/", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert {e["event_id"] for e in response.json()} == {"evt_ok", "evt_orphan", "evt_refund"}

    page = await client.get("/api/v1/webhook-events/?limit=2&offset=0", headers=ADMIN_HEADERS)
    assert len(page.json()) == 2

    too_many = await client.get("/api/v1/webhook-events/?limit=500", headers=ADMIN_HEADERS)
    assert too_many.status_code == 422


async def test_list_failed_and_by_type(client, seeded_events):
    failed = await client.get("/api/v1/webhook-events/failed", headers=ADMIN_HEADERS)
    assert {e["event_id"] for e in failed.json()} == {"evt_orphan", "evt_refund"}
    assert all(e["status"] == "failed" for e in failed.json())

    by_type = await client.get("/api/v1/webhook-events/by-type/payment.refunded", headers=ADMIN_HEADERS)
    assert [e["event_id"] for e in by_type.json()] == ["evt_refund"]


async def test_stats(client, seeded_events):
    response = await client.get("/api/v1/webhook-events/stats", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.json() == {"total": 3, "pending": 0, "processed": 1, "failed": 2}


async def test_get_event(client, seeded_events):
    response = await client.get(f"/api/v1/webhook-events/{seeded_events['processed']}", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["event_id"] == "evt_ok"
    assert body["status"] == "processed"
    assert body["processed_at"] is not None

    missing = await client.get(f"/api/v1/webhook-events/{uuid4()}", headers=ADMIN_HEADERS)
    assert missing.status_code == 404
    assert missing.json() == {"error": "Webhook event not found"}


async def test_update_status(client, seeded_events, db_session_factory):
    response = await client.post(f"/api/v1/webhook-events/{seeded_events['failed']}/status",
                                 json={"status": "processed"}, headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.json()["status"] == "processed"

    async with db_session_factory() as session:
        stored = await crud_webhook_event.get_by_event_id(session, "evt_orphan")
        assert stored.status == WebhookEventStatus.PROCESSED

    invalid = await client.post(f"/api/v1/webhook-events/{seeded_events['failed']}/status",
                                json={"status": "pending"}, headers=ADMIN_HEADERS)
    assert invalid.status_code == 422


async def test_retry_lets_the_next_delivery_through(client, seeded_events, make_payment, post_webhook,
                                                    db_session_factory):
    # the orphaned delivery is answered as a replay until an operator resets it
    body = {"id": "evt_orphan", "event": "payment.success",
            "data": {"reference": "tx_late", "status": "success"}}
    await make_payment(transaction_ref="tx_late")
    assert (await post_webhook(body)).json() == {"success": True, "idempotent": True}

    reset = await client.post(f"/api/v1/webhook-events/{seeded_events['failed']}/retry", headers=ADMIN_HEADERS)
    assert reset.status_code == 200
    assert reset.json()["status"] == "pending"
    assert reset.json()["processed_at"] is None

    response = await post_webhook(body)
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    async with db_session_factory() as session:
        stored = await crud_webhook_event.get_by_event_id(session, "evt_orphan")
        assert stored.id == seeded_events["failed"]
        assert stored.status == WebhookEventStatus.PROCESSED
