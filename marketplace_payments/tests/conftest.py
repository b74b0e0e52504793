import json
from uuid import uuid4
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from marketplace_payments.api.deps import get_event_publisher
from marketplace_payments.app import create_app
from marketplace_payments.core.config import Settings, get_settings
from marketplace_payments.db.base import Base
from marketplace_payments.db.session import get_db_session
from marketplace_payments.models import Order, Payment
from marketplace_payments.models.payment import PaymentStatus
from marketplace_payments.services.event_publisher import InMemoryEventPublisher
from marketplace_payments.services.signature import compute_signature

WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_TOKEN = "admin-test-token"


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine, one shared connection so every session sees the same data."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def db_session_factory(db_engine):
    """Factory to create independent sessions, e.g. to read back committed state."""
    return async_sessionmaker(
        bind=db_engine,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def test_settings():
    return Settings(
        TSARA_WEBHOOK_SECRET=WEBHOOK_SECRET,
        ADMIN_API_TOKEN=ADMIN_TOKEN,
        EVENT_PUBLISHER="memory",
        PAYMENT_HOLD_DAYS=30,
        ENFORCE_PAYMENT_TRANSITIONS=False,
    )


@pytest.fixture
def event_publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def app(db_session_factory, test_settings, event_publisher):
    app = create_app()

    async def override_db_session():
        async with db_session_factory() as session:
            yield session
            await session.rollback()

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_event_publisher] = lambda: event_publisher
    return app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def make_payment(db_session_factory):
    """Create a payment (and by default its order) the way checkout would."""
    async def _make_payment(transaction_ref: str = "tx_abc",
                            status: PaymentStatus = PaymentStatus.PENDING,
                            with_order: bool = True,
                            amount_cents: int = 4500000,
                            currency: str = "NGN"):
        async with db_session_factory() as session:
            buyer_id = uuid4()
            order = None
            if with_order:
                order = Order(
                    buyer_id=buyer_id,
                    seller_id=uuid4(),
                    listing_id=uuid4(),
                    product_title="Adire Silk Wrap Dress",
                    amount_cents=amount_cents,
                    currency=currency,
                )
                session.add(order)
                await session.flush()
            payment = Payment(
                transaction_ref=transaction_ref,
                status=status,
                amount_cents=amount_cents,
                currency=currency,
                order_id=order.id if order else None,
                listing_id=order.listing_id if order else None,
                buyer_id=buyer_id,
            )
            session.add(payment)
            await session.commit()
            return {
                "payment_id": payment.id,
                "order_id": order.id if order else None,
                "seller_id": order.seller_id if order else None,
                "buyer_id": buyer_id,
            }
    return _make_payment


@pytest.fixture
def post_webhook(client):
    """Post a Tsara webhook body signed with the test secret."""
    async def _post_webhook(body: dict, secret: str = WEBHOOK_SECRET, signature: str = None):
        raw_body = json.dumps(body).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        headers["x-tsara-signature"] = signature if signature is not None else compute_signature(raw_body, secret)
        return await client.post("/api/v1/webhooks/tsara", content=raw_body, headers=headers)
    return _post_webhook
