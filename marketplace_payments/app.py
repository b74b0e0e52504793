import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from marketplace_payments.core.config import settings
from marketplace_payments.core.exceptions import PaymentError
from marketplace_payments.core.logging import configure_logging
from marketplace_payments.db.session import init_db
from marketplace_payments.services.event_publisher import build_event_publisher
import marketplace_payments.api.routes_health as routes_health
import marketplace_payments.api.routes_webhook as routes_webhook
import marketplace_payments.api.routes_webhook_events as routes_webhook_events

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENV})")
    await init_db()
    yield  # App runs here
    await app.state.event_publisher.close()
    logger.info("Shutting down")


def create_app():
    app = FastAPI(
        title=settings.APP_NAME,
        description="Payment webhook reconciliation for the fashion marketplace",
        version="0.1.0",
        lifespan=lifespan
    )
    app.state.event_publisher = build_event_publisher(settings.EVENT_PUBLISHER, settings.REDIS_URL)

    app.include_router(
        routes_health.router,
        prefix="/api/v1"
    )

    app.include_router(
        routes_webhook.router,
        prefix="/api/v1",
        tags=["webhooks"]
    )

    app.include_router(
        routes_webhook_events.router,
        prefix="/api/v1",
        tags=["webhook-events"]
    )

    @app.exception_handler(PaymentError)
    async def payment_error_handler(request, ex: PaymentError):
        return JSONResponse(status_code=ex.status_code, content={"error": ex.message})

    @app.get("/")
    def root():
        return {"message": "Marketplace payments backend"}
    return app


app = create_app()
