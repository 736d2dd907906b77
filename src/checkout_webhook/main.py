"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from checkout_webhook.business import LoggingBusinessHandler
from checkout_webhook.config import Settings
from checkout_webhook.provider.client import MercadoPagoClient
from checkout_webhook.webhook import handler as webhook_handler
from checkout_webhook.webhook.dispatcher import NotificationDispatcher
from checkout_webhook.webhook.handler import router as webhook_router
from checkout_webhook.webhook.signature import SignatureVerifier

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    mp_client = MercadoPagoClient(
        settings.mp_access_token,
        base_url=settings.mp_api_base,
        timeout=settings.request_timeout,
    )
    verifier = SignatureVerifier.from_settings(settings)

    # Inject dependencies into webhook handler
    webhook_handler.configure(
        verifier, NotificationDispatcher(mp_client), LoggingBusinessHandler()
    )

    if not verifier.enabled:
        logger.warning(
            "Webhook signature verification is DISABLED (environment=%s, secret %s); "
            "every notification is accepted as authentic",
            settings.environment,
            "set" if settings.webhook_secret else "missing",
        )
    logger.info("Checkout webhook server started (environment=%s)", settings.environment)
    yield

    await mp_client.close()
    logger.info("Checkout webhook server stopped")


app = FastAPI(title="Checkout Webhook", lifespan=lifespan)
app.include_router(webhook_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "checkout_webhook.main:app",
        host=settings.host,
        port=settings.port,
    )
