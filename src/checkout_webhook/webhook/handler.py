"""Webhook endpoint for receiving Mercado Pago notifications."""

import logging
import time
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import TypeAdapter, ValidationError

from checkout_webhook.business import BusinessHandler
from checkout_webhook.webhook.dispatcher import NotificationDispatcher
from checkout_webhook.webhook.models import IncomingRequest, Notification
from checkout_webhook.webhook.signature import SignatureVerifier, VerificationError

logger = logging.getLogger(__name__)

router = APIRouter()

# These will be injected at app startup
_verifier: SignatureVerifier | None = None
_dispatcher: NotificationDispatcher | None = None
_business: BusinessHandler | None = None
_clock: Callable[[], float] = time.time

_body_adapter = TypeAdapter(dict[str, Any])


class MalformedBody(Exception):
    """Raised when the notification body isn't a JSON object."""


def configure(
    verifier: SignatureVerifier,
    dispatcher: NotificationDispatcher,
    business: BusinessHandler,
    clock: Callable[[], float] = time.time,
) -> None:
    global _verifier, _dispatcher, _business, _clock
    _verifier = verifier
    _dispatcher = dispatcher
    _business = business
    _clock = clock


def _parse_body(body: bytes) -> dict[str, Any]:
    try:
        return _body_adapter.validate_json(body)
    except ValidationError as e:
        raise MalformedBody("body is not a JSON object") from e


@router.post("/webhook")
async def handle_webhook(request: Request) -> Response:
    """Handle an incoming payment notification."""
    try:
        payload = _parse_body(await request.body())

        incoming = IncomingRequest(headers=request.headers, body=payload)
        try:
            _verifier.verify(incoming, now=_clock())
        except VerificationError:
            return JSONResponse({"error": "Unauthorized"}, status_code=401)

        try:
            notification = Notification.model_validate(payload)
        except ValidationError as e:
            raise MalformedBody("body does not match the notification shape") from e

        logger.info(
            "Webhook received: id=%s topic=%s type=%s action=%s data_id=%s",
            notification.id,
            notification.topic,
            notification.type,
            notification.action,
            notification.data_id,
        )

        result = await _dispatcher.dispatch(notification)
        logger.debug("Notification %s dispatch status: %s", notification.id, result.status.value)
        if result.outcome is not None:
            await _business.handle(result.outcome)
    except Exception:
        logger.exception("Error processing webhook")
        return PlainTextResponse("Internal Server Error", status_code=500)

    return PlainTextResponse("OK")
