"""End-to-end tests for the /webhook endpoint."""

import hashlib
import hmac
import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from checkout_webhook.provider.client import ProviderLookupError
from checkout_webhook.provider.models import MerchantOrderDetails, PaymentDetails
from checkout_webhook.webhook import handler as webhook_handler
from checkout_webhook.webhook.dispatcher import NotificationDispatcher
from checkout_webhook.webhook.models import MerchantOrderEvent, PaymentEvent, Unrecognized
from checkout_webhook.webhook.signature import SignatureVerifier

SECRET = "s3cr3t"
NOW = 1_700_000_000


class StubLookup:
    def __init__(self, fail: bool = False):
        self.fail = fail

    async def get_payment(self, payment_id: str) -> PaymentDetails:
        if self.fail:
            raise ProviderLookupError("payment", payment_id, "boom")
        return PaymentDetails(id=payment_id, status="approved", transaction_amount=10.0)

    async def get_merchant_order(self, order_id: str) -> MerchantOrderDetails:
        if self.fail:
            raise ProviderLookupError("merchant_order", order_id, "boom")
        return MerchantOrderDetails(id=order_id, status="opened", items=[{}])


class RecordingBusiness:
    def __init__(self, error: Exception | None = None):
        self.outcomes = []
        self.error = error

    async def handle(self, outcome) -> None:
        if self.error:
            raise self.error
        self.outcomes.append(outcome)


def _make_client(secret=SECRET, lookup=None, business=None) -> TestClient:
    webhook_handler.configure(
        SignatureVerifier(secret),
        NotificationDispatcher(lookup or StubLookup()),
        business if business is not None else RecordingBusiness(),
        clock=lambda: NOW,
    )
    app = FastAPI()
    app.include_router(webhook_handler.router)
    return TestClient(app, raise_server_exceptions=False)


def _signed_headers(data_id: str, request_id: str = "r1", ts: int = NOW) -> dict:
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    v1 = hmac.new(SECRET.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return {
        "x-signature": f"ts={ts},v1={v1}",
        "x-request-id": request_id,
        "content-type": "application/json",
    }


def _post(client: TestClient, body, headers=None):
    content = body if isinstance(body, (str, bytes)) else json.dumps(body)
    return client.post("/webhook", content=content, headers=headers or {})


class TestVerification:
    def test_valid_signature_accepted(self):
        business = RecordingBusiness()
        client = _make_client(business=business)
        resp = _post(client, {"data": {"id": "123"}}, _signed_headers("123"))
        assert resp.status_code == 200
        assert resp.text == "OK"
        assert business.outcomes == [Unrecognized(raw_topic=None)]

    def test_stale_signature_rejected(self):
        client = _make_client()
        resp = _post(client, {"data": {"id": "123"}}, _signed_headers("123", ts=NOW - 600))
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

    def test_missing_signature_rejected(self):
        client = _make_client()
        resp = _post(client, {"data": {"id": "123"}}, {"x-request-id": "r1"})
        assert resp.status_code == 401
        assert resp.json() == {"error": "Unauthorized"}

    def test_mismatch_not_dispatched(self):
        business = RecordingBusiness()
        client = _make_client(business=business)
        headers = _signed_headers("123")
        resp = _post(client, {"type": "payment", "data": {"id": "456"}}, headers)
        assert resp.status_code == 401
        assert business.outcomes == []

    def test_disabled_verification_accepts_unsigned(self):
        business = RecordingBusiness()
        client = _make_client(secret=None, business=business)
        resp = _post(client, {"type": "payment", "data": {"id": "1"}})
        assert resp.status_code == 200
        assert isinstance(business.outcomes[0], PaymentEvent)


class TestDispatch:
    def test_payment_forwarded(self):
        business = RecordingBusiness()
        client = _make_client(business=business)
        resp = _post(client, {"type": "payment", "data": {"id": "77"}}, _signed_headers("77"))
        assert resp.status_code == 200
        assert business.outcomes[0].id == "77"
        assert business.outcomes[0].status == "approved"

    def test_merchant_order_forwarded(self):
        business = RecordingBusiness()
        client = _make_client(business=business)
        body = {"topic": "merchant_order", "data": {"id": "999"}}
        resp = _post(client, body, _signed_headers("999"))
        assert resp.status_code == 200
        assert business.outcomes == [MerchantOrderEvent(id="999", status="opened", item_count=1)]

    def test_lookup_failure_still_acknowledged(self):
        business = RecordingBusiness()
        client = _make_client(lookup=StubLookup(fail=True), business=business)
        body = {"topic": "merchant_order", "data": {"id": "999"}}
        resp = _post(client, body, _signed_headers("999"))
        assert resp.status_code == 200
        assert resp.text == "OK"
        assert business.outcomes == []

    def test_unrecognized_type_acknowledged(self):
        business = RecordingBusiness()
        client = _make_client(business=business)
        resp = _post(client, {"type": "subscription_preapproval"}, _signed_headers(""))
        assert resp.status_code == 200
        assert business.outcomes == [Unrecognized(raw_topic="subscription_preapproval")]

    def test_non_string_topic_acknowledged(self):
        business = RecordingBusiness()
        client = _make_client(business=business)
        resp = _post(client, {"topic": 5}, _signed_headers(""))
        assert resp.status_code == 200
        assert business.outcomes == [Unrecognized(raw_topic=5)]

    def test_zero_data_id_acknowledged_without_fetch(self):
        business = RecordingBusiness()
        client = _make_client(lookup=StubLookup(fail=True), business=business)
        resp = _post(client, {"type": "payment", "data": {"id": 0}}, _signed_headers(""))
        assert resp.status_code == 200
        assert business.outcomes == []

    def test_payment_without_data_id_acknowledged(self):
        business = RecordingBusiness()
        client = _make_client(business=business)
        resp = _post(client, {"type": "payment"}, _signed_headers(""))
        assert resp.status_code == 200
        assert business.outcomes == []


class TestErrors:
    @pytest.mark.parametrize("body", ["not json", "[1, 2]", "", b"\xff\xfe"])
    def test_malformed_body_is_500(self, body):
        client = _make_client(secret=None)
        resp = _post(client, body)
        assert resp.status_code == 500
        assert resp.text == "Internal Server Error"

    def test_wrong_shape_is_500(self):
        client = _make_client(secret=None)
        resp = _post(client, {"type": "payment", "data": "123"})
        assert resp.status_code == 500

    def test_business_error_is_500(self):
        client = _make_client(secret=None, business=RecordingBusiness(error=RuntimeError("db down")))
        resp = _post(client, {"type": "payment", "data": {"id": "1"}})
        assert resp.status_code == 500
