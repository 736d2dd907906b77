"""Mercado Pago webhook signature verification.

The provider signs a manifest built from the notification's ``data.id``, the
``x-request-id`` header and the timestamp carried in ``x-signature``::

    id:<data.id>;request-id:<x-request-id>;ts:<ts>;

and sends the lowercase hex HMAC-SHA256 of it as ``v1``. The manifest layout
must match the provider's byte for byte.
"""

import hashlib
import hmac
import logging
import time
from collections.abc import Callable
from typing import Any

from checkout_webhook.config import Settings
from checkout_webhook.webhook.models import (
    IncomingRequest,
    SignatureHeader,
    VerificationContext,
    id_string,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-signature"
REQUEST_ID_HEADER = "x-request-id"
DEFAULT_TOLERANCE = 300


class VerificationError(Exception):
    """Raised when a notification fails signature verification."""

    reason = "verification_failed"


class MissingHeaders(VerificationError):
    reason = "missing_headers"


class MalformedSignature(VerificationError):
    reason = "malformed_signature"


class StaleTimestamp(VerificationError):
    reason = "stale_timestamp"


class SignatureMismatch(VerificationError):
    reason = "signature_mismatch"


def parse_signature_header(value: str) -> SignatureHeader:
    """Parse ``ts=...,v1=...``. Segments that aren't a single key=value are skipped."""
    pairs = []
    ts = v1 = None
    for segment in value.split(","):
        parts = segment.split("=")
        if len(parts) != 2:
            continue
        key, val = parts[0].strip(), parts[1].strip()
        if not key or not val:
            continue
        pairs.append((key, val))
        if key == "ts":
            ts = val
        elif key == "v1":
            v1 = val
    return SignatureHeader(ts=ts, v1=v1, pairs=tuple(pairs))


def manifest_id(value: Any) -> str:
    """String form of ``data.id`` as it appears in the manifest."""
    return id_string(value)


def build_manifest(data_id: str, request_id: str, ts: str | int) -> str:
    return f"id:{data_id};request-id:{request_id};ts:{ts};"


def compute_signature(secret: str, manifest: str) -> str:
    return hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()


def _build_context(request: IncomingRequest) -> VerificationContext:
    signature = request.header(SIGNATURE_HEADER)
    request_id = request.header(REQUEST_ID_HEADER)
    if not signature or not request_id:
        raise MissingHeaders("x-signature and x-request-id headers are required")

    parsed = parse_signature_header(signature)
    if parsed.ts is None or parsed.v1 is None:
        raise MalformedSignature("x-signature must carry ts and v1")
    try:
        timestamp = int(parsed.ts)
    except ValueError:
        raise MalformedSignature(f"x-signature ts is not an integer: {parsed.ts!r}") from None

    return VerificationContext(
        request_id=request_id,
        data_id=manifest_id(request.data_id),
        ts=parsed.ts,
        timestamp=timestamp,
        provided_hash=parsed.v1,
    )


def verify(
    request: IncomingRequest,
    secret: str | None,
    now: float,
    tolerance: int = DEFAULT_TOLERANCE,
) -> None:
    """Verify a notification's signature, raising VerificationError on failure.

    An empty or missing ``secret`` disables verification and every request
    passes. ``now`` is the current Unix time in seconds.
    """
    if not secret:
        return

    ctx = _build_context(request)

    if abs(int(now) - ctx.timestamp) > tolerance:
        raise StaleTimestamp(
            f"signature timestamp {ctx.timestamp} is outside the {tolerance}s window"
        )

    manifest = build_manifest(ctx.data_id, ctx.request_id, ctx.ts)
    expected = compute_signature(secret, manifest)
    if not hmac.compare_digest(expected.encode(), ctx.provided_hash.encode()):
        raise SignatureMismatch("signature does not match")


class SignatureVerifier:
    """Verifier bound to the configured secret and clock."""

    def __init__(
        self,
        secret: str | None,
        tolerance: int = DEFAULT_TOLERANCE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret or None
        self._tolerance = tolerance
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "SignatureVerifier":
        return cls(settings.effective_webhook_secret, tolerance=settings.signature_tolerance)

    @property
    def enabled(self) -> bool:
        return self._secret is not None

    def verify(self, request: IncomingRequest, now: float | None = None) -> None:
        if now is None:
            now = self._clock()
        try:
            verify(request, self._secret, now, self._tolerance)
        except VerificationError as e:
            logger.warning(
                "Webhook signature rejected (%s) request_id=%s: %s",
                e.reason,
                request.header(REQUEST_ID_HEADER),
                e,
            )
            raise
