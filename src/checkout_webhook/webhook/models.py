"""Data model for inbound payment notifications."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class IncomingRequest:
    """An inbound webhook request as seen by the verifier.

    Header names are matched case-insensitively. ``body`` is the parsed JSON
    payload and is never modified.
    """

    headers: Mapping[str, str]
    body: Any = None

    def __post_init__(self) -> None:
        lowered = {k.lower(): v for k, v in self.headers.items()}
        object.__setattr__(self, "headers", MappingProxyType(lowered))

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def data_id(self) -> Any:
        """Raw ``data.id`` from the body, or None when the body has no such field."""
        if not isinstance(self.body, Mapping):
            return None
        data = self.body.get("data")
        if not isinstance(data, Mapping):
            return None
        return data.get("id")


@dataclass(frozen=True)
class SignatureHeader:
    """Parsed ``x-signature`` header: ``ts=<unix seconds>,v1=<hex digest>``."""

    ts: str | None = None
    v1: str | None = None
    pairs: tuple[tuple[str, str], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class VerificationContext:
    request_id: str
    data_id: str
    ts: str  # exactly as sent, this is what gets signed
    timestamp: int
    provided_hash: str


def id_string(value: Any) -> str:
    """String form of a notification id; falsy ids (None, "", 0) become "".

    Used both for the signed manifest and to decide whether a resource is fetched.
    """
    if value is None or value == "" or value is False or value == 0:
        return ""
    if value is True:
        return "true"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class NotificationData(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | int | float | None = None


class Notification(BaseModel):
    """Notification body sent by the payment provider.

    ``topic`` (legacy IPN) and ``type`` (webhooks) name the same thing.
    """

    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    # Not restricted to strings; anything but "payment" or "merchant_order" is unrecognized.
    topic: Any = None
    type: Any = None
    action: str | None = None
    data: NotificationData | None = None

    @property
    def classification_key(self) -> Any:
        # topic wins over type when both are sent
        return self.topic or self.type or None

    @property
    def data_id(self) -> str | None:
        if self.data is None:
            return None
        return id_string(self.data.id) or None


@dataclass(frozen=True)
class PaymentEvent:
    id: str
    status: str | None
    status_detail: str | None
    transaction_amount: float | None
    external_reference: str | None


@dataclass(frozen=True)
class MerchantOrderEvent:
    id: str
    status: str | None
    item_count: int


@dataclass(frozen=True)
class Unrecognized:
    raw_topic: Any


NotificationOutcome = PaymentEvent | MerchantOrderEvent | Unrecognized
