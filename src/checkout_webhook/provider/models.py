"""Payment and merchant order resources returned by the provider's query API."""

from pydantic import BaseModel, ConfigDict


class PaymentDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | int
    status: str | None = None
    status_detail: str | None = None
    transaction_amount: float | None = None
    external_reference: str | None = None


class MerchantOrderDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | int
    status: str | None = None
    items: list[dict] = []

    @property
    def item_count(self) -> int:
        return len(self.items)
