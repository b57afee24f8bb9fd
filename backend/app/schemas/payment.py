"""Payment schemas."""

from pydantic import BaseModel


class PaymentIntentRead(BaseModel):
    invoice_id: int
    client_secret: str


class WebhookAck(BaseModel):
    received: bool
    invoice_id: int | None = None
