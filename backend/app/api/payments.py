"""Payment processor webhook."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.schemas.payment import WebhookAck
from backend.app.services.payments import handle_stripe_webhook

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
):
    payload = await request.body()
    invoice = handle_stripe_webhook(db, payload=payload, signature=stripe_signature)
    return WebhookAck(received=True, invoice_id=invoice.id if invoice is not None else None)
