"""Payment capability and payment confirmation.

The core only needs two things from a processor: a client secret for a charge of a
given amount, and an out-of-band confirmation that ends in ``mark_paid``.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import stripe
from sqlalchemy.orm import Session

from backend.app.core.errors import ExternalCapabilityFailure, ValidationError
from backend.app.core.settings import get_settings
from backend.app.crud.base import commit_or_rollback
from backend.app.crud.crud_invoice import invoice_crud
from backend.app.models.invoice import Invoice
from backend.app.services.invoice_status import apply_transition

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal | float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway(ABC):
    @abstractmethod
    def create_charge_intent(self, amount: Decimal, currency: str, metadata: dict) -> str:
        """Authorize a charge and return the client secret used to complete it."""


class StripePaymentGateway(PaymentGateway):
    def __init__(self, api_key: str):
        stripe.api_key = api_key

    def create_charge_intent(self, amount, currency, metadata) -> str:
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=currency,
                metadata={key: str(value) for key, value in metadata.items()},
            )
        except stripe.StripeError as exc:
            raise ExternalCapabilityFailure("payment", exc.user_message or str(exc)) from exc
        return intent.client_secret


class UnconfiguredPaymentGateway(PaymentGateway):
    def create_charge_intent(self, amount, currency, metadata) -> str:
        raise ExternalCapabilityFailure("payment", "Stripe not configured")


def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    if settings.stripe_secret_key:
        return StripePaymentGateway(settings.stripe_secret_key)
    return UnconfiguredPaymentGateway()


def create_payment_intent(invoice: Invoice, gateway: PaymentGateway) -> str:
    if invoice.status == "paid":
        raise ValidationError("Invoice is already paid")
    if Decimal(str(invoice.total_amount or 0)) <= 0:
        raise ValidationError("Invoice has nothing to charge")
    return gateway.create_charge_intent(
        invoice.total_amount,
        get_settings().currency,
        {"invoice_id": invoice.id, "owner_id": invoice.owner_id},
    )


def mark_paid(db: Session, *, invoice: Invoice) -> Invoice:
    """Apply the confirmed-payment transition; confirming twice is harmless."""
    if invoice.status == "paid":
        return invoice
    apply_transition(invoice, "paid")
    commit_or_rollback(db)
    db.refresh(invoice)
    logger.info("Invoice %s marked paid", invoice.invoice_number)
    return invoice


def handle_stripe_webhook(db: Session, *, payload: bytes, signature: Optional[str]) -> Optional[Invoice]:
    settings = get_settings()
    if not settings.stripe_webhook_secret:
        raise ExternalCapabilityFailure("payment", "Stripe webhook secret not configured")
    try:
        event = stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
    except ValueError as exc:
        raise ValidationError("Invalid payload") from exc
    except stripe.SignatureVerificationError as exc:
        raise ValidationError("Invalid signature") from exc

    if event["type"] != "payment_intent.succeeded":
        logger.debug("Ignoring Stripe event %s", event["type"])
        return None

    metadata = event["data"]["object"].get("metadata") or {}
    try:
        invoice_id = int(metadata["invoice_id"])
        owner_id = int(metadata["owner_id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError("Payment intent is missing invoice metadata") from exc
    invoice = invoice_crud.get_or_raise(db, id=invoice_id, owner_id=owner_id)
    return mark_paid(db, invoice=invoice)
