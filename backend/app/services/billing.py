"""Billing service utilities."""

import secrets
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.orm import Session

from backend.app.core.errors import ValidationError
from backend.app.models.invoice import Invoice

CENTS = Decimal("0.01")


def to_money(value: Decimal | float | int | str | None) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_line_amount(quantity: Decimal | float | None, unit_price: Decimal | float | None) -> Decimal:
    """Compute ``quantity * unit_price`` with Decimal math, rejecting non-positive inputs."""
    if quantity is None or unit_price is None:
        raise ValidationError("Quantity and unit price are required")
    qty = Decimal(str(quantity))
    price = Decimal(str(unit_price))
    if qty <= 0:
        raise ValidationError("Quantity must be positive")
    if price <= 0:
        raise ValidationError("Unit price must be positive")
    return (qty * price).quantize(CENTS, rounding=ROUND_HALF_UP)


def recalculate_invoice_total(invoice: Invoice) -> Decimal:
    total = sum((to_money(item.amount) for item in invoice.items), Decimal("0.00"))
    invoice.total_amount = total
    return total


def generate_invoice_number(db: Session, owner_id: int, issue_date: date, attempts: int = 5) -> str:
    """Human readable number, unique per owner: INV-<issue date>-<6 hex chars>."""
    for _ in range(attempts):
        candidate = f"INV-{issue_date:%Y%m%d}-{secrets.token_hex(3).upper()}"
        exists = (
            db.query(Invoice.id)
            .filter(Invoice.owner_id == owner_id, Invoice.invoice_number == candidate)
            .first()
        )
        if exists is None:
            return candidate
    raise ValidationError("Could not allocate a unique invoice number")
