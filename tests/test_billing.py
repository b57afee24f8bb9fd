from datetime import date
from decimal import Decimal

import pytest

from backend.app.core.errors import ValidationError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_item import InvoiceItem
from backend.app.services.billing import (
    calculate_line_amount,
    generate_invoice_number,
    recalculate_invoice_total,
    to_money,
)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def test_calculate_line_amount_rounds_half_up():
    assert calculate_line_amount(Decimal("1"), Decimal("500.00")) == Decimal("500.00")
    assert calculate_line_amount(Decimal("1.5"), Decimal("80.00")) == Decimal("120.00")
    assert calculate_line_amount(Decimal("0.333"), Decimal("10.00")) == Decimal("3.33")
    assert calculate_line_amount(Decimal("0.125"), Decimal("1.00")) == Decimal("0.13")


@pytest.mark.parametrize(
    "quantity, unit_price",
    [(None, Decimal("1")), (Decimal("1"), None), (Decimal("0"), Decimal("1")), (Decimal("2"), Decimal("-5"))],
)
def test_calculate_line_amount_rejects_non_positive(quantity, unit_price):
    with pytest.raises(ValidationError):
        calculate_line_amount(quantity, unit_price)


def test_recalculate_invoice_total_sums_item_amounts():
    invoice = Invoice(status="draft")
    invoice.items.append(InvoiceItem(description="A", quantity=1, unit_price=10, amount=Decimal("10.00")))
    invoice.items.append(InvoiceItem(description="B", quantity=3, unit_price=2.5, amount=Decimal("7.50")))
    assert recalculate_invoice_total(invoice) == Decimal("17.50")
    assert invoice.total_amount == Decimal("17.50")


def test_to_money_handles_none_and_floats():
    assert to_money(None) == Decimal("0.00")
    assert to_money(0.1 + 0.2) == Decimal("0.30")


def test_generate_invoice_number_format():
    with SessionLocal() as db:
        number = generate_invoice_number(db, owner_id=1, issue_date=date(2024, 1, 20))
    assert number.startswith("INV-20240120-")
    assert len(number) == len("INV-20240120-") + 6
