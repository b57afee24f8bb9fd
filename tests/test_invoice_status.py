from datetime import date, datetime, timezone

import pytest

from backend.app.core.errors import InvalidTransitionError, ValidationError
from backend.app.db.base import Invoice
from backend.app.services.invoice_status import (
    apply_transition,
    can_transition,
    compute_status,
    mark_overdue_if_due,
)


def _invoice(status="draft", due=date(2024, 1, 1)):
    return Invoice(status=status, due_date=due, issue_date=date(2023, 12, 1))


def test_paid_is_terminal():
    invoice = _invoice("paid")
    with pytest.raises(InvalidTransitionError):
        apply_transition(invoice, "sent")
    assert invoice.status == "paid"


def test_overdue_can_be_paid():
    invoice = _invoice("overdue")
    apply_transition(invoice, "paid")
    assert invoice.status == "paid"


def test_same_status_is_a_noop():
    invoice = _invoice("sent")
    invoice.last_sent_date = datetime(2024, 1, 1, tzinfo=timezone.utc)
    apply_transition(invoice, "sent")
    assert invoice.status == "sent"
    assert invoice.last_sent_date == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_sending_sets_last_sent_date():
    invoice = _invoice("draft")
    now = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
    apply_transition(invoice, "sent", now=now)
    assert invoice.status == "sent"
    assert invoice.last_sent_date == now


def test_draft_cannot_become_overdue_or_viewed():
    assert not can_transition("draft", "overdue")
    assert not can_transition("draft", "viewed")
    assert can_transition("draft", "paid")
    with pytest.raises(InvalidTransitionError):
        apply_transition(_invoice("draft"), "overdue")


def test_overdue_cannot_go_back_to_sent():
    with pytest.raises(InvalidTransitionError):
        apply_transition(_invoice("overdue"), "sent")


def test_unknown_status_is_validation_error():
    with pytest.raises(ValidationError):
        apply_transition(_invoice("draft"), "void")


def test_compute_status_marks_open_invoices_past_due():
    assert compute_status(_invoice("sent", date(2024, 1, 1)), date(2024, 1, 10)) == "overdue"
    assert compute_status(_invoice("viewed", date(2024, 1, 1)), date(2024, 1, 2)) == "overdue"
    assert compute_status(_invoice("sent", date(2024, 1, 10)), date(2024, 1, 10)) == "sent"
    assert compute_status(_invoice("draft", date(2024, 1, 1)), date(2024, 2, 1)) == "draft"
    assert compute_status(_invoice("paid", date(2024, 1, 1)), date(2024, 2, 1)) == "paid"


def test_mark_overdue_if_due():
    invoice = _invoice("sent", date(2024, 1, 1))
    assert mark_overdue_if_due(invoice, date(2024, 1, 5)) is True
    assert invoice.status == "overdue"
    assert mark_overdue_if_due(invoice, date(2024, 1, 6)) is False
