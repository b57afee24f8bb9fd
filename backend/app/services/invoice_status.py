"""Invoice status machine.

    draft -> sent -> viewed -> paid
    sent | viewed -> overdue -> paid
    any -> paid

Nothing leaves ``paid``. Asking for the status an invoice already has is a no-op.
Only the move to ``sent`` touches a timestamp (``last_sent_date``).
"""

from datetime import date, datetime

from backend.app.core.errors import InvalidTransitionError, ValidationError
from backend.app.core.time import utc_now
from backend.app.models.invoice import Invoice

INVOICE_STATUSES = ("draft", "sent", "viewed", "paid", "overdue")
# Statuses that count as issued-but-unpaid and can fall overdue
OPEN_STATUSES = ("sent", "viewed")

_ALLOWED_TRANSITIONS = {
    "draft": {"sent", "paid"},
    "sent": {"viewed", "overdue", "paid"},
    "viewed": {"overdue", "paid"},
    "overdue": {"paid"},
    "paid": set(),
}


def can_transition(current: str, target: str) -> bool:
    return current == target or target in _ALLOWED_TRANSITIONS.get(current, set())


def compute_status(invoice: Invoice, reference_date: date) -> str:
    """Status as of ``reference_date``: an open invoice past its due date reads as overdue."""
    if invoice.status in OPEN_STATUSES and invoice.due_date is not None and invoice.due_date < reference_date:
        return "overdue"
    return invoice.status


def apply_transition(invoice: Invoice, target: str, now: datetime | None = None) -> Invoice:
    if target not in INVOICE_STATUSES:
        raise ValidationError(f"Unknown invoice status: {target}")
    current = invoice.status
    if current == target:
        return invoice
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    invoice.status = target
    if target == "sent":
        invoice.last_sent_date = now or utc_now()
    return invoice


def mark_overdue_if_due(invoice: Invoice, reference_date: date) -> bool:
    """Persistable form of the lazy overdue rule. Returns True when the status changed."""
    if invoice.status == "overdue" or compute_status(invoice, reference_date) != "overdue":
        return False
    apply_transition(invoice, "overdue")
    return True
