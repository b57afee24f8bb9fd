"""Owner dashboard metrics computed from invoices and clients."""

from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session, joinedload

from backend.app.core.settings import get_settings
from backend.app.core.time import utc_today
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice
from backend.app.services.billing import to_money
from backend.app.services.invoice_status import OPEN_STATUSES, compute_status

UNKNOWN_CLIENT = "Unknown Client"


def _summary(inv: Invoice, status: str) -> dict:
    return {
        "id": inv.id,
        "invoice_number": inv.invoice_number,
        "client_id": inv.client_id,
        "client_name": inv.client.name if inv.client is not None else UNKNOWN_CLIENT,
        "issue_date": inv.issue_date,
        "due_date": inv.due_date,
        "status": status,
        "total_amount": to_money(inv.total_amount),
    }


def get_dashboard_metrics(db: Session, *, owner_id: int, today: date | None = None) -> dict:
    """Totals by effective status, recent invoices and upcoming payments for one owner.

    Status is derived with ``compute_status``, so an open invoice past its due date is
    counted as overdue even before the sweep persists it.
    """
    settings = get_settings()
    as_of = today or utc_today()
    invoices = (
        db.query(Invoice)
        .options(joinedload(Invoice.client))
        .filter(Invoice.owner_id == owner_id)
        .all()
    )
    effective = {inv.id: compute_status(inv, as_of) for inv in invoices}

    pending = Decimal("0.00")
    paid = Decimal("0.00")
    overdue = Decimal("0.00")
    for inv in invoices:
        status = effective[inv.id]
        amount = to_money(inv.total_amount)
        if status in OPEN_STATUSES:
            pending += amount
        elif status == "paid":
            paid += amount
        elif status == "overdue":
            overdue += amount

    recent = sorted(invoices, key=lambda inv: (inv.issue_date, inv.id), reverse=True)
    recent_invoices = [_summary(inv, effective[inv.id]) for inv in recent[: settings.recent_invoices_limit]]

    window_end = as_of + timedelta(days=settings.upcoming_window_days)
    upcoming = sorted(
        (
            inv
            for inv in invoices
            if effective[inv.id] != "paid" and as_of <= inv.due_date <= window_end
        ),
        key=lambda inv: (inv.due_date, inv.id),
    )
    upcoming_payments = []
    for inv in upcoming[: settings.upcoming_invoices_limit]:
        row = _summary(inv, effective[inv.id])
        row["days_until_due"] = (inv.due_date - as_of).days
        upcoming_payments.append(row)

    total_clients = db.query(Client).filter(Client.owner_id == owner_id).count()

    return {
        "as_of": as_of,
        "pending_amount": pending,
        "paid_amount": paid,
        "overdue_amount": overdue,
        "total_clients": total_clients,
        "recent_invoices": recent_invoices,
        "upcoming_payments": upcoming_payments,
    }
