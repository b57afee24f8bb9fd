"""Dashboard schemas for owner-level overviews."""

from datetime import date
from decimal import Decimal
from typing import List

from pydantic import BaseModel


class DashboardInvoiceSummary(BaseModel):
    id: int
    invoice_number: str
    client_id: int
    client_name: str
    issue_date: date
    due_date: date
    status: str
    total_amount: Decimal


class UpcomingPayment(DashboardInvoiceSummary):
    days_until_due: int


class DashboardMetrics(BaseModel):
    as_of: date
    pending_amount: Decimal
    paid_amount: Decimal
    overdue_amount: Decimal
    total_clients: int
    recent_invoices: List[DashboardInvoiceSummary]
    upcoming_payments: List[UpcomingPayment]
