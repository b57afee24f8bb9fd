"""Invoice delivery, payment reminders and payment receipts."""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from backend.app.core.errors import ValidationError
from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now
from backend.app.crud.base import commit_or_rollback
from backend.app.models.invoice import Invoice
from backend.app.services.email import EmailMessage, EmailSender, deliver
from backend.app.services.invoice_status import apply_transition, mark_overdue_if_due

logger = logging.getLogger(__name__)

_WRAPPER = '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">{}</div>'
_ROW = (
    '<tr><td style="padding: 8px; border-bottom: 1px solid #eee;"><strong>{}:</strong></td>'
    '<td style="padding: 8px; border-bottom: 1px solid #eee;">{}</td></tr>'
)


def format_currency(amount: Decimal | float | int | None) -> str:
    return f"${Decimal(str(amount or 0)):,.2f}"


def format_date(value: date | datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def payment_link(invoice: Invoice) -> str:
    return f"{get_settings().frontend_url}/invoices/{invoice.id}/pay"


def _table(rows: list[tuple[str, str]]) -> str:
    body = "".join(_ROW.format(label, value) for label, value in rows)
    return f'<table style="width: 100%; border-collapse: collapse; margin: 20px 0;">{body}</table>'


def _button(invoice: Invoice, label: str) -> str:
    return (
        f'<p><a href="{payment_link(invoice)}" style="display: inline-block; background-color: #4CAF50; '
        f'color: white; padding: 10px 20px; text-decoration: none; border-radius: 4px;">{label}</a></p>'
    )


def build_invoice_message(invoice: Invoice, custom_message: str | None = None) -> EmailMessage:
    client = invoice.client
    sender_name = invoice.owner.display_name
    intro = custom_message or (
        f"Please find your invoice ({invoice.invoice_number}) for {format_currency(invoice.total_amount)}."
    )
    text = (
        f"Hello {client.name},\n\n"
        f"{intro}\n\n"
        f"Due date: {format_date(invoice.due_date)}\n\n"
        f"You can pay this invoice online at: {payment_link(invoice)}\n\n"
        f"Thank you for your business!\n\n"
        f"Regards,\n{sender_name}"
    )
    html = _WRAPPER.format(
        f"<h2>Invoice {invoice.invoice_number}</h2>"
        f"<p>Hello {client.name},</p><p>{intro}</p>"
        + _table(
            [
                ("Invoice Number", invoice.invoice_number),
                ("Issue Date", format_date(invoice.issue_date)),
                ("Due Date", format_date(invoice.due_date)),
                ("Amount Due", format_currency(invoice.total_amount)),
            ]
        )
        + _button(invoice, "Pay Invoice")
        + f"<p>Thank you for your business!</p><p>Regards,<br>{sender_name}</p>"
    )
    return EmailMessage(
        to=client.email,
        subject=f"Invoice {invoice.invoice_number} from {sender_name}",
        body_text=text,
        body_html=html,
    )


def build_reminder_message(invoice: Invoice, days_overdue: int) -> EmailMessage:
    client = invoice.client
    sender_name = invoice.owner.display_name
    subject = f"Reminder: Invoice {invoice.invoice_number} is due soon"
    urgency = "This is a friendly reminder that your invoice is due soon."
    if days_overdue > 0:
        subject = f"Invoice {invoice.invoice_number} is overdue"
        urgency = f"This invoice is overdue by {days_overdue} day{'s' if days_overdue != 1 else ''}."
    text = (
        f"Hello {client.name},\n\n"
        f"{urgency}\n\n"
        f"Invoice Number: {invoice.invoice_number}\n"
        f"Amount Due: {format_currency(invoice.total_amount)}\n"
        f"Due Date: {format_date(invoice.due_date)}\n\n"
        f"You can pay this invoice online at: {payment_link(invoice)}\n\n"
        f"If you've already made this payment, please disregard this reminder.\n\n"
        f"Regards,\n{sender_name}"
    )
    html = _WRAPPER.format(
        f"<h2>Invoice Reminder</h2><p>Hello {client.name},</p><p><strong>{urgency}</strong></p>"
        + _table(
            [
                ("Invoice Number", invoice.invoice_number),
                ("Due Date", format_date(invoice.due_date)),
                ("Amount Due", format_currency(invoice.total_amount)),
            ]
        )
        + _button(invoice, "Pay Invoice Now")
        + "<p>If you've already made this payment, please disregard this reminder.</p>"
        + f"<p>Regards,<br>{sender_name}</p>"
    )
    return EmailMessage(to=client.email, subject=subject, body_text=text, body_html=html)


def build_receipt_message(invoice: Invoice, payment_date: date) -> EmailMessage:
    client = invoice.client
    sender_name = invoice.owner.display_name
    received = (
        f"We've received your payment of {format_currency(invoice.total_amount)} "
        f"for invoice {invoice.invoice_number}."
    )
    text = (
        f"Hello {client.name},\n\n{received}\n\n"
        f"Payment date: {format_date(payment_date)}\n\n"
        f"Thank you for your business!\n\nRegards,\n{sender_name}"
    )
    html = _WRAPPER.format(
        f"<h2>Payment Receipt</h2><p>Hello {client.name},</p><p>{received}</p>"
        + _table(
            [
                ("Invoice Number", invoice.invoice_number),
                ("Payment Date", format_date(payment_date)),
                ("Amount Paid", format_currency(invoice.total_amount)),
            ]
        )
        + f"<p>Thank you for your business!</p><p>Regards,<br>{sender_name}</p>"
    )
    return EmailMessage(
        to=client.email,
        subject=f"Payment Receipt for Invoice {invoice.invoice_number}",
        body_text=text,
        body_html=html,
    )


def send_invoice(
    db: Session,
    *,
    invoice: Invoice,
    sender: EmailSender,
    custom_message: str | None = None,
    timeout: float | None = None,
) -> Invoice:
    """Email the invoice; on success a draft becomes sent, a resend refreshes last_sent_date.

    Paid invoices are not resent; they get a receipt instead.
    """
    if invoice.status == "paid":
        raise ValidationError("Invoice is already paid")
    message = build_invoice_message(invoice, custom_message)
    deliver(sender, message, timeout or get_settings().auto_send_timeout_seconds)
    now = utc_now()
    if invoice.status == "draft":
        apply_transition(invoice, "sent", now=now)
    else:
        invoice.last_sent_date = now
    commit_or_rollback(db)
    db.refresh(invoice)
    logger.info("Invoice %s sent to %s", invoice.invoice_number, message.to)
    return invoice


def send_reminder(db: Session, *, invoice: Invoice, sender: EmailSender, today: date) -> int:
    """Send a payment reminder and return the number of days the invoice is overdue."""
    if invoice.status == "paid":
        raise ValidationError("Cannot send reminder for paid invoice")
    days_overdue = (today - invoice.due_date).days
    deliver(sender, build_reminder_message(invoice, days_overdue), get_settings().auto_send_timeout_seconds)
    if mark_overdue_if_due(invoice, today):
        commit_or_rollback(db)
        db.refresh(invoice)
    logger.info("Reminder for invoice %s sent (%s days overdue)", invoice.invoice_number, days_overdue)
    return days_overdue


def send_receipt(*, invoice: Invoice, sender: EmailSender, payment_date: date) -> None:
    if invoice.status != "paid":
        raise ValidationError("Invoice is not marked as paid")
    deliver(sender, build_receipt_message(invoice, payment_date), get_settings().auto_send_timeout_seconds)
    logger.info("Receipt for invoice %s sent", invoice.invoice_number)
