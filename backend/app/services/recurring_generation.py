"""Recurring invoice generation engine.

Each due template is handled as one unit of work:

1. claim the occurrence with a compare-and-swap on ``next_generation_date``
   (the first write of the transaction, so concurrent runs serialize on it),
2. insert the invoice and its items copied from the template,
3. commit all of it together.

Losing the claim means another run got there first. The template is re-read: if its
schedule has moved on it is reported as skipped, otherwise the unit is retried once and
then reported as a ``ConcurrencyConflict``. ``(recurring_template_id, occurrence_date)`` is
unique, so even a bypassed claim cannot produce a duplicate invoice.

Auto-send happens after the unit has committed and is bounded by
``auto_send_timeout_seconds``; a failed or hung send leaves the invoice in ``draft``.
One template's failure never stops the rest of the batch.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.app.core.errors import (
    ConcurrencyConflict,
    ExternalCapabilityFailure,
    InvoicingError,
    NotFoundError,
)
from backend.app.core.settings import get_settings
from backend.app.core.time import utc_today
from backend.app.crud.crud_recurring_template import recurring_template_crud
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_item import InvoiceItem
from backend.app.models.recurring_template import RecurringTemplate
from backend.app.services.billing import generate_invoice_number, recalculate_invoice_total
from backend.app.services.email import EmailSender
from backend.app.services.invoice_emails import send_invoice
from backend.app.services.schedule import next_occurrence

logger = logging.getLogger(__name__)

MAX_CLAIM_ATTEMPTS = 2


@dataclass
class TemplateFailure:
    template_id: int
    owner_id: int
    error_type: str
    message: str
    invoice_id: Optional[int] = None


@dataclass
class TemplateRef:
    template_id: int
    owner_id: int


@dataclass
class GenerationReport:
    reference_date: date
    invoices: List[Invoice] = field(default_factory=list)
    skipped: List[TemplateRef] = field(default_factory=list)
    errors: List[TemplateFailure] = field(default_factory=list)
    send_failures: List[TemplateFailure] = field(default_factory=list)
    cancelled: List[TemplateRef] = field(default_factory=list)

    @property
    def skipped_template_ids(self) -> List[int]:
        return [ref.template_id for ref in self.skipped]

    @property
    def cancelled_template_ids(self) -> List[int]:
        return [ref.template_id for ref in self.cancelled]

    def for_owner(self, owner_id: int) -> "GenerationReport":
        """Only the entries belonging to ``owner_id``."""
        return GenerationReport(
            reference_date=self.reference_date,
            invoices=[inv for inv in self.invoices if inv.owner_id == owner_id],
            skipped=[ref for ref in self.skipped if ref.owner_id == owner_id],
            errors=[failure for failure in self.errors if failure.owner_id == owner_id],
            send_failures=[failure for failure in self.send_failures if failure.owner_id == owner_id],
            cancelled=[ref for ref in self.cancelled if ref.owner_id == owner_id],
        )


def _build_invoice(db: Session, template: RecurringTemplate, occurrence: date, reference_date: date) -> Invoice:
    invoice = Invoice(
        owner_id=template.owner_id,
        client_id=template.client_id,
        invoice_number=generate_invoice_number(db, template.owner_id, reference_date),
        issue_date=reference_date,
        due_date=reference_date + timedelta(days=template.days_before or 0),
        status="draft",
        notes=template.notes,
        is_recurring=True,
        recurring_frequency=template.frequency,
        recurring_template_id=template.id,
        occurrence_date=occurrence,
    )
    for template_item in template.items:
        invoice.items.append(
            InvoiceItem(
                description=template_item.description,
                quantity=template_item.quantity,
                unit_price=template_item.unit_price,
                amount=template_item.amount,
            )
        )
    recalculate_invoice_total(invoice)
    db.add(invoice)
    db.flush()
    return invoice


def _materialize(
    db: Session,
    template_id: int,
    reference_date: date,
    *,
    gated: bool,
    expected_occurrence: Optional[date] = None,
) -> Optional[Invoice]:
    """Run one template's unit of work.

    Returns None when a gated template is no longer due, or when another run already
    moved its schedule past ``expected_occurrence``.
    """
    for attempt in range(1, MAX_CLAIM_ATTEMPTS + 1):
        db.expire_all()
        template = recurring_template_crud.get_unscoped(db, id=template_id)
        if template is None:
            raise NotFoundError("Recurring template")
        if gated and (not template.active or template.next_generation_date > reference_date):
            return None
        if expected_occurrence is not None and template.next_generation_date != expected_occurrence:
            logger.info("Template %s occurrence %s already handled by another run", template_id, expected_occurrence)
            return None

        occurrence = template.next_generation_date
        advanced_to = next_occurrence(occurrence, template.frequency)
        try:
            claimed = recurring_template_crud.advance_schedule(
                db, id=template.id, expected_date=occurrence, new_date=advanced_to
            )
            if not claimed:
                db.rollback()
                logger.info("Template %s claim lost on attempt %d", template_id, attempt)
                continue
            invoice = _build_invoice(db, template, occurrence, reference_date)
            db.commit()
        except IntegrityError:
            # Occurrence or invoice number already taken
            db.rollback()
            logger.info("Template %s occurrence %s conflicted on attempt %d", template_id, occurrence, attempt)
            continue
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(invoice)
        logger.info(
            "Generated invoice %s from template %s for occurrence %s (next %s)",
            invoice.invoice_number,
            template_id,
            occurrence.isoformat(),
            advanced_to.isoformat(),
        )
        return invoice
    raise ConcurrencyConflict(f"Recurring template {template_id} was modified concurrently")


def _auto_send(db: Session, invoice: Invoice, template_email: Optional[str], sender: EmailSender) -> None:
    try:
        send_invoice(
            db,
            invoice=invoice,
            sender=sender,
            custom_message=template_email,
            timeout=get_settings().auto_send_timeout_seconds,
        )
    except SQLAlchemyError:
        db.rollback()
        raise


def _record_failure(bucket: List[TemplateFailure], template_id: int, owner_id: int, exc: Exception, invoice_id=None):
    bucket.append(
        TemplateFailure(
            template_id=template_id,
            owner_id=owner_id,
            error_type=exc.__class__.__name__,
            message=getattr(exc, "message", None) or str(exc),
            invoice_id=invoice_id,
        )
    )


def generate_due(
    db: Session,
    reference_date: Optional[date] = None,
    *,
    email_sender: Optional[EmailSender] = None,
    cancel_event: Optional[threading.Event] = None,
    owner_id: Optional[int] = None,
) -> GenerationReport:
    """Materialize an invoice for every active template due on or before ``reference_date``.

    Runs across all owners unless ``owner_id`` is given. Setting ``cancel_event`` lets
    the template in progress finish and reports the remaining ones as cancelled.
    """
    reference_date = reference_date or utc_today()
    report = GenerationReport(reference_date=reference_date)
    due = [
        (t.id, t.owner_id, t.next_generation_date, t.auto_send, t.email_template)
        for t in recurring_template_crud.get_due(db, reference_date=reference_date, owner_id=owner_id)
    ]
    logger.info("Recurring generation for %s: %d template(s) due", reference_date.isoformat(), len(due))

    for index, (template_id, template_owner_id, occurrence, auto_send, email_template) in enumerate(due):
        if cancel_event is not None and cancel_event.is_set():
            report.cancelled.extend(TemplateRef(entry[0], entry[1]) for entry in due[index:])
            logger.warning("Recurring generation cancelled, %d template(s) not started", len(due) - index)
            break
        try:
            invoice = _materialize(
                db, template_id, reference_date, gated=True, expected_occurrence=occurrence
            )
        except (InvoicingError, SQLAlchemyError) as exc:
            logger.error("Recurring template %s failed: %s", template_id, exc)
            _record_failure(report.errors, template_id, template_owner_id, exc)
            continue

        if invoice is None:
            report.skipped.append(TemplateRef(template_id, template_owner_id))
            continue
        report.invoices.append(invoice)

        if auto_send:
            try:
                if email_sender is None:
                    raise ExternalCapabilityFailure("Email", "no email sender configured")
                _auto_send(db, invoice, email_template, email_sender)
            except ExternalCapabilityFailure as exc:
                logger.warning("Auto-send of invoice %s failed: %s", invoice.invoice_number, exc.message)
                _record_failure(report.send_failures, template_id, template_owner_id, exc, invoice_id=invoice.id)
            except SQLAlchemyError as exc:
                logger.error("Could not record auto-send of invoice %s: %s", invoice.invoice_number, exc)
                _record_failure(report.send_failures, template_id, template_owner_id, exc, invoice_id=invoice.id)

    logger.info(
        "Recurring generation for %s finished: %d generated, %d skipped, %d failed, %d send failure(s)",
        reference_date.isoformat(),
        len(report.invoices),
        len(report.skipped_template_ids),
        len(report.errors),
        len(report.send_failures),
    )
    return report


def generate_one(
    db: Session,
    *,
    template_id: int,
    owner_id: int,
    reference_date: Optional[date] = None,
    email_sender: Optional[EmailSender] = None,
) -> Invoice:
    """Generate the template's pending occurrence now, ignoring ``active`` and the date gate.

    The schedule advances exactly as in a batch run. An auto-send failure is logged and
    the invoice is returned in ``draft``.
    """
    template = recurring_template_crud.get_or_raise(db, id=template_id, owner_id=owner_id)
    auto_send, email_template = template.auto_send, template.email_template
    invoice = _materialize(db, template.id, reference_date or utc_today(), gated=False)
    if auto_send and email_sender is None:
        logger.warning("Invoice %s left in draft: no email sender configured", invoice.invoice_number)
    elif auto_send:
        try:
            _auto_send(db, invoice, email_template, email_sender)
        except ExternalCapabilityFailure as exc:
            logger.warning("Auto-send of invoice %s failed: %s", invoice.invoice_number, exc.message)
    return invoice
