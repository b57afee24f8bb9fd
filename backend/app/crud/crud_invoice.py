"""CRUD operations for invoices and their line items."""

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from backend.app.core.time import utc_today
from backend.app.crud.base import CRUDBase, as_update_dict, commit_or_rollback
from backend.app.crud.crud_client import client_crud
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_item import InvoiceItem
from backend.app.schemas.invoice import InvoiceCreate, InvoiceUpdate
from backend.app.schemas.invoice_item import InvoiceItemCreate, InvoiceItemUpdate
from backend.app.services.billing import calculate_line_amount, generate_invoice_number, recalculate_invoice_total
from backend.app.services.invoice_status import apply_transition, mark_overdue_if_due

SORTABLE_FIELDS = {
    "created_at": Invoice.created_at,
    "issue_date": Invoice.issue_date,
    "due_date": Invoice.due_date,
    "status": Invoice.status,
    "total_amount": Invoice.total_amount,
}


def _commit_invoice(db: Session) -> None:
    try:
        commit_or_rollback(db)
    except IntegrityError as exc:
        raise ValidationError("Invoice number already in use") from exc


class CRUDInvoice(CRUDBase[Invoice]):
    entity_name = "Invoice"

    def create(self, db: Session, *, obj_in: InvoiceCreate, owner_id: int) -> Invoice:
        client_crud.get_or_raise(db, id=obj_in.client_id, owner_id=owner_id)
        invoice = Invoice(
            owner_id=owner_id,
            client_id=obj_in.client_id,
            invoice_number=obj_in.invoice_number or generate_invoice_number(db, owner_id, obj_in.issue_date),
            issue_date=obj_in.issue_date,
            due_date=obj_in.due_date,
            status="draft",
            notes=obj_in.notes,
            is_recurring=obj_in.is_recurring,
            recurring_frequency=obj_in.recurring_frequency,
        )
        for item_in in obj_in.items:
            invoice.items.append(
                InvoiceItem(
                    description=item_in.description,
                    quantity=item_in.quantity,
                    unit_price=item_in.unit_price,
                    amount=calculate_line_amount(item_in.quantity, item_in.unit_price),
                )
            )
        recalculate_invoice_total(invoice)
        db.add(invoice)
        _commit_invoice(db)
        db.refresh(invoice)
        return invoice

    def get_multi(
        self,
        db: Session,
        *,
        owner_id: int,
        status: Optional[str] = None,
        client_id: Optional[int] = None,
        skip: int = 0,
        limit: Optional[int] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> List[Invoice]:
        query = self.scoped_query(db, owner_id)
        if status:
            query = query.filter(Invoice.status == status)
        if client_id:
            query = query.filter(Invoice.client_id == client_id)

        sort_column = SORTABLE_FIELDS[sort_by]
        if sort_order == "asc":
            query = query.order_by(sort_column.asc(), Invoice.id.asc())
        else:
            query = query.order_by(sort_column.desc(), Invoice.id.desc())
        query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def update(self, db: Session, *, id: int, owner_id: int, obj_in: InvoiceUpdate) -> Invoice:
        invoice = self.get_or_raise(db, id=id, owner_id=owner_id)
        update_data = as_update_dict(obj_in)
        if update_data.get("client_id") is not None:
            client_crud.get_or_raise(db, id=update_data["client_id"], owner_id=owner_id)
        for field, value in update_data.items():
            if value is not None:
                setattr(invoice, field, value)
        _commit_invoice(db)
        db.refresh(invoice)
        return invoice

    def set_status(self, db: Session, *, id: int, owner_id: int, status: str) -> Invoice:
        invoice = self.get_or_raise(db, id=id, owner_id=owner_id)
        if status == "overdue" and invoice.status != "overdue":
            # only an open invoice past its due date can be marked overdue
            if not mark_overdue_if_due(invoice, utc_today()):
                raise InvalidTransitionError(invoice.status, status)
        else:
            apply_transition(invoice, status)
        commit_or_rollback(db)
        db.refresh(invoice)
        return invoice

    def delete(self, db: Session, *, id: int, owner_id: int) -> bool:
        invoice = self.get(db, id=id, owner_id=owner_id)
        if invoice is None:
            return False
        # Items go in the same flush as the invoice (delete-orphan cascade)
        db.delete(invoice)
        commit_or_rollback(db)
        return True


class CRUDInvoiceItem:
    entity_name = "Invoice item"

    def get(self, db: Session, *, id: int, invoice_id: int, owner_id: int) -> Optional[InvoiceItem]:
        return (
            db.query(InvoiceItem)
            .join(Invoice, InvoiceItem.invoice_id == Invoice.id)
            .filter(InvoiceItem.id == id, InvoiceItem.invoice_id == invoice_id, Invoice.owner_id == owner_id)
            .first()
        )

    def get_or_raise(self, db: Session, *, id: int, invoice_id: int, owner_id: int) -> InvoiceItem:
        item = self.get(db, id=id, invoice_id=invoice_id, owner_id=owner_id)
        if item is None:
            raise NotFoundError(self.entity_name)
        return item

    def get_multi(self, db: Session, *, invoice_id: int, owner_id: int) -> List[InvoiceItem]:
        invoice = invoice_crud.get_or_raise(db, id=invoice_id, owner_id=owner_id)
        return list(invoice.items)

    def create(self, db: Session, *, invoice_id: int, owner_id: int, obj_in: InvoiceItemCreate) -> InvoiceItem:
        invoice = invoice_crud.get_or_raise(db, id=invoice_id, owner_id=owner_id)
        item = InvoiceItem(
            description=obj_in.description,
            quantity=obj_in.quantity,
            unit_price=obj_in.unit_price,
            amount=calculate_line_amount(obj_in.quantity, obj_in.unit_price),
        )
        invoice.items.append(item)
        recalculate_invoice_total(invoice)
        commit_or_rollback(db)
        db.refresh(item)
        return item

    def update(
        self, db: Session, *, id: int, invoice_id: int, owner_id: int, obj_in: InvoiceItemUpdate
    ) -> InvoiceItem:
        item = self.get_or_raise(db, id=id, invoice_id=invoice_id, owner_id=owner_id)
        for field, value in as_update_dict(obj_in).items():
            if value is not None:
                setattr(item, field, value)
        item.amount = calculate_line_amount(item.quantity, item.unit_price)
        recalculate_invoice_total(item.invoice)
        commit_or_rollback(db)
        db.refresh(item)
        return item

    def delete(self, db: Session, *, id: int, invoice_id: int, owner_id: int) -> bool:
        item = self.get(db, id=id, invoice_id=invoice_id, owner_id=owner_id)
        if item is None:
            return False
        invoice = item.invoice
        invoice.items.remove(item)
        recalculate_invoice_total(invoice)
        commit_or_rollback(db)
        return True


invoice_crud = CRUDInvoice(Invoice)
invoice_item_crud = CRUDInvoiceItem()
