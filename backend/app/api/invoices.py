"""Invoice routes for business owners."""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from backend.app.core.time import utc_today
from backend.app.crud.crud_invoice import SORTABLE_FIELDS, invoice_crud, invoice_item_crud
from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.user import User
from backend.app.schemas.invoice import (
    EmailActionResult,
    InvoiceCreate,
    InvoiceRead,
    InvoiceStatus,
    InvoiceStatusUpdate,
    InvoiceUpdate,
)
from backend.app.schemas.invoice_item import InvoiceItemCreate, InvoiceItemRead, InvoiceItemUpdate
from backend.app.schemas.payment import PaymentIntentRead
from backend.app.services.email import EmailSender, get_email_sender
from backend.app.services.invoice_emails import send_invoice, send_receipt, send_reminder
from backend.app.services.overdue import sweep_overdue
from backend.app.services.payments import PaymentGateway, create_payment_intent, get_payment_gateway, mark_paid

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("/", response_model=List[InvoiceRead])
async def list_invoices(
    status: Optional[InvoiceStatus] = None,
    client_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 50,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if sort_by not in SORTABLE_FIELDS:
        raise HTTPException(status_code=400, detail="Invalid sort_by value")
    sort_order_normalized = (sort_order or "desc").lower()
    if sort_order_normalized not in {"asc", "desc"}:
        raise HTTPException(status_code=400, detail="Invalid sort_order value")
    return invoice_crud.get_multi(
        db,
        owner_id=current_user.id,
        status=status,
        client_id=client_id,
        skip=skip,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order_normalized,
    )


@router.post("/", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_in: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return invoice_crud.create(db, obj_in=invoice_in, owner_id=current_user.id)


@router.post("/overdue-sweep", response_model=List[InvoiceRead])
async def run_overdue_sweep(
    today: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return sweep_overdue(db, today or utc_today(), owner_id=current_user.id)


@router.get("/{invoice_id}", response_model=InvoiceRead)
async def get_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return invoice_crud.get_or_raise(db, id=invoice_id, owner_id=current_user.id)


@router.patch("/{invoice_id}", response_model=InvoiceRead)
async def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return invoice_crud.update(db, id=invoice_id, owner_id=current_user.id, obj_in=payload)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if not invoice_crud.delete(db, id=invoice_id, owner_id=current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{invoice_id}/status", response_model=InvoiceRead)
async def update_invoice_status(
    invoice_id: int,
    payload: InvoiceStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return invoice_crud.set_status(db, id=invoice_id, owner_id=current_user.id, status=payload.status)


# Line items


@router.get("/{invoice_id}/items", response_model=List[InvoiceItemRead])
async def list_invoice_items(
    invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return invoice_item_crud.get_multi(db, invoice_id=invoice_id, owner_id=current_user.id)


@router.post("/{invoice_id}/items", response_model=InvoiceItemRead, status_code=status.HTTP_201_CREATED)
async def add_invoice_item(
    invoice_id: int,
    item_in: InvoiceItemCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return invoice_item_crud.create(db, invoice_id=invoice_id, owner_id=current_user.id, obj_in=item_in)


@router.put("/{invoice_id}/items/{item_id}", response_model=InvoiceItemRead)
async def update_invoice_item(
    invoice_id: int,
    item_id: int,
    item_in: InvoiceItemUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return invoice_item_crud.update(
        db, id=item_id, invoice_id=invoice_id, owner_id=current_user.id, obj_in=item_in
    )


@router.delete("/{invoice_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice_item(
    invoice_id: int,
    item_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not invoice_item_crud.delete(db, id=item_id, invoice_id=invoice_id, owner_id=current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice item not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Email and payment actions. These block on external providers, so they run in the threadpool.


@router.post("/{invoice_id}/send", response_model=EmailActionResult)
def send_invoice_email(
    invoice_id: int,
    message: Optional[str] = Body(default=None, embed=True),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    sender: EmailSender = Depends(get_email_sender),
):
    invoice = invoice_crud.get_or_raise(db, id=invoice_id, owner_id=current_user.id)
    invoice = send_invoice(db, invoice=invoice, sender=sender, custom_message=message)
    return EmailActionResult(message="Invoice sent successfully", email=invoice.client.email, status=invoice.status)


@router.post("/{invoice_id}/remind", response_model=EmailActionResult)
def send_invoice_reminder(
    invoice_id: int,
    today: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    sender: EmailSender = Depends(get_email_sender),
):
    invoice = invoice_crud.get_or_raise(db, id=invoice_id, owner_id=current_user.id)
    days_overdue = send_reminder(db, invoice=invoice, sender=sender, today=today or utc_today())
    return EmailActionResult(
        message="Payment reminder sent successfully",
        email=invoice.client.email,
        status=invoice.status,
        days_overdue=days_overdue,
    )


@router.post("/{invoice_id}/receipt", response_model=EmailActionResult)
def send_payment_receipt(
    invoice_id: int,
    payment_date: Optional[date] = Body(default=None, embed=True),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    sender: EmailSender = Depends(get_email_sender),
):
    invoice = invoice_crud.get_or_raise(db, id=invoice_id, owner_id=current_user.id)
    send_receipt(invoice=invoice, sender=sender, payment_date=payment_date or utc_today())
    return EmailActionResult(message="Payment receipt sent successfully", email=invoice.client.email, status=invoice.status)


@router.post("/{invoice_id}/payment-intent", response_model=PaymentIntentRead)
def create_invoice_payment_intent(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    invoice = invoice_crud.get_or_raise(db, id=invoice_id, owner_id=current_user.id)
    return PaymentIntentRead(invoice_id=invoice.id, client_secret=create_payment_intent(invoice, gateway))


@router.post("/{invoice_id}/confirm-payment", response_model=InvoiceRead)
async def confirm_invoice_payment(
    invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    invoice = invoice_crud.get_or_raise(db, id=invoice_id, owner_id=current_user.id)
    return mark_paid(db, invoice=invoice)
