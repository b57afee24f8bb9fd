"""Recurring template routes, including manual and batch invoice generation."""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from backend.app.crud.crud_recurring_template import recurring_template_crud, recurring_template_item_crud
from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.user import User
from backend.app.schemas.invoice import InvoiceRead
from backend.app.schemas.recurring_template import (
    GenerateDueRequest,
    GenerationFailureRead,
    GenerationReportRead,
    RecurringTemplateCreate,
    RecurringTemplateItemCreate,
    RecurringTemplateItemRead,
    RecurringTemplateItemUpdate,
    RecurringTemplateRead,
    RecurringTemplateToggle,
    RecurringTemplateUpdate,
)
from backend.app.services.email import EmailSender, get_email_sender
from backend.app.services.recurring_generation import GenerationReport, generate_due, generate_one

router = APIRouter(prefix="/recurring-templates", tags=["recurring_templates"])
items_router = APIRouter(prefix="/recurring-template-items", tags=["recurring_templates"])


def _report_response(report: GenerationReport) -> GenerationReportRead:
    def failures(rows):
        return [
            GenerationFailureRead(
                template_id=row.template_id,
                error_type=row.error_type,
                message=row.message,
                invoice_id=row.invoice_id,
            )
            for row in rows
        ]

    return GenerationReportRead(
        reference_date=report.reference_date,
        generated_count=len(report.invoices),
        invoices=[InvoiceRead.model_validate(inv) for inv in report.invoices],
        skipped_template_ids=report.skipped_template_ids,
        cancelled_template_ids=report.cancelled_template_ids,
        errors=failures(report.errors),
        send_failures=failures(report.send_failures),
    )


@router.post("/", response_model=RecurringTemplateRead, status_code=status.HTTP_201_CREATED)
async def create_recurring_template(
    template_in: RecurringTemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return recurring_template_crud.create(db, obj_in=template_in, owner_id=current_user.id)


@router.get("/", response_model=List[RecurringTemplateRead])
async def list_recurring_templates(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return recurring_template_crud.get_multi(db, owner_id=current_user.id)


@router.post("/generate", response_model=GenerationReportRead)
def generate_due_invoices(
    payload: Optional[GenerateDueRequest] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    sender: EmailSender = Depends(get_email_sender),
):
    reference_date = payload.reference_date if payload else None
    report = generate_due(db, reference_date, email_sender=sender, owner_id=current_user.id)
    return _report_response(report.for_owner(current_user.id))


@router.get("/{template_id}", response_model=RecurringTemplateRead)
async def get_recurring_template(
    template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return recurring_template_crud.get_or_raise(db, id=template_id, owner_id=current_user.id)


@router.put("/{template_id}", response_model=RecurringTemplateRead)
async def update_recurring_template(
    template_id: int,
    template_in: RecurringTemplateUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return recurring_template_crud.update(db, id=template_id, owner_id=current_user.id, obj_in=template_in)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recurring_template(
    template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    if not recurring_template_crud.delete(db, id=template_id, owner_id=current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurring template not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{template_id}/toggle", response_model=RecurringTemplateRead)
async def toggle_recurring_template(
    template_id: int,
    payload: RecurringTemplateToggle,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return recurring_template_crud.set_active(db, id=template_id, owner_id=current_user.id, active=payload.active)


@router.post("/{template_id}/generate", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def generate_invoice_now(
    template_id: int,
    payload: Optional[GenerateDueRequest] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    sender: EmailSender = Depends(get_email_sender),
):
    return generate_one(
        db,
        template_id=template_id,
        owner_id=current_user.id,
        reference_date=payload.reference_date if payload else None,
        email_sender=sender,
    )


@router.get("/{template_id}/items", response_model=List[RecurringTemplateItemRead])
async def list_recurring_template_items(
    template_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    return recurring_template_item_crud.get_multi(db, template_id=template_id, owner_id=current_user.id)


@router.post("/{template_id}/items", response_model=RecurringTemplateItemRead, status_code=status.HTTP_201_CREATED)
async def add_recurring_template_item(
    template_id: int,
    item_in: RecurringTemplateItemCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return recurring_template_item_crud.create(db, template_id=template_id, owner_id=current_user.id, obj_in=item_in)


@items_router.put("/{item_id}", response_model=RecurringTemplateItemRead)
async def update_recurring_template_item(
    item_id: int,
    item_in: RecurringTemplateItemUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return recurring_template_item_crud.update(db, id=item_id, owner_id=current_user.id, obj_in=item_in)


@items_router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recurring_template_item(
    item_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)
):
    if not recurring_template_item_crud.delete(db, id=item_id, owner_id=current_user.id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recurring template item not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
