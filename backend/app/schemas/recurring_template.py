"""Recurring template schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.app.schemas.invoice import Frequency, InvoiceRead


class RecurringTemplateItemBase(BaseModel):
    description: str = Field(min_length=1, max_length=255)
    quantity: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    unit_price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class RecurringTemplateItemCreate(RecurringTemplateItemBase):
    pass


class RecurringTemplateItemUpdate(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=255)
    quantity: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    unit_price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)


class RecurringTemplateItemRead(RecurringTemplateItemBase):
    id: int
    template_id: int
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class RecurringTemplateBase(BaseModel):
    client_id: int
    name: str = Field(min_length=1, max_length=255)
    frequency: Frequency
    days_before: int = Field(default=7, ge=0, le=365)
    notes: Optional[str] = None
    auto_send: bool = False
    email_template: Optional[str] = None


class RecurringTemplateCreate(RecurringTemplateBase):
    next_generation_date: date
    active: bool = True
    items: List[RecurringTemplateItemCreate] = Field(default_factory=list)


class RecurringTemplateUpdate(BaseModel):
    # next_generation_date is owned by the generation engine and cannot be edited
    client_id: Optional[int] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    frequency: Optional[Frequency] = None
    days_before: Optional[int] = Field(default=None, ge=0, le=365)
    notes: Optional[str] = None
    auto_send: Optional[bool] = None
    email_template: Optional[str] = None


class RecurringTemplateToggle(BaseModel):
    active: bool


class RecurringTemplateRead(RecurringTemplateBase):
    id: int
    owner_id: int
    next_generation_date: date
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[RecurringTemplateItemRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class GenerateDueRequest(BaseModel):
    reference_date: Optional[date] = None


class GenerationFailureRead(BaseModel):
    template_id: int
    error_type: str
    message: str
    invoice_id: Optional[int] = None


class GenerationReportRead(BaseModel):
    reference_date: date
    generated_count: int
    invoices: List[InvoiceRead]
    skipped_template_ids: List[int]
    cancelled_template_ids: List[int] = []
    errors: List[GenerationFailureRead]
    send_failures: List[GenerationFailureRead]
