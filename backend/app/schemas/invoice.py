"""Invoice schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.app.schemas.invoice_item import InvoiceItemCreate, InvoiceItemRead

InvoiceStatus = Literal["draft", "sent", "viewed", "paid", "overdue"]
Frequency = Literal["weekly", "biweekly", "monthly", "quarterly", "biannually", "annually"]


class InvoiceCreate(BaseModel):
    client_id: int
    invoice_number: Optional[str] = Field(default=None, min_length=1, max_length=64)
    issue_date: date
    due_date: date
    notes: Optional[str] = None
    is_recurring: bool = False
    recurring_frequency: Optional[Frequency] = None
    items: List[InvoiceItemCreate] = Field(default_factory=list)


class InvoiceUpdate(BaseModel):
    client_id: Optional[int] = None
    invoice_number: Optional[str] = Field(default=None, min_length=1, max_length=64)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    client_id: int

    invoice_number: str
    issue_date: date
    due_date: date
    status: str
    total_amount: Decimal
    notes: Optional[str] = None

    is_recurring: bool
    recurring_frequency: Optional[str] = None
    recurring_template_id: Optional[int] = None
    occurrence_date: Optional[date] = None
    last_sent_date: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime
    items: List[InvoiceItemRead] = Field(default_factory=list)


class EmailActionResult(BaseModel):
    message: str
    email: str
    status: str
    days_overdue: Optional[int] = None
