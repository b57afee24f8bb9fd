"""Invoice item schemas.

``amount`` is output only: it is always recomputed from quantity and unit price.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InvoiceItemBase(BaseModel):
    description: str = Field(min_length=1, max_length=255)
    quantity: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    unit_price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)


class InvoiceItemCreate(InvoiceItemBase):
    pass


class InvoiceItemUpdate(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=255)
    quantity: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    unit_price: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)


class InvoiceItemRead(InvoiceItemBase):
    id: int
    invoice_id: int
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)
