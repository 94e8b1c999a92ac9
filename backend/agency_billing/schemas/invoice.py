from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from agency_billing.models.enums import InvoiceStatus
from agency_billing.schemas.base import ORMModel


class InvoiceItemBase(ORMModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: int = Field(default=1, gt=0)
    unit_price: Decimal = Field(default=Decimal("0.00"), ge=Decimal("0.00"))


class InvoiceItemCreate(InvoiceItemBase):
    pass


class InvoiceItemRead(InvoiceItemBase):
    id: int
    invoice_id: int
    amount: Decimal
    order_index: int


class ClientSummary(ORMModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None


class InvoiceCreate(ORMModel):
    client_id: int
    due_date: date
    status: InvoiceStatus = InvoiceStatus.DRAFT
    items: List[InvoiceItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = None
    tax_rate: Optional[Decimal] = Field(default=None, ge=Decimal("0.00"))
    discount: Optional[Decimal] = Field(default=None, ge=Decimal("0.00"))


class InvoiceStatusUpdate(ORMModel):
    status: InvoiceStatus


class InvoiceRead(ORMModel):
    id: int
    invoice_number: str
    client_id: int
    client: Optional[ClientSummary] = None
    status: InvoiceStatus
    display_status: Optional[InvoiceStatus] = None
    is_overdue: bool = False
    due_date: date
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount: Decimal
    total: Decimal
    notes: Optional[str] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: List[InvoiceItemRead] = Field(default_factory=list)


class InvoiceDeleteResult(ORMModel):
    message: str
    unlinked_task_ids: List[int] = Field(default_factory=list)
