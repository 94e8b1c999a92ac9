from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, model_validator

from agency_billing.schemas.base import ORMModel
from agency_billing.schemas.invoice import ClientSummary, InvoiceRead


class PaymentCreate(ORMModel):
    client_id: int
    amount: Decimal = Field(..., gt=Decimal("0.00"))
    payment_date: date
    payment_method: str = Field(..., min_length=1, max_length=50)
    transaction_id: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class PaymentRead(ORMModel):
    id: int
    client_id: int
    amount: Decimal
    payment_date: date
    payment_method: str
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class PaymentResult(ORMModel):
    message: str
    payment: PaymentRead
    updated_invoices: List[InvoiceRead] = Field(default_factory=list)
    remaining_credit: Decimal


class DiscountCreate(ORMModel):
    client_id: int
    amount: Decimal = Field(..., gt=Decimal("0.00"))


class DiscountResult(ORMModel):
    message: str
    applied_task_ids: List[int] = Field(default_factory=list)
    remaining_discount: Decimal


class GenerateMonthlyRequest(ORMModel):
    client_ids: List[int] = Field(..., min_length=1)


class GenerateMonthlyResult(ORMModel):
    message: str
    generated: int
    invoices: List[InvoiceRead] = Field(default_factory=list)


class GenerateCustomRequest(ORMModel):
    client_id: int
    from_date: date
    to_date: date

    @model_validator(mode="after")
    def _check_range(self) -> "GenerateCustomRequest":
        if self.from_date > self.to_date:
            raise ValueError("from_date must not be after to_date")
        return self


class PendingAmountRow(ORMModel):
    client: ClientSummary
    amount: Decimal
    discounted: Decimal
    task_ids: List[int] = Field(default_factory=list)
