from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from agency_billing.core.observability import billing_payments_recorded_total
from agency_billing.models.enums import InvoiceStatus
from agency_billing.models.invoice import Invoice
from agency_billing.models.payment import Payment, PaymentAllocation
from agency_billing.services.client_locks import lock_client
from agency_billing.services.errors import BillingValidationError
from agency_billing.services.invoices import add_invoice_audit_log
from agency_billing.services.pricing import ZERO


logger = logging.getLogger(__name__)

OUTSTANDING_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.DRAFT, InvoiceStatus.OVERDUE)


@dataclass
class PaymentOutcome:
    payment: Payment
    updated_invoices: List[Invoice] = field(default_factory=list)
    remaining_credit: Decimal = ZERO


def outstanding_invoices(db: Session, client_id: int) -> List[Invoice]:
    """Unpaid invoices of a client, oldest debt first."""
    return (
        db.query(Invoice)
        .filter(Invoice.client_id == client_id, Invoice.status.in_(OUTSTANDING_STATUSES))
        .order_by(Invoice.created_at.asc(), Invoice.id.asc())
        .all()
    )


def record_payment(
    db: Session,
    *,
    client_id: int,
    amount: Decimal,
    payment_date: date,
    payment_method: str,
    now: datetime,
    transaction_id: Optional[str] = None,
    notes: Optional[str] = None,
    actor_user_id: Optional[str] = None,
) -> PaymentOutcome:
    """Store the payment, then settle whole invoices oldest first while the money lasts.

    There are no partial payments: the walk stops at the first invoice the
    remainder cannot cover in full. The remainder is returned as credit and
    is not carried forward.
    """
    amount = Decimal(amount)
    if amount <= ZERO:
        raise BillingValidationError("Payment amount must be positive")

    client = lock_client(db, client_id)
    payment = Payment(
        client_id=client.id,
        amount=amount,
        payment_date=payment_date,
        payment_method=payment_method,
        transaction_id=transaction_id,
        notes=notes,
    )
    db.add(payment)
    db.flush()

    outcome = PaymentOutcome(payment=payment, remaining_credit=amount)
    for invoice in outstanding_invoices(db, client.id):
        if outcome.remaining_credit <= ZERO:
            break
        invoice_total = Decimal(invoice.total)
        if outcome.remaining_credit < invoice_total:
            break

        invoice.status = InvoiceStatus.PAID
        invoice.paid_at = now
        db.add(PaymentAllocation(payment=payment, invoice=invoice, amount=invoice_total))
        outcome.remaining_credit -= invoice_total
        outcome.updated_invoices.append(invoice)

    db.flush()
    for invoice in outcome.updated_invoices:
        add_invoice_audit_log(
            db,
            invoice_id=invoice.id,
            event_type="paid",
            actor_user_id=actor_user_id,
            diff={"payment_id": payment.id, "amount": str(invoice.total)},
        )

    billing_payments_recorded_total.inc()
    logger.info(
        "payment_recorded",
        extra={
            "client_id": client.id,
            "payment_id": payment.id,
            "amount": str(amount),
            "remaining": str(outcome.remaining_credit),
            "count": len(outcome.updated_invoices),
        },
    )
    return outcome
