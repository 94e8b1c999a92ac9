from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from agency_billing.models.enums import InvoiceStatus
from agency_billing.models.invoice import Invoice
from agency_billing.models.task import Task
from agency_billing.services.errors import NotFoundError
from agency_billing.services.invoices import add_invoice_audit_log


logger = logging.getLogger(__name__)


def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = (
        db.query(Invoice)
        .options(selectinload(Invoice.items), selectinload(Invoice.client))
        .filter(Invoice.id == invoice_id)
        .first()
    )
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def display_status(invoice: Invoice, *, today: date) -> InvoiceStatus:
    """Stored status, reported as OVERDUE once an unpaid invoice passes its due date."""
    if invoice.status == InvoiceStatus.PAID:
        return InvoiceStatus.PAID
    if invoice.due_date is not None and invoice.due_date < today:
        return InvoiceStatus.OVERDUE
    return invoice.status


def mark_sent(db: Session, invoice: Invoice, *, now: datetime, actor_user_id: Optional[str] = None) -> bool:
    """DRAFT -> SENT the first time the document is produced. Returns whether it moved."""
    if invoice.status != InvoiceStatus.DRAFT:
        return False
    invoice.status = InvoiceStatus.SENT
    invoice.sent_at = now
    db.add(invoice)
    add_invoice_audit_log(db, invoice_id=invoice.id, event_type="sent", actor_user_id=actor_user_id)
    logger.info("invoice_sent", extra={"invoice_id": invoice.id, "invoice_number": invoice.invoice_number})
    return True


def override_status(
    db: Session,
    invoice: Invoice,
    new_status: InvoiceStatus,
    *,
    now: datetime,
    actor_user_id: Optional[str] = None,
) -> Invoice:
    """Set any status directly; lifecycle transitions are not enforced here."""
    previous = invoice.status
    invoice.status = new_status
    if new_status == InvoiceStatus.PAID and invoice.paid_at is None:
        invoice.paid_at = now
    if new_status == InvoiceStatus.SENT and invoice.sent_at is None:
        invoice.sent_at = now
    db.add(invoice)
    add_invoice_audit_log(
        db,
        invoice_id=invoice.id,
        event_type="status_changed",
        actor_user_id=actor_user_id,
        diff={"from": previous.value, "to": new_status.value},
    )
    return invoice


def delete_invoice(db: Session, invoice_id: int) -> List[int]:
    """Delete an invoice and its items, returning its tasks to the billable pool.

    Payments and discounted tasks are left as they are. Returns the ids of
    the tasks that were unlinked.
    """
    invoice = db.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")

    linked_ids = [row.id for row in db.query(Task.id).filter(Task.invoice_id == invoice.id).all()]
    if linked_ids:
        (
            db.query(Task)
            .filter(Task.invoice_id == invoice.id)
            .update({Task.invoice_id: None}, synchronize_session="evaluate")
        )

    db.delete(invoice)
    db.flush()
    logger.info(
        "invoice_deleted",
        extra={"invoice_id": invoice_id, "invoice_number": invoice.invoice_number, "count": len(linked_ids)},
    )
    return linked_ids
