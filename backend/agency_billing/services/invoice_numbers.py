from __future__ import annotations

import re

from sqlalchemy import func
from sqlalchemy.orm import Session

from agency_billing.models.invoice import Invoice


INVOICE_NUMBER_PATTERN = re.compile(r"INV-(\d+)")
FIRST_INVOICE_NUMBER = "INV-00001"


def format_invoice_number(sequence: int) -> str:
    return f"INV-{sequence:05d}"


def next_invoice_number(db: Session) -> str:
    """Number following the most recently created invoice.

    Two transactions can read the same "last invoice"; the unique
    constraint on ``invoices.invoice_number`` is what rejects the loser.
    """
    last_invoice = db.query(Invoice).order_by(Invoice.created_at.desc(), Invoice.id.desc()).first()
    if last_invoice is None:
        return FIRST_INVOICE_NUMBER

    match = INVOICE_NUMBER_PATTERN.search(last_invoice.invoice_number or "")
    if match:
        return format_invoice_number(int(match.group(1)) + 1)

    count = db.query(func.count(Invoice.id)).scalar() or 0
    return format_invoice_number(count + 1)
