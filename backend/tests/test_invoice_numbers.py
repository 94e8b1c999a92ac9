from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from agency_billing.models.invoice import Invoice
from agency_billing.services.errors import InvoiceNumberConflict
from agency_billing.services.invoice_numbers import (
    FIRST_INVOICE_NUMBER,
    format_invoice_number,
    next_invoice_number,
)
from agency_billing.services.invoices import create_manual_invoice

from conftest import NOW

ITEM = [{"description": "Retainer", "quantity": 1, "unit_price": Decimal("10")}]


def test_first_number(db):
    assert next_invoice_number(db) == FIRST_INVOICE_NUMBER == "INV-00001"


def test_format_pads_to_five_digits():
    assert format_invoice_number(42) == "INV-00042"
    assert format_invoice_number(123456) == "INV-123456"


def test_sequential_creations_have_no_gaps(db, poster_client):
    numbers = []
    for offset in range(5):
        invoice = create_manual_invoice(
            db,
            client_id=poster_client.id,
            due_date=date(2026, 3, 1),
            items=ITEM,
            now=NOW + timedelta(minutes=offset),
        )
        numbers.append(invoice.invoice_number)

    assert numbers == [f"INV-0000{n}" for n in range(1, 6)]


def test_same_timestamp_orders_by_id(db, poster_client):
    first = create_manual_invoice(db, client_id=poster_client.id, due_date=date(2026, 3, 1), items=ITEM, now=NOW)
    second = create_manual_invoice(db, client_id=poster_client.id, due_date=date(2026, 3, 1), items=ITEM, now=NOW)

    assert (first.invoice_number, second.invoice_number) == ("INV-00001", "INV-00002")


def test_unparseable_last_number_falls_back_to_count(db, poster_client):
    for number in ("LEGACY-A", "LEGACY-B"):
        db.add(
            Invoice(
                invoice_number=number,
                client_id=poster_client.id,
                due_date=date(2026, 1, 1),
                total=Decimal("0"),
                created_at=NOW,
            )
        )
    db.flush()

    assert next_invoice_number(db) == "INV-00003"


def test_duplicate_number_raises_conflict(db, poster_client):
    for number, created_at in (("INV-00002", NOW - timedelta(days=1)), ("INV-00001", NOW)):
        db.add(
            Invoice(
                invoice_number=number,
                client_id=poster_client.id,
                due_date=date(2026, 1, 1),
                total=Decimal("0"),
                created_at=created_at,
            )
        )
    db.commit()

    with pytest.raises(InvoiceNumberConflict, match="INV-00002"):
        create_manual_invoice(db, client_id=poster_client.id, due_date=date(2026, 3, 1), items=ITEM, now=NOW)
    db.rollback()

    assert db.query(Invoice).count() == 2
