from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from agency_billing.models.enums import InvoiceStatus
from agency_billing.models.payment import Payment, PaymentAllocation
from agency_billing.services.errors import BillingValidationError, NotFoundError
from agency_billing.services.invoices import create_manual_invoice
from agency_billing.services.payments import record_payment

from conftest import NOW


def _sent_invoice(db, client, amount: str, minutes: int):
    return create_manual_invoice(
        db,
        client_id=client.id,
        due_date=date(2026, 3, 1),
        items=[{"description": "Work", "quantity": 1, "unit_price": Decimal(amount)}],
        status=InvoiceStatus.SENT,
        now=NOW + timedelta(minutes=minutes),
    )


@pytest.fixture()
def two_sent_invoices(db, poster_client):
    older = _sent_invoice(db, poster_client, "1000", minutes=0)
    newer = _sent_invoice(db, poster_client, "1500", minutes=5)
    return older, newer


def _pay(db, client, amount: str):
    return record_payment(
        db,
        client_id=client.id,
        amount=Decimal(amount),
        payment_date=date(2026, 2, 10),
        payment_method="Bank Transfer",
        now=NOW,
    )


def test_exact_payment_settles_oldest_invoice(db, poster_client, two_sent_invoices):
    older, newer = two_sent_invoices

    outcome = _pay(db, poster_client, "1000")

    assert outcome.updated_invoices == [older]
    assert older.status == InvoiceStatus.PAID
    assert older.paid_at == NOW
    assert newer.status == InvoiceStatus.SENT
    assert outcome.remaining_credit == Decimal("0")


def test_overpayment_settles_all_and_returns_credit(db, poster_client, two_sent_invoices):
    older, newer = two_sent_invoices

    outcome = _pay(db, poster_client, "2600")

    assert outcome.updated_invoices == [older, newer]
    assert {older.status, newer.status} == {InvoiceStatus.PAID}
    assert outcome.remaining_credit == Decimal("100")


def test_small_payment_is_stored_but_allocates_nothing(db, poster_client, two_sent_invoices):
    older, newer = two_sent_invoices

    outcome = _pay(db, poster_client, "999.99")

    assert outcome.updated_invoices == []
    assert outcome.remaining_credit == Decimal("999.99")
    assert older.status == newer.status == InvoiceStatus.SENT
    assert db.query(Payment).count() == 1


def test_walk_stops_at_first_invoice_it_cannot_cover(db, poster_client):
    big = _sent_invoice(db, poster_client, "2000", minutes=0)
    small = _sent_invoice(db, poster_client, "100", minutes=5)

    outcome = _pay(db, poster_client, "500")

    assert outcome.updated_invoices == []
    assert big.status == small.status == InvoiceStatus.SENT


def test_drafts_are_outstanding_and_paid_invoices_are_skipped(db, poster_client):
    paid = _sent_invoice(db, poster_client, "300", minutes=0)
    paid.status = InvoiceStatus.PAID
    draft = create_manual_invoice(
        db,
        client_id=poster_client.id,
        due_date=date(2026, 3, 1),
        items=[{"description": "Draft work", "quantity": 1, "unit_price": Decimal("200")}],
        now=NOW + timedelta(minutes=1),
    )
    db.flush()

    outcome = _pay(db, poster_client, "200")

    assert outcome.updated_invoices == [draft]


def test_allocations_record_each_settled_invoice(db, poster_client, two_sent_invoices):
    older, newer = two_sent_invoices

    outcome = _pay(db, poster_client, "2500")

    allocations = db.query(PaymentAllocation).filter(PaymentAllocation.payment_id == outcome.payment.id).all()
    assert {(a.invoice_id, a.amount) for a in allocations} == {
        (older.id, Decimal("1000.00")),
        (newer.id, Decimal("1500.00")),
    }


def test_every_paid_invoice_was_fully_covered(db, poster_client):
    invoices = [_sent_invoice(db, poster_client, amount, minutes=i) for i, amount in enumerate(["300", "450", "700"])]

    outcome = _pay(db, poster_client, "1000")

    consumed = Decimal("0")
    for invoice in outcome.updated_invoices:
        consumed += invoice.total
        assert consumed <= Decimal("1000")
    assert [invoice.id for invoice in outcome.updated_invoices] == [invoices[0].id, invoices[1].id]
    assert outcome.remaining_credit == Decimal("250")


def test_other_clients_invoices_are_untouched(db, poster_client, make_client):
    other = make_client(poster_design_price=Decimal("100"))
    foreign = _sent_invoice(db, other, "50", minutes=0)

    outcome = _pay(db, poster_client, "50")

    assert outcome.updated_invoices == []
    assert foreign.status == InvoiceStatus.SENT


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_non_positive_amount_is_rejected(db, poster_client, amount):
    with pytest.raises(BillingValidationError):
        _pay(db, poster_client, amount)
    assert db.query(Payment).count() == 0


def test_unknown_client(db):
    with pytest.raises(NotFoundError):
        record_payment(
            db,
            client_id=404,
            amount=Decimal("10"),
            payment_date=date(2026, 2, 10),
            payment_method="Cash",
            now=NOW,
        )
