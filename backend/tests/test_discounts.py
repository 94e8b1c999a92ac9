from __future__ import annotations

from decimal import Decimal

import pytest

from agency_billing.models.enums import TaskStatus
from agency_billing.services.billable_tasks import select_billable_tasks
from agency_billing.services.discounts import apply_discount
from agency_billing.services.errors import BillingValidationError

from conftest import at


def test_discount_walks_oldest_work_first(db, poster_client, make_task):
    third = make_task(client=poster_client, scheduled_date=at(2026, 1, 3))
    first = make_task(client=poster_client, scheduled_date=at(2026, 1, 1))
    second = make_task(client=poster_client, scheduled_date=at(2026, 1, 2))

    outcome = apply_discount(db, client_id=poster_client.id, amount=Decimal("1200"))

    assert outcome.applied_task_ids == [first.id, second.id]
    assert outcome.remaining_discount == Decimal("200")
    db.refresh(third)
    assert third.status == TaskStatus.DONE
    assert [task.id for task in select_billable_tasks(db, client_id=poster_client.id)] == [third.id]


def test_best_fit_scan_continues_past_expensive_task(db, make_client, make_task):
    client = make_client(poster_design_price=Decimal("500"), other_work_price=Decimal("100"))
    expensive = make_task(client=client, scheduled_date=at(2026, 1, 1))
    cheap = make_task(client=client, service_type="Other Work", scheduled_date=at(2026, 1, 2))

    outcome = apply_discount(db, client_id=client.id, amount=Decimal("150"))

    assert outcome.applied_task_ids == [cheap.id]
    assert outcome.remaining_discount == Decimal("50")
    assert expensive.status == TaskStatus.DONE


def test_price_within_a_cent_of_remainder_still_fits(db, poster_client, make_task):
    task = make_task(client=poster_client, scheduled_date=at(2026, 1, 1))

    outcome = apply_discount(db, client_id=poster_client.id, amount=Decimal("499.99"))

    assert outcome.applied_task_ids == [task.id]


def test_unpriced_and_invoiced_tasks_are_ignored(db, poster_client, make_task):
    make_task(client=poster_client, service_type="AI Video", scheduled_date=at(2026, 1, 1))
    make_task(client=poster_client, status=TaskStatus.IN_PROGRESS, scheduled_date=at(2026, 1, 1))

    outcome = apply_discount(db, client_id=poster_client.id, amount=Decimal("1000"))

    assert outcome.applied_task_ids == []
    assert outcome.remaining_discount == Decimal("1000")


def test_discounted_tasks_leave_the_billable_pool(db, poster_client, make_task):
    task = make_task(client=poster_client, scheduled_date=at(2026, 1, 1))

    apply_discount(db, client_id=poster_client.id, amount=Decimal("500"))

    db.refresh(task)
    assert task.status == TaskStatus.DISCOUNTED
    assert select_billable_tasks(db, client_id=poster_client.id) == []


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1")])
def test_non_positive_amount_is_rejected(db, poster_client, amount):
    with pytest.raises(BillingValidationError):
        apply_discount(db, client_id=poster_client.id, amount=amount)
