from __future__ import annotations

from decimal import Decimal

from agency_billing.models.enums import TaskStatus
from agency_billing.services.billable_tasks import (
    end_of_day,
    select_billable_tasks,
    select_unbilled_tasks,
    start_of_day,
)
from agency_billing.services.invoices import invoice_from_tasks

from conftest import NOW, at


def test_only_done_unbilled_tasks_with_service_type(db, poster_client, make_task):
    done = make_task(client=poster_client, scheduled_date=at(2026, 1, 5))
    make_task(client=poster_client, status=TaskStatus.REVIEW)
    make_task(client=poster_client, status=TaskStatus.DISCOUNTED)
    make_task(client=poster_client, service_type=None)

    selected = select_billable_tasks(db, client_id=poster_client.id)

    assert [task.id for task in selected] == [done.id]


def test_client_resolved_through_project(db, poster_client, make_project, make_task):
    project = make_project(poster_client)
    via_project = make_task(project=project)
    direct = make_task(client=poster_client)

    selected = select_billable_tasks(db, client_id=poster_client.id)

    assert {task.id for task in selected} == {via_project.id, direct.id}
    assert all(task.effective_client.id == poster_client.id for task in selected)


def test_orphan_tasks_are_dropped(db, make_project, make_task):
    orphan_project = make_project(None)
    make_task(project=orphan_project)
    make_task()

    assert select_billable_tasks(db) == []


def test_date_range_is_inclusive_to_end_of_day(db, poster_client, make_task):
    make_task(client=poster_client, scheduled_date=at(2025, 12, 31, 23))
    first = make_task(client=poster_client, scheduled_date=at(2026, 1, 1, 0))
    last = make_task(client=poster_client, scheduled_date=at(2026, 1, 31, 23))
    make_task(client=poster_client, scheduled_date=at(2026, 2, 1, 0))

    selected = select_billable_tasks(
        db,
        client_id=poster_client.id,
        scheduled_from=start_of_day(at(2026, 1, 1).date()),
        scheduled_to=end_of_day(at(2026, 1, 31).date()),
    )

    assert [task.id for task in selected] == [first.id, last.id]


def test_oldest_first_puts_undated_work_last(db, poster_client, make_task):
    undated = make_task(client=poster_client)
    later = make_task(client=poster_client, scheduled_date=at(2026, 1, 9))
    earlier = make_task(client=poster_client, scheduled_date=at(2026, 1, 2))

    selected = select_billable_tasks(db, client_id=poster_client.id, oldest_first=True)

    assert [task.id for task in selected] == [earlier.id, later.id, undated.id]


def test_invoiced_task_never_selected_again(db, poster_client, make_task):
    make_task(client=poster_client, scheduled_date=at(2026, 1, 3))
    make_task(client=poster_client, scheduled_date=at(2026, 1, 4))

    tasks = select_billable_tasks(db, client_id=poster_client.id)
    invoice = invoice_from_tasks(db, client=poster_client, tasks=tasks, now=NOW)

    assert invoice is not None
    assert select_billable_tasks(db, client_id=poster_client.id) == []


def test_unbilled_report_selection_requires_date(db, make_client, make_task):
    client = make_client(poster_design_price=Decimal("100"))
    dated = make_task(client=client, scheduled_date=at(2026, 1, 2), status=TaskStatus.DISCOUNTED)
    make_task(client=client, status=TaskStatus.DONE)

    selected = select_unbilled_tasks(db, statuses=(TaskStatus.DONE, TaskStatus.DISCOUNTED))

    assert [task.id for task in selected] == [dated.id]
