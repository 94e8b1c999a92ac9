from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, selectinload

from agency_billing.models.enums import TaskStatus
from agency_billing.models.project import Project
from agency_billing.models.task import Task


def effective_client_id():
    """SQL twin of Task.effective_client: the task's client, else its project's client."""
    return func.coalesce(Task.client_id, Project.client_id)


def start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def end_of_day(value: date) -> datetime:
    return datetime.combine(value, time.max, tzinfo=timezone.utc)


def _unbilled_query(
    db: Session,
    *,
    statuses: Iterable[TaskStatus],
    client_id: Optional[int] = None,
    scheduled_from: Optional[datetime] = None,
    scheduled_to: Optional[datetime] = None,
    require_scheduled_date: bool = False,
) -> Query:
    query = (
        db.query(Task)
        .outerjoin(Project, Task.project_id == Project.id)
        .options(
            selectinload(Task.client),
            selectinload(Task.project).selectinload(Project.client),
        )
        .filter(
            Task.status.in_(list(statuses)),
            Task.service_type.isnot(None),
            Task.invoice_id.is_(None),
        )
    )
    if client_id is not None:
        query = query.filter(effective_client_id() == client_id)
    if require_scheduled_date:
        query = query.filter(Task.scheduled_date.isnot(None))
    if scheduled_from is not None:
        query = query.filter(Task.scheduled_date >= scheduled_from)
    if scheduled_to is not None:
        query = query.filter(Task.scheduled_date <= scheduled_to)
    return query


def _with_client(tasks: Iterable[Task]) -> List[Task]:
    # Orphaned tasks are dropped rather than reported.
    return [task for task in tasks if task.effective_client is not None]


def select_billable_tasks(
    db: Session,
    *,
    client_id: Optional[int] = None,
    scheduled_from: Optional[datetime] = None,
    scheduled_to: Optional[datetime] = None,
    require_scheduled_date: bool = False,
    oldest_first: bool = False,
) -> List[Task]:
    """DONE tasks with a service type that no invoice has consumed yet.

    ``oldest_first`` orders by scheduled date ascending (undated work last),
    which is required wherever allocation walks "oldest work first".
    """
    query = _unbilled_query(
        db,
        statuses=(TaskStatus.DONE,),
        client_id=client_id,
        scheduled_from=scheduled_from,
        scheduled_to=scheduled_to,
        require_scheduled_date=require_scheduled_date,
    )
    if oldest_first:
        query = query.order_by(Task.scheduled_date.asc().nulls_last(), Task.id.asc())
    else:
        query = query.order_by(Task.id.asc())
    return _with_client(query.all())


def select_unbilled_tasks(
    db: Session,
    *,
    statuses: Iterable[TaskStatus],
    require_scheduled_date: bool = True,
) -> List[Task]:
    """Unbilled tasks in any of ``statuses``, for read-only reporting."""
    query = _unbilled_query(db, statuses=statuses, require_scheduled_date=require_scheduled_date)
    return _with_client(query.order_by(Task.id.asc()).all())
