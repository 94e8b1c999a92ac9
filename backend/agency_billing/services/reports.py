from __future__ import annotations

from decimal import Decimal
from typing import Dict, List

from sqlalchemy.orm import Session

from agency_billing.models.enums import TaskStatus
from agency_billing.services.billable_tasks import select_unbilled_tasks
from agency_billing.services.pricing import ZERO, resolve_price


def pending_amounts(db: Session) -> List[dict]:
    """Unbilled work per client: DONE value still to invoice and DISCOUNTED value written off."""
    rows: Dict[int, dict] = {}
    tasks = select_unbilled_tasks(db, statuses=(TaskStatus.DONE, TaskStatus.DISCOUNTED))
    for task in tasks:
        client = task.effective_client
        price = resolve_price(client, task.service_type)
        if price <= ZERO:
            continue

        row = rows.setdefault(
            client.id,
            {"client": client, "amount": Decimal("0.00"), "discounted": Decimal("0.00"), "task_ids": []},
        )
        if task.status == TaskStatus.DONE:
            row["amount"] += price
        else:
            row["discounted"] += price
        row["task_ids"].append(task.id)

    return list(rows.values())
