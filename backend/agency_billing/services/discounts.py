from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from agency_billing.core.observability import billing_tasks_discounted_total
from agency_billing.models.enums import TaskStatus
from agency_billing.models.task import Task
from agency_billing.services.billable_tasks import select_billable_tasks
from agency_billing.services.client_locks import lock_client
from agency_billing.services.errors import BillingValidationError
from agency_billing.services.pricing import ZERO, resolve_price


logger = logging.getLogger(__name__)

# Absorbs rounding so a price equal to the remainder still fits.
DISCOUNT_EPSILON = Decimal("0.01")


@dataclass
class DiscountOutcome:
    applied_task_ids: List[int] = field(default_factory=list)
    remaining_discount: Decimal = ZERO


def apply_discount(db: Session, *, client_id: int, amount: Decimal) -> DiscountOutcome:
    """Write off the client's oldest unbilled work up to ``amount``.

    Best-fit scan: a task too expensive for the remainder is skipped and the
    walk goes on, so cheaper later tasks can still be discounted.
    """
    amount = Decimal(amount)
    if amount <= ZERO:
        raise BillingValidationError("Discount amount must be positive")

    client = lock_client(db, client_id)
    outcome = DiscountOutcome(remaining_discount=amount)
    for task in select_billable_tasks(db, client_id=client.id, oldest_first=True):
        if outcome.remaining_discount <= ZERO:
            break
        price = resolve_price(task.effective_client, task.service_type)
        if ZERO < price <= outcome.remaining_discount + DISCOUNT_EPSILON:
            outcome.applied_task_ids.append(task.id)
            outcome.remaining_discount -= price

    if outcome.applied_task_ids:
        (
            db.query(Task)
            .filter(Task.id.in_(outcome.applied_task_ids))
            .update({Task.status: TaskStatus.DISCOUNTED}, synchronize_session="evaluate")
        )
        db.flush()

    billing_tasks_discounted_total.inc(len(outcome.applied_task_ids))
    logger.info(
        "discount_applied",
        extra={
            "client_id": client.id,
            "amount": str(amount),
            "remaining": str(outcome.remaining_discount),
            "count": len(outcome.applied_task_ids),
        },
    )
    return outcome
