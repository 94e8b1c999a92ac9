from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agency_billing.core.observability import billing_invoices_created_total
from agency_billing.core.settings import settings
from agency_billing.models.client import Client
from agency_billing.models.enums import InvoiceStatus
from agency_billing.models.invoice import Invoice, InvoiceAuditLog, InvoiceItem
from agency_billing.models.task import Task
from agency_billing.services.billable_tasks import end_of_day, select_billable_tasks, start_of_day
from agency_billing.services.client_locks import lock_client
from agency_billing.services.errors import (
    BillingValidationError,
    BusinessRuleError,
    InvoiceNumberConflict,
    NotFoundError,
)
from agency_billing.services.invoice_numbers import next_invoice_number
from agency_billing.services.pricing import ZERO, resolve_price


logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
HUNDRED = Decimal("100")

NO_TASKS_IN_PERIOD = "No billable tasks found for this period"
NO_PRICED_TASKS = "Tasks found but no prices defined"


def _q(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _line_amount(quantity: int, unit_price: Decimal) -> Decimal:
    return _q(Decimal(quantity) * unit_price)


def default_due_date(now: datetime, *, days: Optional[int] = None) -> date:
    offset = settings.invoice_due_days if days is None else days
    return now.date() + timedelta(days=offset)


def compute_totals(
    amounts: Iterable[Decimal],
    *,
    tax_rate: Decimal = ZERO,
    discount: Decimal = ZERO,
) -> tuple[Decimal, Decimal, Decimal]:
    """Return ``(subtotal, tax_amount, total)``; discount is subtracted once, after tax."""
    subtotal = _q(sum(amounts, start=Decimal("0.00")))
    tax_amount = _q(subtotal * Decimal(tax_rate) / HUNDRED)
    total = _q(subtotal + tax_amount - Decimal(discount))
    return subtotal, tax_amount, total


def build_line_items(items_payload: Sequence[dict]) -> List[InvoiceItem]:
    if not items_payload:
        raise BillingValidationError("An invoice needs at least one item")

    line_items: List[InvoiceItem] = []
    for idx, item in enumerate(items_payload):
        description = str(item.get("description") or "").strip()
        quantity = item.get("quantity")
        unit_price = Decimal(str(item.get("unit_price", "0")))
        if not description:
            raise BillingValidationError(f"Item {idx + 1}: description is required")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise BillingValidationError(f"Item {idx + 1}: quantity must be a positive integer")
        if unit_price < ZERO:
            raise BillingValidationError(f"Item {idx + 1}: unit price cannot be negative")
        line_items.append(
            InvoiceItem(
                description=description,
                quantity=quantity,
                unit_price=unit_price,
                amount=_line_amount(quantity, unit_price),
                order_index=idx,
            )
        )
    return line_items


def describe_task(task: Task) -> str:
    if task.scheduled_date is None:
        return f"{task.service_type} - {task.title}"
    return f"{task.service_type} - {task.title} ({task.scheduled_date:%d/%m/%Y})"


def add_invoice_audit_log(
    db: Session,
    *,
    invoice_id: int,
    event_type: str,
    actor_user_id: Optional[str],
    diff: Optional[dict] = None,
) -> InvoiceAuditLog:
    entry = InvoiceAuditLog(
        invoice_id=invoice_id,
        event_type=event_type,
        actor_user_id=actor_user_id,
        diff_json=diff,
    )
    db.add(entry)
    db.flush()
    return entry


def _persist_invoice(
    db: Session,
    *,
    client: Client,
    due_date: date,
    status: InvoiceStatus,
    line_items: List[InvoiceItem],
    tax_rate: Decimal,
    discount: Decimal,
    notes: Optional[str],
    now: datetime,
    event_type: str,
    actor_user_id: Optional[str],
    consumed_tasks: Sequence[Task] = (),
) -> Invoice:
    subtotal, tax_amount, total = compute_totals(
        (item.amount for item in line_items),
        tax_rate=tax_rate,
        discount=discount,
    )
    invoice = Invoice(
        invoice_number=next_invoice_number(db),
        client_id=client.id,
        status=status,
        due_date=due_date,
        subtotal=subtotal,
        tax_rate=Decimal(tax_rate),
        tax_amount=tax_amount,
        discount=Decimal(discount),
        total=total,
        notes=notes,
        sent_at=now if status == InvoiceStatus.SENT else None,
        paid_at=now if status == InvoiceStatus.PAID else None,
        created_at=now,
        updated_at=now,
    )
    invoice.items = line_items
    db.add(invoice)
    try:
        db.flush()
    except IntegrityError as exc:
        raise InvoiceNumberConflict(f"Invoice number {invoice.invoice_number} is already taken") from exc

    for task in consumed_tasks:
        task.invoice_id = invoice.id
    db.flush()

    add_invoice_audit_log(
        db,
        invoice_id=invoice.id,
        event_type=event_type,
        actor_user_id=actor_user_id,
        diff={
            "invoice_number": invoice.invoice_number,
            "total": str(invoice.total),
            "task_ids": [task.id for task in consumed_tasks],
        },
    )
    billing_invoices_created_total.labels(mode=event_type).inc()
    logger.info(
        "invoice_%s",
        event_type,
        extra={
            "client_id": client.id,
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "amount": str(invoice.total),
            "count": len(line_items),
        },
    )
    return invoice


def create_manual_invoice(
    db: Session,
    *,
    client_id: int,
    due_date: date,
    items: Sequence[dict],
    now: datetime,
    status: InvoiceStatus = InvoiceStatus.DRAFT,
    notes: Optional[str] = None,
    tax_rate: Optional[Decimal] = None,
    discount: Optional[Decimal] = None,
    actor_user_id: Optional[str] = None,
) -> Invoice:
    """Invoice from caller-supplied line items. Consumes no tasks."""
    tax_rate = Decimal(tax_rate if tax_rate is not None else ZERO)
    discount = Decimal(discount if discount is not None else ZERO)
    if tax_rate < ZERO:
        raise BillingValidationError("Tax rate cannot be negative")
    if discount < ZERO:
        raise BillingValidationError("Discount cannot be negative")
    line_items = build_line_items(items)

    client = lock_client(db, client_id)
    return _persist_invoice(
        db,
        client=client,
        due_date=due_date,
        status=status,
        line_items=line_items,
        tax_rate=tax_rate,
        discount=discount,
        notes=notes,
        now=now,
        event_type="created",
        actor_user_id=actor_user_id,
    )


def invoice_from_tasks(
    db: Session,
    *,
    client: Client,
    tasks: Sequence[Task],
    now: datetime,
    actor_user_id: Optional[str] = None,
) -> Optional[Invoice]:
    """Bill every priced task; unpriced tasks are left untouched. None if nothing is priced."""
    line_items: List[InvoiceItem] = []
    consumed: List[Task] = []
    for task in tasks:
        price = resolve_price(client, task.service_type)
        if price <= ZERO:
            continue
        line_items.append(
            InvoiceItem(
                description=describe_task(task),
                quantity=1,
                unit_price=price,
                amount=_line_amount(1, price),
                order_index=len(line_items),
            )
        )
        consumed.append(task)

    if not line_items:
        return None

    return _persist_invoice(
        db,
        client=client,
        due_date=default_due_date(now),
        status=InvoiceStatus.DRAFT,
        line_items=line_items,
        tax_rate=ZERO,
        discount=ZERO,
        notes=None,
        now=now,
        event_type="generated",
        actor_user_id=actor_user_id,
        consumed_tasks=consumed,
    )


def generate_monthly_invoices(
    db: Session,
    *,
    client_ids: Sequence[int],
    now: datetime,
    actor_user_id: Optional[str] = None,
) -> List[Invoice]:
    generated: List[Invoice] = []
    for client_id in dict.fromkeys(client_ids):
        try:
            client = lock_client(db, client_id)
        except NotFoundError:
            logger.warning("monthly_invoice_unknown_client", extra={"client_id": client_id})
            continue
        tasks = select_billable_tasks(db, client_id=client.id, require_scheduled_date=True)
        invoice = invoice_from_tasks(db, client=client, tasks=tasks, now=now, actor_user_id=actor_user_id)
        if invoice is not None:
            generated.append(invoice)
    return generated


def generate_custom_invoice(
    db: Session,
    *,
    client_id: int,
    from_date: date,
    to_date: date,
    now: datetime,
    actor_user_id: Optional[str] = None,
) -> Invoice:
    """Invoice one client's work scheduled between ``from_date`` and the end of ``to_date``."""
    if from_date > to_date:
        raise BillingValidationError("from_date must not be after to_date")

    client = lock_client(db, client_id)
    tasks = select_billable_tasks(
        db,
        client_id=client.id,
        scheduled_from=start_of_day(from_date),
        scheduled_to=end_of_day(to_date),
        require_scheduled_date=True,
    )
    if not tasks:
        raise BusinessRuleError(NO_TASKS_IN_PERIOD)

    invoice = invoice_from_tasks(db, client=client, tasks=tasks, now=now, actor_user_id=actor_user_id)
    if invoice is None:
        raise BusinessRuleError(NO_PRICED_TASKS)
    return invoice
