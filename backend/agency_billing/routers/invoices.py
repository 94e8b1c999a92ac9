from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Callable, List, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from agency_billing.core import rbac
from agency_billing.core.deps import RequestUser, get_current_user, require_billing_manager
from agency_billing.db.session import get_db
from agency_billing.models.client import Client
from agency_billing.models.enums import InvoiceStatus
from agency_billing.models.invoice import Invoice
from agency_billing.schemas.billing import (
    DiscountCreate,
    DiscountResult,
    GenerateCustomRequest,
    GenerateMonthlyRequest,
    GenerateMonthlyResult,
    PaymentCreate,
    PaymentRead,
    PaymentResult,
    PendingAmountRow,
)
from agency_billing.schemas.invoice import (
    ClientSummary,
    InvoiceCreate,
    InvoiceDeleteResult,
    InvoiceRead,
    InvoiceStatusUpdate,
)
from agency_billing.services.discounts import apply_discount
from agency_billing.services.errors import (
    BillingError,
    BillingValidationError,
    BusinessRuleError,
    InvoiceNumberConflict,
    NotFoundError,
)
from agency_billing.services.invoice_lifecycle import (
    delete_invoice as delete_invoice_record,
    display_status,
    get_invoice as get_invoice_record,
    mark_sent,
    override_status,
)
from agency_billing.services.invoice_pdf import render_invoice_pdf, safe_filename
from agency_billing.services.invoices import (
    create_manual_invoice,
    generate_custom_invoice,
    generate_monthly_invoices,
)
from agency_billing.services.payments import record_payment
from agency_billing.services.reports import pending_amounts

router = APIRouter(prefix="/api/invoices", tags=["invoices"])
logger = logging.getLogger(__name__)

T = TypeVar("T")

NUMBER_CONFLICT_ATTEMPTS = 2

_ERROR_STATUS = (
    (BillingValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (BusinessRuleError, status.HTTP_400_BAD_REQUEST),
    (InvoiceNumberConflict, status.HTTP_409_CONFLICT),
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _http_error(exc: BillingError) -> HTTPException:
    for exc_type, status_code in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _run_billing(db: Session, operation: Callable[[], T]) -> T:
    """Run one billing mutation as a single transaction.

    An invoice number collision rolls back and re-runs the operation once
    before it is reported as a conflict.
    """
    for attempt in range(1, NUMBER_CONFLICT_ATTEMPTS + 1):
        try:
            result = operation()
            db.commit()
            return result
        except InvoiceNumberConflict as exc:
            db.rollback()
            logger.warning("invoice_number_conflict", extra={"count": attempt})
            if attempt == NUMBER_CONFLICT_ATTEMPTS:
                raise _http_error(exc) from exc
        except BillingError as exc:
            db.rollback()
            raise _http_error(exc) from exc
    raise AssertionError("unreachable")


def _invoice_to_read(invoice: Invoice, today: date) -> InvoiceRead:
    shown = display_status(invoice, today=today)
    return InvoiceRead.model_validate(invoice).model_copy(
        update={"display_status": shown, "is_overdue": shown == InvoiceStatus.OVERDUE}
    )


def _client_for_user(db: Session, user: RequestUser) -> Client | None:
    if not user.email:
        return None
    return db.query(Client).filter(func.lower(Client.email) == user.email.lower()).first()


def _get_invoice_or_404(db: Session, invoice_id: int) -> Invoice:
    try:
        return get_invoice_record(db, invoice_id)
    except NotFoundError as exc:
        raise _http_error(exc) from exc


def _ensure_invoice_access(db: Session, invoice: Invoice, user: RequestUser) -> None:
    if not rbac.is_client(user):
        return
    own_client = _client_for_user(db, user)
    if own_client is None or own_client.id != invoice.client_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorised to view this invoice")


@router.get("", response_model=List[InvoiceRead])
def list_invoices(
    db: Session = Depends(get_db),
    current_user: RequestUser = Depends(get_current_user),
) -> List[InvoiceRead]:
    query = db.query(Invoice).options(selectinload(Invoice.items), selectinload(Invoice.client))
    if rbac.is_client(current_user):
        own_client = _client_for_user(db, current_user)
        if own_client is None:
            return []
        query = query.filter(Invoice.client_id == own_client.id)

    invoices = query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()
    today = _now().date()
    return [_invoice_to_read(invoice, today) for invoice in invoices]


@router.post("", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_in: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: RequestUser = Depends(require_billing_manager),
) -> InvoiceRead:
    now = _now()
    items_payload = [item.model_dump() for item in invoice_in.items]
    invoice = _run_billing(
        db,
        lambda: create_manual_invoice(
            db,
            client_id=invoice_in.client_id,
            due_date=invoice_in.due_date,
            items=items_payload,
            now=now,
            status=invoice_in.status,
            notes=invoice_in.notes,
            tax_rate=invoice_in.tax_rate,
            discount=invoice_in.discount,
            actor_user_id=current_user.id,
        ),
    )
    db.refresh(invoice)
    return _invoice_to_read(invoice, now.date())


@router.get("/pending-amounts", response_model=List[PendingAmountRow])
def get_pending_amounts(
    db: Session = Depends(get_db),
    _current_user: RequestUser = Depends(require_billing_manager),
) -> List[PendingAmountRow]:
    return [
        PendingAmountRow(
            client=ClientSummary.model_validate(row["client"]),
            amount=row["amount"],
            discounted=row["discounted"],
            task_ids=row["task_ids"],
        )
        for row in pending_amounts(db)
    ]


@router.post("/payment", response_model=PaymentResult)
def post_payment(
    payment_in: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: RequestUser = Depends(require_billing_manager),
) -> PaymentResult:
    now = _now()
    outcome = _run_billing(
        db,
        lambda: record_payment(
            db,
            client_id=payment_in.client_id,
            amount=payment_in.amount,
            payment_date=payment_in.payment_date,
            payment_method=payment_in.payment_method,
            now=now,
            transaction_id=payment_in.transaction_id,
            notes=payment_in.notes,
            actor_user_id=current_user.id,
        ),
    )
    return PaymentResult(
        message="Payment recorded",
        payment=PaymentRead.model_validate(outcome.payment),
        updated_invoices=[_invoice_to_read(invoice, now.date()) for invoice in outcome.updated_invoices],
        remaining_credit=outcome.remaining_credit,
    )


@router.post("/discount", response_model=DiscountResult)
def post_discount(
    discount_in: DiscountCreate,
    db: Session = Depends(get_db),
    _current_user: RequestUser = Depends(require_billing_manager),
) -> DiscountResult:
    outcome = _run_billing(
        db,
        lambda: apply_discount(db, client_id=discount_in.client_id, amount=discount_in.amount),
    )
    return DiscountResult(
        message=f"Discount applied to {len(outcome.applied_task_ids)} task(s)",
        applied_task_ids=outcome.applied_task_ids,
        remaining_discount=outcome.remaining_discount,
    )


@router.post("/generate-monthly", response_model=GenerateMonthlyResult)
def post_generate_monthly(
    request_in: GenerateMonthlyRequest,
    db: Session = Depends(get_db),
    current_user: RequestUser = Depends(require_billing_manager),
) -> GenerateMonthlyResult:
    now = _now()
    invoices = _run_billing(
        db,
        lambda: generate_monthly_invoices(
            db,
            client_ids=request_in.client_ids,
            now=now,
            actor_user_id=current_user.id,
        ),
    )
    return GenerateMonthlyResult(
        message=f"{len(invoices)} invoice(s) generated",
        generated=len(invoices),
        invoices=[_invoice_to_read(invoice, now.date()) for invoice in invoices],
    )


@router.post("/generate-custom", response_model=InvoiceRead, status_code=status.HTTP_201_CREATED)
def post_generate_custom(
    request_in: GenerateCustomRequest,
    db: Session = Depends(get_db),
    current_user: RequestUser = Depends(require_billing_manager),
) -> InvoiceRead:
    now = _now()
    invoice = _run_billing(
        db,
        lambda: generate_custom_invoice(
            db,
            client_id=request_in.client_id,
            from_date=request_in.from_date,
            to_date=request_in.to_date,
            now=now,
            actor_user_id=current_user.id,
        ),
    )
    db.refresh(invoice)
    return _invoice_to_read(invoice, now.date())


@router.get("/{invoice_id}", response_model=InvoiceRead)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: RequestUser = Depends(get_current_user),
) -> InvoiceRead:
    invoice = _get_invoice_or_404(db, invoice_id)
    _ensure_invoice_access(db, invoice, current_user)
    return _invoice_to_read(invoice, _now().date())


@router.put("/{invoice_id}/status", response_model=InvoiceRead)
def update_invoice_status(
    invoice_id: int,
    status_in: InvoiceStatusUpdate,
    db: Session = Depends(get_db),
    current_user: RequestUser = Depends(require_billing_manager),
) -> InvoiceRead:
    now = _now()
    invoice = _get_invoice_or_404(db, invoice_id)
    override_status(db, invoice, status_in.status, now=now, actor_user_id=current_user.id)
    db.commit()
    db.refresh(invoice)
    return _invoice_to_read(invoice, now.date())


@router.get("/{invoice_id}/download")
def download_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: RequestUser = Depends(get_current_user),
) -> Response:
    invoice = _get_invoice_or_404(db, invoice_id)
    _ensure_invoice_access(db, invoice, current_user)

    mark_sent(db, invoice, now=_now(), actor_user_id=current_user.id)
    pdf_bytes = render_invoice_pdf(invoice)
    db.commit()

    filename = f"{safe_filename(invoice.invoice_number)}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{invoice_id}", response_model=InvoiceDeleteResult)
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    _current_user: RequestUser = Depends(require_billing_manager),
) -> InvoiceDeleteResult:
    unlinked = _run_billing(db, lambda: delete_invoice_record(db, invoice_id))
    return InvoiceDeleteResult(message="Invoice deleted", unlinked_task_ids=unlinked)
