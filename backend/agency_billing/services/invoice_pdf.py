from __future__ import annotations

import logging
from decimal import Decimal
from io import BytesIO
from pathlib import Path

from num2words import num2words
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from agency_billing.core.settings import settings
from agency_billing.models.client import Client
from agency_billing.models.enums import InvoiceStatus
from agency_billing.models.invoice import Invoice


logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")
ROW_HEIGHT = 8 * mm
BOTTOM_MARGIN = 30 * mm


def _q(value: Decimal) -> Decimal:
    return Decimal(value or 0).quantize(TWOPLACES)


def amount_in_words(amount: Decimal) -> str:
    words = num2words(int(Decimal(amount or 0)), lang="en_IN")
    return f"{words[:1].upper()}{words[1:]} Only"


def safe_filename(name: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch in {"-", "_", "."} else "-" for ch in name)
    return cleaned.strip("-") or "invoice"


def _draw_header(c: canvas.Canvas, invoice: Invoice) -> float:
    width, height = A4
    left = 20 * mm
    right = width - 20 * mm
    top = height - 20 * mm

    c.setFont("Helvetica-Bold", 16)
    c.drawString(left, top, settings.company_name)
    c.setFont("Helvetica", 9)
    c.drawString(left, top - 6 * mm, settings.company_address)
    c.drawString(left, top - 11 * mm, settings.company_email)

    c.setFont("Helvetica-Bold", 20)
    c.drawRightString(right, top, "TAX INVOICE")

    y = top - 24 * mm
    meta = [
        ("Invoice#", invoice.invoice_number),
        ("Invoice Date", invoice.created_at.strftime("%d/%m/%Y") if invoice.created_at else "-"),
        ("Terms", "Due on Receipt"),
        ("Due Date", invoice.due_date.strftime("%d/%m/%Y") if invoice.due_date else "-"),
    ]
    for label, value in meta:
        c.setFont("Helvetica-Bold", 10)
        c.drawString(left, y, label)
        c.drawString(left + 35 * mm, y, f": {value}")
        y -= 5 * mm
    return y - 4 * mm


def _draw_bill_to(c: canvas.Canvas, client: Client, y: float) -> float:
    left = 20 * mm
    c.setFont("Helvetica-Bold", 10)
    c.drawString(left, y, "Bill To")
    y -= 6 * mm
    c.setFont("Helvetica-Bold", 12)
    c.drawString(left, y, client.name)
    y -= 5 * mm
    c.setFont("Helvetica", 10)
    for line in (client.address or client.email, client.phone):
        if line:
            c.drawString(left, y, line[:110])
            y -= 5 * mm
    return y - 4 * mm


def _draw_items_table(c: canvas.Canvas, invoice: Invoice, start_y: float) -> float:
    width, height = A4
    left = 20 * mm
    right = width - 20 * mm
    col_desc = left + 12 * mm
    col_qty = right - 65 * mm
    col_rate = right - 35 * mm

    def header(y_pos: float) -> float:
        c.setLineWidth(1)
        c.line(left, y_pos, right, y_pos)
        c.line(left, y_pos - ROW_HEIGHT, right, y_pos - ROW_HEIGHT)
        c.setFont("Helvetica-Bold", 9)
        c.drawString(left + 2 * mm, y_pos - 5.5 * mm, "#")
        c.drawString(col_desc, y_pos - 5.5 * mm, "Item & Description")
        c.drawRightString(col_qty + 10 * mm, y_pos - 5.5 * mm, "Qty")
        c.drawRightString(col_rate + 20 * mm, y_pos - 5.5 * mm, "Rate")
        c.drawRightString(right - 2 * mm, y_pos - 5.5 * mm, "Amount")
        return y_pos - ROW_HEIGHT

    y = header(start_y)
    c.setFont("Helvetica", 9)
    for idx, item in enumerate(invoice.items, start=1):
        if y - ROW_HEIGHT < BOTTOM_MARGIN:
            c.showPage()
            y = header(height - 20 * mm)
            c.setFont("Helvetica", 9)
        c.drawString(left + 2 * mm, y - 5.5 * mm, str(idx))
        c.drawString(col_desc, y - 5.5 * mm, item.description[:70])
        c.drawRightString(col_qty + 10 * mm, y - 5.5 * mm, str(item.quantity))
        c.drawRightString(col_rate + 20 * mm, y - 5.5 * mm, f"{_q(item.unit_price):,.2f}")
        c.drawRightString(right - 2 * mm, y - 5.5 * mm, f"{_q(item.amount):,.2f}")
        y -= ROW_HEIGHT
        c.setLineWidth(0.3)
        c.line(left, y, right, y)
    return y - 6 * mm


def _draw_totals(c: canvas.Canvas, invoice: Invoice, y: float) -> float:
    width, height = A4
    left = 20 * mm
    right = width - 20 * mm
    if y - 50 * mm < BOTTOM_MARGIN:
        c.showPage()
        y = height - 20 * mm

    rows = [("Sub Total", f"{_q(invoice.subtotal):,.2f}")]
    if invoice.tax_amount:
        rows.append((f"Tax ({_q(invoice.tax_rate)}%)", f"{_q(invoice.tax_amount):,.2f}"))
    if invoice.discount:
        rows.append(("Discount", f"-{_q(invoice.discount):,.2f}"))
    rows.append(("Total", f"{settings.currency_label} {_q(invoice.total):,.2f}"))
    if invoice.status != InvoiceStatus.PAID:
        rows.append(("Balance Due", f"{settings.currency_label} {_q(invoice.total):,.2f}"))

    c.setFont("Helvetica-Oblique", 10)
    c.drawString(left, y, "Total In Words")
    c.setFont("Helvetica-BoldOblique", 10)
    c.drawString(left, y - 5 * mm, amount_in_words(invoice.total))

    c.setFont("Helvetica-Bold", 10)
    row_y = y
    for label, value in rows:
        c.drawRightString(right - 40 * mm, row_y, label)
        c.drawRightString(right, row_y, value)
        row_y -= 6 * mm

    y = min(row_y, y - 12 * mm)
    if invoice.notes:
        c.setFont("Helvetica", 9)
        c.drawString(left, y, "Notes:")
        c.drawString(left, y - 5 * mm, invoice.notes[:110])
        y -= 12 * mm
    c.setFont("Helvetica", 10)
    c.drawString(left, y, "Thanks for your business.")
    return y - 10 * mm


def _draw_signature(c: canvas.Canvas, y: float) -> None:
    width, _height = A4
    x = width - 70 * mm
    signature_height = 0.0
    if settings.signature_image_path:
        path = Path(settings.signature_image_path).expanduser()
        if path.is_file():
            c.drawImage(str(path), x, y - 20 * mm, width=50 * mm, height=20 * mm, preserveAspectRatio=True, mask="auto")
            signature_height = 20 * mm
        else:
            logger.warning("signature_image_missing", extra={"path": str(path)})
    c.setFont("Helvetica", 9)
    c.drawString(x, y - signature_height - 5 * mm, "Authorized Signature")


def render_invoice_pdf(invoice: Invoice) -> bytes:
    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    c.setTitle(invoice.invoice_number)

    y = _draw_header(c, invoice)
    y = _draw_bill_to(c, invoice.client, y)
    y = _draw_items_table(c, invoice, y)
    y = _draw_totals(c, invoice, y)
    _draw_signature(c, y)

    c.showPage()
    c.save()
    return buffer.getvalue()
