"""
Invoice PDF rendering.

Draws an A4 page with the reportlab canvas: company header, bill-to block,
invoice details, charge lines, totals, payment history and footer.
"""
from typing import List, Optional, Tuple
from decimal import Decimal
import io
import logging
import uuid

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.config import settings
from rentals.models.invoice import Invoice, InvoiceStatus
from rentals.models.tenant import Tenant


logger = logging.getLogger(__name__)

NAVY = HexColor("#1B2A4A")
SLATE = HexColor("#64748B")
SLATE_PALE = HexColor("#F1F5F9")
GREEN = HexColor("#166534")
ROSE = HexColor("#BE185D")

W, H = A4
MARGIN = 45
CONTENT_W = W - 2 * MARGIN

STATUS_COLORS = {
    InvoiceStatus.PAID.value: GREEN,
    InvoiceStatus.OVERDUE.value: ROSE,
}


def money(amount: Optional[Decimal]) -> str:
    return f"{settings.CURRENCY_SYMBOL}{Decimal(amount or 0):,.2f}"


class InvoicePdf:
    """Single-invoice document drawn top to bottom; a new page starts when space runs out."""

    def __init__(self, invoice: Invoice):
        self.invoice = invoice
        self.buffer = io.BytesIO()
        self.c = canvas.Canvas(self.buffer, pagesize=A4)
        self.c.setTitle(f"Invoice {invoice.invoice_number}")
        self.c.setAuthor(settings.COMPANY_NAME)
        self.page_num = 1
        self.y = H - MARGIN

    def text(self, x: float, y: float, value: str, size: float = 10, bold: bool = False, color=NAVY, align: str = "left"):
        self.c.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        self.c.setFillColor(color)
        if align == "right":
            self.c.drawRightString(x, y, value)
        elif align == "center":
            self.c.drawCentredString(x, y, value)
        else:
            self.c.drawString(x, y, value)

    def rule(self, y: float, color=SLATE, width: float = 0.5):
        self.c.setStrokeColor(color)
        self.c.setLineWidth(width)
        self.c.line(MARGIN, y, W - MARGIN, y)

    def ensure_space(self, needed: float):
        if self.y - needed < MARGIN + 40:
            self.footer()
            self.c.showPage()
            self.page_num += 1
            self.y = H - MARGIN

    # ==================== SECTIONS ====================

    def header(self):
        self.text(MARGIN, self.y - 10, settings.COMPANY_NAME, size=16, bold=True)
        self.text(MARGIN, self.y - 26, settings.COMPANY_ADDRESS, size=9, color=SLATE)
        self.text(MARGIN, self.y - 38, f"{settings.COMPANY_PHONE}  |  {settings.COMPANY_EMAIL}", size=9, color=SLATE)

        self.text(W - MARGIN, self.y - 10, "INVOICE", size=20, bold=True, align="right")
        self.text(
            W - MARGIN, self.y - 28, self.invoice.status.replace("_", " "),
            size=10, bold=True, color=STATUS_COLORS.get(self.invoice.status, SLATE), align="right",
        )
        self.y -= 52
        self.rule(self.y, color=NAVY, width=1.5)
        self.y -= 20

    def parties(self):
        tenant = self.invoice.tenant
        top = self.y
        self.text(MARGIN, top, "BILL TO", size=8, bold=True, color=SLATE)
        lines = [tenant.full_name, tenant.email, tenant.phone_number, f"Room {self.invoice.room.room_number}"]
        for i, line in enumerate(lines):
            self.text(MARGIN, top - 14 - i * 13, line or "", bold=(i == 0))

        details = [
            ("Invoice No.", self.invoice.invoice_number),
            ("Billing period", f"{self.invoice.billing_period:%B %Y}"),
            ("Issue date", f"{self.invoice.issue_date:%Y-%m-%d}"),
            ("Due date", f"{self.invoice.due_date:%Y-%m-%d}"),
        ]
        label_x = W / 2 + 40
        for i, (label, value) in enumerate(details):
            self.text(label_x, top - 14 - i * 13, label, size=9, color=SLATE)
            self.text(W - MARGIN, top - 14 - i * 13, value, size=9, bold=True, align="right")

        self.y = top - 14 - len(lines) * 13 - 16

    def charges(self):
        rows: List[Tuple[str, str, str, str]] = [
            (f"Monthly rent - {self.invoice.billing_period:%B %Y}", "1", money(self.invoice.monthly_rent), money(self.invoice.monthly_rent)),
        ]
        for item in self.invoice.items:
            rows.append((
                item.description,
                f"{item.quantity.normalize():f} {item.unit_of_measure}",
                money(item.unit_price),
                money(item.line_total_with_tax),
            ))
        itemised = sum((item.line_total_with_tax for item in self.invoice.items), Decimal("0"))
        other = (self.invoice.additional_charges or Decimal("0")) - itemised
        if other > 0:
            rows.append((self.invoice.additional_charges_description or "Additional charges", "1", money(other), money(other)))

        columns = [MARGIN + 6, W - MARGIN - 210, W - MARGIN - 100, W - MARGIN - 6]
        self.c.setFillColor(SLATE_PALE)
        self.c.rect(MARGIN, self.y - 6, CONTENT_W, 20, fill=1, stroke=0)
        for x, title, align in zip(columns, ("Description", "Qty", "Unit price", "Amount"), ("left", "right", "right", "right")):
            self.text(x, self.y, title, size=9, bold=True, align=align)
        self.y -= 22

        for description, qty, unit, amount in rows:
            self.ensure_space(16)
            self.text(columns[0], self.y, description[:60], size=9)
            self.text(columns[1], self.y, qty, size=9, align="right")
            self.text(columns[2], self.y, unit, size=9, align="right")
            self.text(columns[3], self.y, amount, size=9, align="right")
            self.y -= 16

        self.rule(self.y + 6)
        self.y -= 10

    def totals(self):
        lines = [("Subtotal", money(self.invoice.monthly_rent + self.invoice.additional_charges))]
        if self.invoice.discount:
            lines.append(("Discount", f"-{money(self.invoice.discount)}"))
        lines += [
            ("Total", money(self.invoice.total_amount)),
            ("Paid", money(self.invoice.paid_amount)),
            ("Balance due", money(self.invoice.remaining_balance)),
        ]
        self.ensure_space(len(lines) * 15 + 10)
        for label, value in lines:
            emphasis = label in ("Total", "Balance due")
            self.text(W - MARGIN - 130, self.y, label, size=10, bold=emphasis, color=NAVY if emphasis else SLATE)
            self.text(W - MARGIN - 6, self.y, value, size=10, bold=emphasis, align="right")
            self.y -= 15
        self.y -= 10

    def payment_history(self):
        if not self.invoice.payments:
            return
        self.ensure_space(40)
        self.text(MARGIN, self.y, "PAYMENT HISTORY", size=8, bold=True, color=SLATE)
        self.y -= 16
        for payment in self.invoice.payments:
            self.ensure_space(14)
            reference = f" ({payment.reference_number})" if payment.reference_number else ""
            self.text(MARGIN + 6, self.y, f"{payment.payment_date:%Y-%m-%d}  {payment.method}{reference}", size=9)
            self.text(W - MARGIN - 6, self.y, money(payment.amount), size=9, align="right")
            self.y -= 14
        self.y -= 6

    def notes(self):
        if not self.invoice.notes:
            return
        self.ensure_space(30)
        self.text(MARGIN, self.y, "NOTES", size=8, bold=True, color=SLATE)
        self.text(MARGIN, self.y - 14, self.invoice.notes[:110], size=9)
        self.y -= 30

    def footer(self):
        self.rule(MARGIN + 20)
        self.text(MARGIN, MARGIN + 6, f"Thank you for your payment. Please pay by {self.invoice.due_date:%Y-%m-%d}.", size=8, color=SLATE)
        self.text(W - MARGIN, MARGIN + 6, f"Page {self.page_num}", size=8, color=SLATE, align="right")

    def render(self) -> bytes:
        self.header()
        self.parties()
        self.charges()
        self.totals()
        self.payment_history()
        self.notes()
        self.footer()
        self.c.save()
        return self.buffer.getvalue()


class PdfService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def generate_invoice_pdf(self, invoice_id: uuid.UUID) -> Optional[bytes]:
        """Render an invoice as PDF bytes; None when the invoice does not exist."""
        stmt = (
            select(Invoice)
            .options(
                selectinload(Invoice.tenant).selectinload(Tenant.room),
                selectinload(Invoice.room),
                selectinload(Invoice.items),
                selectinload(Invoice.payments),
            )
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        invoice = (await self.db.execute(stmt)).scalar_one_or_none()
        if invoice is None:
            return None

        content = InvoicePdf(invoice).render()
        logger.info(f"Rendered PDF for invoice {invoice.invoice_number} ({len(content)} bytes)")
        return content
