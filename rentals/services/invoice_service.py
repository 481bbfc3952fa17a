from typing import List, Optional, Tuple, Dict
from datetime import date, timedelta
from decimal import Decimal
import logging
import uuid

from sqlalchemy import select, func, or_, update
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.config import settings
from rentals.models.invoice import Invoice, InvoiceItem, InvoiceStatus, OPEN_STATUSES
from rentals.models.item import Item
from rentals.models.payment import Payment, PaymentMethod
from rentals.models.room import Room
from rentals.models.tenant import Tenant
from rentals.services.payment_service import PaymentService


logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "invoice_number": Invoice.invoice_number,
    "total_amount": Invoice.total_amount,
    "due_date": Invoice.due_date,
    "status": Invoice.status,
    "issue_date": Invoice.issue_date,
}

# Statuses that may be set directly; the rest follow from payments
MANUAL_STATUSES = {
    InvoiceStatus.DRAFT.value,
    InvoiceStatus.ISSUED.value,
    InvoiceStatus.UNPAID.value,
    InvoiceStatus.OVERDUE.value,
    InvoiceStatus.CANCELLED.value,
}


class InvoiceError(Exception):
    """Raised when an invoice operation violates a business rule."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


def first_of_month(value: date) -> date:
    return value.replace(day=1)


class InvoiceService:
    """Service for rent invoices: creation, monthly generation and lifecycle."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== QUERIES ====================

    def _base_query(self):
        return select(Invoice).options(
            selectinload(Invoice.tenant),
            selectinload(Invoice.room),
            selectinload(Invoice.items),
        )

    async def get_invoice_by_id(self, invoice_id: uuid.UUID) -> Optional[Invoice]:
        stmt = (
            self._base_query()
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_invoice_with_payments(self, invoice_id: uuid.UUID) -> Optional[Invoice]:
        stmt = (
            self._base_query()
            .options(selectinload(Invoice.payments))
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_invoices(
        self,
        tenant_id: Optional[uuid.UUID] = None,
        room_id: Optional[uuid.UUID] = None,
        status: Optional[InvoiceStatus] = None,
        billing_period: Optional[date] = None,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        search: Optional[str] = None,
        is_overdue: Optional[bool] = None,
        sort_by: str = "issue_date",
        sort_desc: bool = True,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Invoice], int]:
        """Get invoices with filters. Search matches number, tenant name or room number."""
        filters = []
        if tenant_id:
            filters.append(Invoice.tenant_id == tenant_id)
        if room_id:
            filters.append(Invoice.room_id == room_id)
        if status:
            filters.append(Invoice.status == status.value)
        if billing_period:
            filters.append(Invoice.billing_period == first_of_month(billing_period))
        if due_from:
            filters.append(Invoice.due_date >= due_from)
        if due_to:
            filters.append(Invoice.due_date <= due_to)
        if search:
            term = f"%{search.lower()}%"
            filters.append(or_(
                func.lower(Invoice.invoice_number).like(term),
                Invoice.tenant_id.in_(select(Tenant.id).where(or_(
                    func.lower(Tenant.first_name).like(term),
                    func.lower(Tenant.last_name).like(term),
                ))),
                Invoice.room_id.in_(select(Room.id).where(func.lower(Room.room_number).like(term))),
            ))
        if is_overdue is True:
            filters.extend(self._overdue_filters())
        elif is_overdue is False:
            filters.append(or_(
                Invoice.status.not_in(OPEN_STATUSES),
                Invoice.remaining_balance <= 0,
                Invoice.due_date >= date.today(),
            ))

        sort_column = SORT_COLUMNS.get(sort_by, Invoice.issue_date)
        stmt = self._base_query().where(*filters).order_by(
            sort_column.desc() if sort_desc else sort_column.asc(),
            Invoice.invoice_number.desc(),
        )

        total = (await self.db.execute(select(func.count(Invoice.id)).where(*filters))).scalar()
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    def _overdue_filters(self, today: Optional[date] = None) -> list:
        return [
            Invoice.status.in_(OPEN_STATUSES),
            Invoice.remaining_balance > 0,
            Invoice.due_date < (today or date.today()),
        ]

    async def get_invoices_by_tenant(self, tenant_id: uuid.UUID) -> List[Invoice]:
        stmt = (
            self._base_query()
            .where(Invoice.tenant_id == tenant_id)
            .order_by(Invoice.billing_period.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_overdue_invoices(self) -> List[Invoice]:
        stmt = self._base_query().where(*self._overdue_filters()).order_by(Invoice.due_date)
        return list((await self.db.execute(stmt)).scalars().all())

    async def _invoice_exists_for_period(self, tenant_id: uuid.UUID, billing_period: date) -> bool:
        stmt = select(func.count(Invoice.id)).where(
            Invoice.tenant_id == tenant_id,
            Invoice.billing_period == billing_period,
            Invoice.status != InvoiceStatus.CANCELLED.value,
        )
        return (await self.db.execute(stmt)).scalar() > 0

    async def _next_invoice_number(self, issue_date: date) -> str:
        """INV-YYYYMM-NNNN, numbered per calendar month of issue."""
        prefix = f"INV-{issue_date:%Y%m}-"
        stmt = select(func.max(Invoice.invoice_number)).where(Invoice.invoice_number.like(f"{prefix}%"))
        last = (await self.db.execute(stmt)).scalar()
        sequence = int(last.rsplit("-", 1)[1]) + 1 if last else 1
        return f"{prefix}{sequence:04d}"

    # ==================== MUTATIONS ====================

    async def _build_lines(self, lines: List[dict]) -> List[InvoiceItem]:
        """Turn line payloads into InvoiceItems, filling blanks from the catalogue."""
        built = []
        for number, line in enumerate(lines, start=1):
            catalogue_item = None
            if line.get("item_id"):
                catalogue_item = (await self.db.execute(
                    select(Item).where(Item.id == line["item_id"])
                )).scalar_one_or_none()
                if catalogue_item is None:
                    raise InvoiceError(f"Item {line['item_id']} not found")
                if not catalogue_item.is_active:
                    raise InvoiceError(f"Item {catalogue_item.item_code} is inactive")

            invoice_item = InvoiceItem(
                item_id=catalogue_item.id if catalogue_item else None,
                line_number=number,
                description=line.get("description") or catalogue_item.name,
                quantity=line.get("quantity") or Decimal("1"),
                unit_of_measure=line.get("unit_of_measure") or (catalogue_item.unit_of_measure if catalogue_item else "unit"),
                unit_price=line["unit_price"] if line.get("unit_price") is not None else catalogue_item.unit_price,
                tax_percent=line["tax_percent"] if line.get("tax_percent") is not None else (
                    catalogue_item.tax_percent if catalogue_item else Decimal("0")
                ),
            )
            invoice_item.calculate_totals()
            built.append(invoice_item)
        return built

    async def create_invoice(self, data: dict) -> Invoice:
        """
        Create an ISSUED invoice for a tenant's current room.

        Rent is copied from the room. Itemised lines, when given, are
        added on top of additional_charges.
        """
        tenant = (await self.db.execute(
            select(Tenant).options(selectinload(Tenant.room)).where(Tenant.id == data["tenant_id"])
        )).scalar_one_or_none()
        if tenant is None:
            raise InvoiceError("Tenant not found")
        if tenant.room is None:
            raise InvoiceError("Tenant is not assigned to any room")

        lines = await self._build_lines(data.get("items") or [])
        line_charges = sum((line.line_total_with_tax for line in lines), Decimal("0"))

        issue_date = data.get("issue_date") or date.today()
        invoice = Invoice(
            invoice_number=await self._next_invoice_number(issue_date),
            tenant_id=tenant.id,
            room_id=tenant.room.id,
            monthly_rent=tenant.room.monthly_rent,
            additional_charges=(data.get("additional_charges") or Decimal("0")) + line_charges,
            additional_charges_description=data.get("additional_charges_description"),
            discount=data.get("discount") or Decimal("0"),
            paid_amount=Decimal("0"),
            status=InvoiceStatus.ISSUED.value,
            billing_period=first_of_month(data["billing_period"]),
            issue_date=issue_date,
            due_date=data["due_date"],
            notes=data.get("notes"),
            items=lines,
        )
        invoice.recalculate_totals()

        if invoice.total_amount < 0:
            raise InvoiceError("Discount cannot exceed rent plus charges")

        self.db.add(invoice)
        await self.db.commit()

        logger.info(f"Invoice {invoice.invoice_number} created for {tenant.full_name}: {invoice.total_amount}")
        return await self.get_invoice_by_id(invoice.id)

    async def update_invoice(self, invoice_id: uuid.UUID, data: dict) -> Optional[Invoice]:
        invoice = await self.get_invoice_by_id(invoice_id)
        if invoice is None:
            return None

        if invoice.status == InvoiceStatus.PAID.value:
            raise InvoiceError("Cannot update a paid invoice")

        new_status = data.pop("status", None)
        if new_status is not None:
            new_status = InvoiceStatus(new_status).value
            if new_status not in MANUAL_STATUSES:
                raise InvoiceError("Paid and partially paid statuses follow from recorded payments")
            if new_status == InvoiceStatus.CANCELLED.value and invoice.paid_amount > 0:
                raise InvoiceError("Cannot cancel an invoice with recorded payments")
            if invoice.paid_amount > 0 and new_status != InvoiceStatus.OVERDUE.value:
                raise InvoiceError("Only OVERDUE can be set on an invoice with recorded payments")

        for key, value in data.items():
            if value is not None:
                setattr(invoice, key, value)
        invoice.recalculate_totals()

        if invoice.total_amount < invoice.paid_amount:
            raise InvoiceError("Invoice total cannot be less than the amount already paid")

        if new_status is not None:
            invoice.status = new_status
        elif invoice.paid_amount > 0:
            if invoice.remaining_balance <= 0:
                invoice.status = InvoiceStatus.PAID.value
                invoice.paid_date = date.today()
            else:
                invoice.status = InvoiceStatus.PARTIALLY_PAID.value

        await self.db.commit()

        logger.info(f"Invoice {invoice.invoice_number} updated")
        return await self.get_invoice_by_id(invoice_id)

    async def delete_invoice(self, invoice_id: uuid.UUID) -> bool:
        invoice = await self.get_invoice_by_id(invoice_id)
        if invoice is None:
            return False

        payment_count = (await self.db.execute(
            select(func.count(Payment.id)).where(Payment.invoice_id == invoice_id)
        )).scalar()
        if payment_count > 0:
            raise InvoiceError("Cannot delete an invoice with recorded payments")

        await self.db.delete(invoice)
        await self.db.commit()

        logger.info(f"Invoice {invoice.invoice_number} deleted")
        return True

    async def generate_monthly_invoices(self, billing_period: date) -> List[Invoice]:
        """
        Bill every active tenant with a room for the given month.

        Tenants already billed for that month are skipped.
        """
        period = first_of_month(billing_period)
        issue_date = date.today()
        due_date = issue_date + timedelta(days=settings.INVOICE_DUE_DAYS)

        tenants = (await self.db.execute(
            select(Tenant)
            .where(Tenant.is_active == True, Tenant.room_id.is_not(None))
            .order_by(Tenant.last_name)
        )).scalars().all()

        created_ids = []
        for tenant in tenants:
            if await self._invoice_exists_for_period(tenant.id, period):
                logger.debug(f"Skipping {tenant.email}: already billed for {period:%B %Y}")
                continue

            invoice = await self.create_invoice({
                "tenant_id": tenant.id,
                "billing_period": period,
                "issue_date": issue_date,
                "due_date": due_date,
                "notes": f"Monthly rent for {period:%B %Y}",
            })
            created_ids.append(invoice.id)

        logger.info(f"Generated {len(created_ids)} invoices for {period:%B %Y} ({len(tenants)} eligible tenants)")
        return [await self.get_invoice_by_id(invoice_id) for invoice_id in created_ids]

    async def mark_as_paid(
        self,
        invoice_id: uuid.UUID,
        method: PaymentMethod = PaymentMethod.CASH,
        recorded_by_id: Optional[uuid.UUID] = None
    ) -> Optional[Invoice]:
        """Settle the remaining balance with a single payment dated today."""
        invoice = await self.get_invoice_by_id(invoice_id)
        if invoice is None:
            return None

        if invoice.status == InvoiceStatus.PAID.value or invoice.remaining_balance <= 0:
            raise InvoiceError("Invoice is already paid")

        await PaymentService(self.db).create_payment(
            invoice_id=invoice.id,
            amount=invoice.remaining_balance,
            method=method,
            payment_date=date.today(),
            notes="Settled via mark as paid",
            recorded_by_id=recorded_by_id,
        )
        return await self.get_invoice_by_id(invoice_id)

    async def mark_overdue_invoices(self, today: Optional[date] = None) -> int:
        """Flip open, past-due invoices with a balance to OVERDUE."""
        stmt = (
            update(Invoice)
            .where(
                *self._overdue_filters(today),
                Invoice.status != InvoiceStatus.OVERDUE.value,
            )
            .values(status=InvoiceStatus.OVERDUE.value, version=Invoice.version + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        if result.rowcount:
            logger.info(f"Marked {result.rowcount} invoices as overdue")
        return result.rowcount

    async def get_invoices_due_soon(self, days: Optional[int] = None) -> List[Invoice]:
        days = settings.REMINDER_DAYS_BEFORE_DUE if days is None else days
        today = date.today()
        stmt = (
            self._base_query()
            .where(
                Invoice.status.in_(OPEN_STATUSES),
                Invoice.remaining_balance > 0,
                Invoice.due_date >= today,
                Invoice.due_date <= today + timedelta(days=days),
            )
            .order_by(Invoice.due_date)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def send_payment_reminders(self) -> Dict:
        """
        Log a reminder for each invoice due within the reminder window.

        Delivery channels (e-mail/SMS) are not wired up; the log line is the reminder.
        """
        invoices = await self.get_invoices_due_soon()
        for invoice in invoices:
            logger.info(
                f"Payment reminder: {invoice.invoice_number} for {invoice.tenant.full_name} "
                f"<{invoice.tenant.email}> due {invoice.due_date}, balance {invoice.remaining_balance}"
            )
        return {
            "reminders_sent": len(invoices),
            "invoice_numbers": [invoice.invoice_number for invoice in invoices],
        }

    async def get_statistics(self) -> Dict:
        invoices = (await self.db.execute(select(Invoice))).scalars().all()

        by_status = {status.value: 0 for status in InvoiceStatus}
        amount_by_status = {status.value: Decimal("0") for status in InvoiceStatus}
        billed = collected = outstanding = overdue_amount = Decimal("0")
        overdue_count = 0

        for invoice in invoices:
            by_status[invoice.status] = by_status.get(invoice.status, 0) + 1
            amount_by_status[invoice.status] = amount_by_status.get(invoice.status, Decimal("0")) + invoice.total_amount
            if invoice.status == InvoiceStatus.CANCELLED.value:
                continue
            billed += invoice.total_amount
            collected += invoice.paid_amount
            outstanding += invoice.remaining_balance
            if invoice.is_overdue:
                overdue_count += 1
                overdue_amount += invoice.remaining_balance

        return {
            "total_invoices": len(invoices),
            "total_billed": float(billed),
            "total_collected": float(collected),
            "total_outstanding": float(outstanding),
            "overdue_invoices": overdue_count,
            "overdue_amount": float(overdue_amount),
            "invoices_by_status": by_status,
            "amount_by_status": {k: float(v) for k, v in amount_by_status.items()},
            "collection_rate": round(float(collected / billed * 100), 2) if billed else 0.0,
        }
