"""
Payment recording and invoice balance reconciliation.

Every payment mutation (create, update, delete) adjusts the parent
invoice's paid amount, remaining balance and status in the same
transaction. The invoice row is read with SELECT ... FOR UPDATE and
carries a version counter, so two concurrent payments against the
same invoice can never overwrite each other's balance update.

Status rules after each mutation:
- remaining_balance <= 0  -> PAID, paid_date = payment date
- paid_amount > 0         -> PARTIALLY_PAID
- otherwise               -> ISSUED
Verified payments are immutable.
"""
import calendar
import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.models.invoice import Invoice, InvoiceStatus
from rentals.models.payment import Payment, PaymentMethod


logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

SORT_COLUMNS = {
    "payment_date": Payment.payment_date,
    "amount": Payment.amount,
    "method": Payment.method,
    "recorded_at": Payment.recorded_at,
}


class PaymentError(Exception):
    """Raised when a payment would break invoice reconciliation rules."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


def apply_payment_delta(invoice: Invoice, delta: Decimal, payment_date: Optional[date]) -> None:
    """Move `delta` into the invoice's paid amount and recompute balance and status."""
    invoice.paid_amount = (invoice.paid_amount or Decimal("0")) + delta
    invoice.remaining_balance = invoice.total_amount - invoice.paid_amount

    if invoice.remaining_balance <= 0:
        invoice.status = InvoiceStatus.PAID.value
        invoice.paid_date = payment_date
    elif invoice.paid_amount > 0:
        invoice.status = InvoiceStatus.PARTIALLY_PAID.value
        invoice.paid_date = None
    else:
        invoice.status = InvoiceStatus.ISSUED.value
        invoice.paid_date = None


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TWO_PLACES, ROUND_HALF_UP)


class PaymentService:
    """Service for payments and the invoice balances they settle."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== QUERIES ====================

    def _base_query(self):
        return select(Payment).options(
            selectinload(Payment.invoice).selectinload(Invoice.tenant)
        )

    async def get_payment_by_id(self, payment_id: uuid.UUID) -> Optional[Payment]:
        stmt = (
            self._base_query()
            .where(Payment.id == payment_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_payments(
        self,
        invoice_id: Optional[uuid.UUID] = None,
        tenant_id: Optional[uuid.UUID] = None,
        method: Optional[PaymentMethod] = None,
        is_verified: Optional[bool] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        sort_by: str = "payment_date",
        sort_desc: bool = True,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Payment], int]:
        filters = []
        if invoice_id:
            filters.append(Payment.invoice_id == invoice_id)
        if tenant_id:
            filters.append(Payment.invoice_id.in_(
                select(Invoice.id).where(Invoice.tenant_id == tenant_id)
            ))
        if method:
            filters.append(Payment.method == method.value)
        if is_verified is not None:
            filters.append(Payment.is_verified == is_verified)
        if start_date:
            filters.append(Payment.payment_date >= start_date)
        if end_date:
            filters.append(Payment.payment_date <= end_date)
        if min_amount is not None:
            filters.append(Payment.amount >= min_amount)
        if max_amount is not None:
            filters.append(Payment.amount <= max_amount)

        sort_column = SORT_COLUMNS.get(sort_by, Payment.payment_date)
        stmt = self._base_query().where(*filters).order_by(
            sort_column.desc() if sort_desc else sort_column.asc(),
            Payment.recorded_at.desc(),
        )

        total = (await self.db.execute(select(func.count(Payment.id)).where(*filters))).scalar()
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def get_payments_by_invoice(self, invoice_id: uuid.UUID) -> List[Payment]:
        stmt = (
            self._base_query()
            .where(Payment.invoice_id == invoice_id)
            .order_by(Payment.payment_date.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_payments_by_tenant(self, tenant_id: uuid.UUID) -> List[Payment]:
        stmt = (
            self._base_query()
            .join(Invoice, Invoice.id == Payment.invoice_id)
            .where(Invoice.tenant_id == tenant_id)
            .order_by(Payment.payment_date.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def _lock_invoice(self, invoice_id: uuid.UUID) -> Optional[Invoice]:
        """Load an invoice with a row lock, discarding any stale copy in the session."""
        stmt = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    # ==================== MUTATIONS ====================

    async def create_payment(
        self,
        invoice_id: uuid.UUID,
        amount: Decimal,
        method: PaymentMethod,
        payment_date: date,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
        recorded_by_id: Optional[uuid.UUID] = None
    ) -> Payment:
        """Record an unverified payment and apply it to the invoice."""
        amount = _money(amount)
        if amount <= 0:
            raise PaymentError("Payment amount must be greater than zero")

        invoice = await self._lock_invoice(invoice_id)
        if invoice is None:
            raise PaymentError("Invoice not found")

        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise PaymentError("Cannot record a payment for a cancelled invoice")

        if amount > invoice.remaining_balance:
            logger.warning(
                f"Rejected payment of {amount} on {invoice.invoice_number}: "
                f"remaining balance is {invoice.remaining_balance}"
            )
            raise PaymentError("Payment amount cannot exceed remaining balance")

        payment = Payment(
            invoice_id=invoice.id,
            amount=amount,
            method=method.value,
            payment_date=payment_date,
            reference_number=reference_number,
            notes=notes,
            recorded_by_id=recorded_by_id,
            is_verified=False,
        )
        self.db.add(payment)
        apply_payment_delta(invoice, amount, payment_date)

        await self.db.commit()

        logger.info(
            f"Payment {payment.id} of {amount} recorded for {invoice.invoice_number}; "
            f"status {invoice.status}, remaining {invoice.remaining_balance}"
        )
        return await self.get_payment_by_id(payment.id)

    async def update_payment(self, payment_id: uuid.UUID, data: dict) -> Optional[Payment]:
        """Change an unverified payment, re-applying the amount difference to its invoice."""
        payment = await self.get_payment_by_id(payment_id)
        if payment is None:
            return None

        if payment.is_verified:
            raise PaymentError("Cannot update a verified payment")

        invoice = await self._lock_invoice(payment.invoice_id)
        old_amount = payment.amount
        new_amount = _money(data["amount"]) if data.get("amount") is not None else old_amount

        remaining_after_reversal = invoice.remaining_balance + old_amount
        if new_amount > remaining_after_reversal:
            raise PaymentError("Updated payment amount exceeds available balance")

        payment.amount = new_amount
        if data.get("method") is not None:
            payment.method = PaymentMethod(data["method"]).value
        for key in ("payment_date", "reference_number", "notes"):
            if data.get(key) is not None:
                setattr(payment, key, data[key])

        apply_payment_delta(invoice, new_amount - old_amount, payment.payment_date)

        await self.db.commit()

        logger.info(
            f"Payment {payment.id} updated {old_amount} -> {new_amount}; "
            f"{invoice.invoice_number} now {invoice.status}"
        )
        return await self.get_payment_by_id(payment_id)

    async def delete_payment(self, payment_id: uuid.UUID) -> bool:
        """Remove an unverified payment and reverse it from the invoice."""
        payment = await self.get_payment_by_id(payment_id)
        if payment is None:
            return False

        if payment.is_verified:
            raise PaymentError("Cannot delete a verified payment")

        invoice = await self._lock_invoice(payment.invoice_id)
        apply_payment_delta(invoice, -payment.amount, None)

        await self.db.delete(payment)
        await self.db.commit()

        logger.info(
            f"Payment {payment_id} of {payment.amount} deleted; "
            f"{invoice.invoice_number} now {invoice.status}"
        )
        return True

    async def verify_payment(self, payment_id: uuid.UUID, is_verified: bool = True) -> Optional[Payment]:
        payment = await self.get_payment_by_id(payment_id)
        if payment is None:
            return None

        payment.is_verified = is_verified
        await self.db.commit()

        logger.info(f"Payment {payment_id} {'verified' if is_verified else 'unverified'}")
        return await self.get_payment_by_id(payment_id)

    # ==================== STATISTICS ====================

    async def get_statistics(self, today: Optional[date] = None) -> Dict:
        today = today or date.today()
        this_month = today.replace(day=1)
        last_month = (this_month - timedelta(days=1)).replace(day=1)

        payments = (await self.db.execute(select(Payment))).scalars().all()

        by_method: Dict[str, Dict] = {}
        stats = {
            "total_payments": len(payments),
            "total_amount": Decimal("0"),
            "verified_payments": 0,
            "unverified_payments": 0,
            "this_month_count": 0,
            "this_month_amount": Decimal("0"),
            "last_month_count": 0,
            "last_month_amount": Decimal("0"),
        }
        for payment in payments:
            stats["total_amount"] += payment.amount
            if payment.is_verified:
                stats["verified_payments"] += 1
            else:
                stats["unverified_payments"] += 1

            month_start = payment.payment_date.replace(day=1)
            if month_start == this_month:
                stats["this_month_count"] += 1
                stats["this_month_amount"] += payment.amount
            elif month_start == last_month:
                stats["last_month_count"] += 1
                stats["last_month_amount"] += payment.amount

            bucket = by_method.setdefault(payment.method, {"method": payment.method, "count": 0, "amount": Decimal("0")})
            bucket["count"] += 1
            bucket["amount"] += payment.amount

        for key in ("total_amount", "this_month_amount", "last_month_amount"):
            stats[key] = float(stats[key])
        stats["by_method"] = [
            {"method": b["method"], "count": b["count"], "amount": float(b["amount"])}
            for b in sorted(by_method.values(), key=lambda b: b["amount"], reverse=True)
        ]
        return stats

    async def get_monthly_summary(self, year: int) -> Dict:
        stmt = select(Payment).where(
            Payment.payment_date >= date(year, 1, 1),
            Payment.payment_date <= date(year, 12, 31),
        )
        payments = (await self.db.execute(stmt)).scalars().all()

        months = {
            m: {
                "month": m,
                "month_name": calendar.month_name[m],
                "count": 0,
                "amount": Decimal("0"),
                "verified_count": 0,
                "unverified_count": 0,
            }
            for m in range(1, 13)
        }
        by_method: Dict[str, Decimal] = {}
        for payment in payments:
            month = months[payment.payment_date.month]
            month["count"] += 1
            month["amount"] += payment.amount
            if payment.is_verified:
                month["verified_count"] += 1
            else:
                month["unverified_count"] += 1
            by_method[payment.method] = by_method.get(payment.method, Decimal("0")) + payment.amount

        month_list = []
        for m in range(1, 13):
            entry = months[m]
            entry["amount"] = float(entry["amount"])
            month_list.append(entry)

        return {
            "year": year,
            "months": month_list,
            "total_count": len(payments),
            "total_amount": float(sum((p.amount for p in payments), Decimal("0"))),
            "by_method": {k: float(v) for k, v in by_method.items()},
        }
