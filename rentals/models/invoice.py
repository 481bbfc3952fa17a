"""Rent invoice models.

An invoice bills one tenant for one room and billing period:
- Monthly rent (copied from the room at creation)
- Additional charges, optionally itemised as invoice lines
- Discount
Payments reduce the remaining balance (see PaymentService).
"""
import uuid
from datetime import datetime, date, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Numeric, Date
from sqlalchemy import Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentals.database import Base
from rentals.db_types import UUIDType

if TYPE_CHECKING:
    from rentals.models.tenant import Tenant
    from rentals.models.room import Room
    from rentals.models.payment import Payment
    from rentals.models.item import Item


TWO_PLACES = Decimal("0.01")


class InvoiceStatus(str, Enum):
    """Invoice status enumeration."""
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


# Statuses that still expect money
OPEN_STATUSES = [
    InvoiceStatus.ISSUED.value,
    InvoiceStatus.UNPAID.value,
    InvoiceStatus.PARTIALLY_PAID.value,
    InvoiceStatus.OVERDUE.value,
]


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        Index("ix_invoices_billing_period", "billing_period"),
        Index("ix_invoices_due_date", "due_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="INV-YYYYMM-NNNN"
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    room_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("rooms.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Amounts
    monthly_rent: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    additional_charges: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    additional_charges_description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="monthly_rent + additional_charges - discount"
    )
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    remaining_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="total_amount - paid_amount"
    )

    status: Mapped[str] = mapped_column(
        String(50),
        default=InvoiceStatus.UNPAID.value,
        nullable=False,
        index=True,
        comment="DRAFT, ISSUED, UNPAID, PARTIALLY_PAID, PAID, OVERDUE, CANCELLED"
    )

    # Dates
    billing_period: Mapped[date] = mapped_column(Date, nullable=False, comment="First day of billed month")
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Optimistic lock counter, bumped on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    __mapper_args__ = {"version_id_col": version}

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="invoices")
    room: Mapped["Room"] = relationship("Room", back_populates="invoices")
    payments: Mapped[List["Payment"]] = relationship(
        "Payment",
        back_populates="invoice",
        order_by="Payment.payment_date"
    )
    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.line_number"
    )

    @property
    def is_overdue(self) -> bool:
        return (
            self.status in OPEN_STATUSES
            and self.remaining_balance > 0
            and self.due_date < date.today()
        )

    @property
    def is_partially_paid(self) -> bool:
        return Decimal("0") < self.paid_amount < self.total_amount

    def recalculate_totals(self) -> None:
        """Recompute total and remaining balance from the amount fields."""
        self.total_amount = (
            (self.monthly_rent or Decimal("0"))
            + (self.additional_charges or Decimal("0"))
            - (self.discount or Decimal("0"))
        )
        self.remaining_balance = self.total_amount - (self.paid_amount or Decimal("0"))

    def __repr__(self) -> str:
        return f"<Invoice(number='{self.invoice_number}', status='{self.status}')>"


class InvoiceItem(Base):
    """Itemised additional charge on an invoice."""
    __tablename__ = "invoice_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    item_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("items.id", ondelete="SET NULL"),
        nullable=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("1"))
    unit_of_measure: Mapped[str] = mapped_column(String(20), default="unit")
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    line_total_with_tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")
    item: Mapped[Optional["Item"]] = relationship("Item")

    def calculate_totals(self) -> None:
        quantity = Decimal(self.quantity or 0)
        unit_price = Decimal(self.unit_price or 0)
        tax_percent = Decimal(self.tax_percent or 0)

        self.line_total = (quantity * unit_price).quantize(TWO_PLACES, ROUND_HALF_UP)
        self.tax_amount = (self.line_total * tax_percent / Decimal("100")).quantize(TWO_PLACES, ROUND_HALF_UP)
        self.line_total_with_tax = self.line_total + self.tax_amount
