import uuid
from datetime import datetime, date, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Text, Numeric, Date
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentals.database import Base
from rentals.db_types import UUIDType

if TYPE_CHECKING:
    from rentals.models.invoice import Invoice
    from rentals.models.user import User


class PaymentMethod(str, Enum):
    """How the money was received."""
    CASH = "CASH"
    CHECK = "CHECK"
    BANK_TRANSFER = "BANK_TRANSFER"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    DIGITAL_WALLET = "DIGITAL_WALLET"
    MONEY_ORDER = "MONEY_ORDER"
    OTHER = "OTHER"


class Payment(Base):
    """
    Money received against an invoice.
    Verified payments are locked against update and delete.
    """
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("invoices.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    method: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=PaymentMethod.CASH.value,
        comment="CASH, CHECK, BANK_TRANSFER, CREDIT_CARD, DEBIT_CARD, DIGITAL_WALLET, MONEY_ORDER, OTHER"
    )
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    recorded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    recorded_at: Mapped[datetime] = mapped_column(
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

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="payments")
    recorded_by: Mapped[Optional["User"]] = relationship("User")

    def __repr__(self) -> str:
        return f"<Payment(amount={self.amount}, method='{self.method}', verified={self.is_verified})>"
