import uuid
from datetime import datetime, date, timezone
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Text, Numeric, Date
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentals.database import Base
from rentals.db_types import UUIDType

if TYPE_CHECKING:
    from rentals.models.room import Room
    from rentals.models.invoice import Invoice


class Tenant(Base):
    """
    A person renting (or waiting to rent) a room.
    Contract dates and rent are set when a room is assigned.
    """
    __tablename__ = "tenants"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    identification_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    emergency_contact_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    emergency_contact_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Room assignment
    room_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("rooms.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    contract_start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    contract_end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    security_deposit: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    monthly_rent: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        default=Decimal("0"),
        comment="Agreed rent; may differ from the room's list rent"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

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

    room: Mapped[Optional["Room"]] = relationship("Room", back_populates="tenants")
    invoices: Mapped[List["Invoice"]] = relationship("Invoice", back_populates="tenant")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def has_active_contract(self) -> bool:
        """True when today falls inside the contract period."""
        if self.contract_start_date is None or self.contract_end_date is None:
            return False
        return self.contract_start_date <= date.today() <= self.contract_end_date

    def __repr__(self) -> str:
        return f"<Tenant(email='{self.email}', name='{self.full_name}')>"
