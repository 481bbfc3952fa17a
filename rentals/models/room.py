"""Room model: the rentable unit."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, Integer, Text, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentals.database import Base
from rentals.db_types import UUIDType

if TYPE_CHECKING:
    from rentals.models.tenant import Tenant
    from rentals.models.invoice import Invoice


class RoomType(str, Enum):
    """Room type enumeration."""
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"
    TRIPLE = "TRIPLE"
    SUITE = "SUITE"
    STUDIO = "STUDIO"
    APARTMENT = "APARTMENT"


class RoomStatus(str, Enum):
    """Room occupancy status."""
    VACANT = "VACANT"
    RENTED = "RENTED"
    MAINTENANCE = "MAINTENANCE"
    RESERVED = "RESERVED"


class Room(Base):
    __tablename__ = "rooms"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    room_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=RoomType.SINGLE.value,
        comment="SINGLE, DOUBLE, TRIPLE, SUITE, STUDIO, APARTMENT"
    )
    monthly_rent: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=RoomStatus.VACANT.value,
        index=True,
        comment="VACANT, RENTED, MAINTENANCE, RESERVED"
    )
    floor: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    area: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(8, 2),
        nullable=True,
        comment="Square metres"
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Amenities
    has_air_conditioning: Mapped[bool] = mapped_column(Boolean, default=False)
    has_private_bathroom: Mapped[bool] = mapped_column(Boolean, default=False)
    is_furnished: Mapped[bool] = mapped_column(Boolean, default=False)

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

    tenants: Mapped[List["Tenant"]] = relationship("Tenant", back_populates="room")
    invoices: Mapped[List["Invoice"]] = relationship("Invoice", back_populates="room")

    @property
    def is_available(self) -> bool:
        return self.status == RoomStatus.VACANT.value

    def __repr__(self) -> str:
        return f"<Room(number='{self.room_number}', status='{self.status}')>"
