import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentals.database import Base
from rentals.db_types import UUIDType

if TYPE_CHECKING:
    from rentals.models.user import UserRole


class RoleLevel(int, Enum):
    """
    Role hierarchy levels.
    Lower number = Higher authority.
    """
    ADMIN = 0
    MANAGER = 1
    STAFF = 2


class Role(Base):
    """
    Role model for RBAC.
    Three system roles: ADMIN, MANAGER, STAFF.
    """
    __tablename__ = "roles"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    level: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="STAFF",
        comment="ADMIN, MANAGER, STAFF"
    )

    # System role (cannot be deleted)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

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

    user_roles: Mapped[List["UserRole"]] = relationship(
        "UserRole",
        back_populates="role",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Role(code='{self.code}', level='{self.level}')>"


# Seed definitions for the system roles
SYSTEM_ROLES = [
    {
        "name": "Admin",
        "code": "ADMIN",
        "level": RoleLevel.ADMIN.name,
        "description": "Full access including users, settings and deletions",
    },
    {
        "name": "Manager",
        "code": "MANAGER",
        "level": RoleLevel.MANAGER.name,
        "description": "Manages rooms, billing, payments and reports",
    },
    {
        "name": "Staff",
        "code": "STAFF",
        "level": RoleLevel.STAFF.name,
        "description": "Day-to-day tenant, invoice and payment entry",
    },
]
