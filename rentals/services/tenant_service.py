from typing import List, Optional, Tuple, Dict
from datetime import date, timedelta
from decimal import Decimal
import logging
import uuid

from sqlalchemy import select, func, or_
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.models.tenant import Tenant
from rentals.models.room import Room, RoomStatus
from rentals.models.invoice import Invoice, OPEN_STATUSES


logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "first_name": Tenant.first_name,
    "last_name": Tenant.last_name,
    "email": Tenant.email,
    "contract_end_date": Tenant.contract_end_date,
    "monthly_rent": Tenant.monthly_rent,
    "created_at": Tenant.created_at,
}


class TenantError(Exception):
    """Raised when a tenant operation violates a business rule."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class TenantService:
    """Service for tenants and their room assignments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _base_query(self):
        return select(Tenant).options(selectinload(Tenant.room))

    async def get_tenants(
        self,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        room_id: Optional[uuid.UUID] = None,
        has_room: Optional[bool] = None,
        contract_expiring_days: Optional[int] = None,
        sort_by: str = "last_name",
        sort_desc: bool = False,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Tenant], int]:
        filters = []
        if search:
            term = f"%{search.lower()}%"
            filters.append(or_(
                func.lower(Tenant.first_name).like(term),
                func.lower(Tenant.last_name).like(term),
                func.lower(Tenant.email).like(term),
                Tenant.phone_number.like(term),
            ))
        if is_active is not None:
            filters.append(Tenant.is_active == is_active)
        if room_id:
            filters.append(Tenant.room_id == room_id)
        if has_room is True:
            filters.append(Tenant.room_id.is_not(None))
        elif has_room is False:
            filters.append(Tenant.room_id.is_(None))
        if contract_expiring_days is not None:
            today = date.today()
            filters.append(Tenant.contract_end_date.between(
                today, today + timedelta(days=contract_expiring_days)
            ))

        sort_column = SORT_COLUMNS.get(sort_by, Tenant.last_name)
        stmt = self._base_query().where(*filters).order_by(
            sort_column.desc() if sort_desc else sort_column.asc()
        )
        count_stmt = select(func.count(Tenant.id)).where(*filters)

        total = (await self.db.execute(count_stmt)).scalar()
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def get_tenant_by_id(self, tenant_id: uuid.UUID) -> Optional[Tenant]:
        stmt = (
            self._base_query()
            .where(Tenant.id == tenant_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_tenant_by_email(self, email: str) -> Optional[Tenant]:
        stmt = select(Tenant).where(func.lower(Tenant.email) == email.lower())
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_tenants(self) -> List[Tenant]:
        stmt = self._base_query().where(Tenant.is_active == True).order_by(Tenant.last_name)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_unassigned_tenants(self) -> List[Tenant]:
        stmt = (
            self._base_query()
            .where(Tenant.room_id.is_(None), Tenant.is_active == True)
            .order_by(Tenant.last_name)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_tenants_by_room(self, room_id: uuid.UUID) -> List[Tenant]:
        stmt = self._base_query().where(Tenant.room_id == room_id).order_by(Tenant.last_name)
        return list((await self.db.execute(stmt)).scalars().all())

    async def create_tenant(self, data: dict) -> Tenant:
        """Create a tenant; e-mail is unique regardless of case."""
        if await self.get_tenant_by_email(data["email"]):
            raise TenantError(f"Tenant with email '{data['email']}' already exists")

        data["email"] = data["email"].lower()
        tenant = Tenant(**data)
        self.db.add(tenant)
        await self.db.commit()

        logger.info(f"Tenant {tenant.email} created")
        return await self.get_tenant_by_id(tenant.id)

    async def update_tenant(self, tenant_id: uuid.UUID, data: dict) -> Optional[Tenant]:
        tenant = await self.get_tenant_by_id(tenant_id)
        if not tenant:
            return None

        new_email = data.get("email")
        if new_email and new_email.lower() != tenant.email.lower():
            if await self.get_tenant_by_email(new_email):
                raise TenantError(f"Tenant with email '{new_email}' already exists")
            data["email"] = new_email.lower()

        start = data.get("contract_start_date") or tenant.contract_start_date
        end = data.get("contract_end_date") or tenant.contract_end_date
        if start and end and end <= start:
            raise TenantError("Contract end date must be after start date")

        for key, value in data.items():
            if value is not None:
                setattr(tenant, key, value)

        await self.db.commit()
        return await self.get_tenant_by_id(tenant_id)

    async def assign_room(
        self,
        tenant_id: uuid.UUID,
        room_id: uuid.UUID,
        contract_start_date: date,
        contract_end_date: date,
        monthly_rent: Optional[Decimal] = None,
        security_deposit: Optional[Decimal] = None
    ) -> Optional[Tenant]:
        """
        Move a tenant into a vacant room.

        The previous room becomes VACANT once nobody else lives there; the new room becomes RENTED.
        Rent defaults to the room's list rent.
        """
        tenant = await self.get_tenant_by_id(tenant_id)
        if not tenant:
            return None

        room = (await self.db.execute(
            select(Room).where(Room.id == room_id).with_for_update()
        )).scalar_one_or_none()
        if not room:
            raise TenantError("Room not found")

        if tenant.room_id == room.id:
            raise TenantError("Tenant is already assigned to this room")

        if room.status != RoomStatus.VACANT.value:
            raise TenantError(f"Room {room.room_number} is not available")

        if tenant.room is not None:
            await self._release_room(tenant.room, tenant.id)

        tenant.room = room
        tenant.contract_start_date = contract_start_date
        tenant.contract_end_date = contract_end_date
        tenant.monthly_rent = monthly_rent if monthly_rent is not None else room.monthly_rent
        if security_deposit is not None:
            tenant.security_deposit = security_deposit
        room.status = RoomStatus.RENTED.value

        await self.db.commit()

        logger.info(f"Tenant {tenant.email} assigned to room {room.room_number}")
        return await self.get_tenant_by_id(tenant_id)

    async def unassign_room(self, tenant_id: uuid.UUID) -> Optional[Tenant]:
        """Move a tenant out; blocked while invoices are outstanding."""
        tenant = await self.get_tenant_by_id(tenant_id)
        if not tenant:
            return None

        if tenant.room is None:
            raise TenantError("Tenant is not assigned to any room")

        if await self._count_outstanding_invoices(tenant_id) > 0:
            raise TenantError("Cannot unassign tenant with outstanding invoices")

        room_number = tenant.room.room_number
        await self._release_room(tenant.room, tenant.id)
        tenant.room = None

        await self.db.commit()

        logger.info(f"Tenant {tenant.email} moved out of room {room_number}")
        return await self.get_tenant_by_id(tenant_id)

    async def delete_tenant(self, tenant_id: uuid.UUID) -> bool:
        tenant = await self.get_tenant_by_id(tenant_id)
        if not tenant:
            return False

        if await self._count_outstanding_invoices(tenant_id) > 0:
            raise TenantError("Cannot delete tenant with outstanding invoices")

        history = (await self.db.execute(
            select(func.count(Invoice.id)).where(Invoice.tenant_id == tenant_id)
        )).scalar()
        if history > 0:
            raise TenantError("Cannot delete tenant with invoice history; deactivate instead")

        if tenant.room is not None:
            await self._release_room(tenant.room, tenant.id)

        await self.db.delete(tenant)
        await self.db.commit()

        logger.info(f"Tenant {tenant.email} deleted")
        return True

    async def get_statistics(self) -> Dict:
        tenants = (await self.db.execute(select(Tenant))).scalars().all()
        today = date.today()

        def expiring_within(days: int) -> int:
            limit = today + timedelta(days=days)
            return sum(
                1 for t in tenants
                if t.is_active and t.contract_end_date and today <= t.contract_end_date <= limit
            )

        active = [t for t in tenants if t.is_active]
        with_room = [t for t in tenants if t.room_id is not None]
        total_rent = sum((t.monthly_rent for t in with_room), Decimal("0"))

        return {
            "total_tenants": len(tenants),
            "active_tenants": len(active),
            "inactive_tenants": len(tenants) - len(active),
            "tenants_with_room": len(with_room),
            "tenants_without_room": len(tenants) - len(with_room),
            "contracts_expiring_30_days": expiring_within(30),
            "contracts_expiring_90_days": expiring_within(90),
            "total_monthly_rent": float(total_rent),
            "average_monthly_rent": float(total_rent / len(with_room)) if with_room else 0.0,
            "total_security_deposits": float(sum((t.security_deposit for t in tenants), Decimal("0"))),
        }

    async def _count_outstanding_invoices(self, tenant_id: uuid.UUID) -> int:
        stmt = select(func.count(Invoice.id)).where(
            Invoice.tenant_id == tenant_id,
            Invoice.status.in_(OPEN_STATUSES),
            Invoice.remaining_balance > 0,
        )
        return (await self.db.execute(stmt)).scalar()

    async def _release_room(self, room: Room, leaving_tenant_id: uuid.UUID) -> None:
        """Mark a room VACANT unless another active tenant still lives there."""
        others = (await self.db.execute(
            select(func.count(Tenant.id)).where(
                Tenant.room_id == room.id,
                Tenant.is_active == True,
                Tenant.id != leaving_tenant_id,
            )
        )).scalar()
        if others == 0:
            room.status = RoomStatus.VACANT.value
