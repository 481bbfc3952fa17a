from typing import List, Optional, Tuple, Dict
from decimal import Decimal
import logging
import uuid

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.models.room import Room, RoomStatus, RoomType
from rentals.models.tenant import Tenant
from rentals.models.invoice import Invoice, OPEN_STATUSES


logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "room_number": Room.room_number,
    "type": Room.type,
    "monthly_rent": Room.monthly_rent,
    "status": Room.status,
    "floor": Room.floor,
    "created_at": Room.created_at,
}


class RoomError(Exception):
    """Raised when a room operation violates a business rule."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class RoomService:
    """Service for managing rooms and their occupancy status."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_rooms(
        self,
        search: Optional[str] = None,
        room_type: Optional[RoomType] = None,
        status: Optional[RoomStatus] = None,
        floor: Optional[int] = None,
        min_rent: Optional[Decimal] = None,
        max_rent: Optional[Decimal] = None,
        has_air_conditioning: Optional[bool] = None,
        has_private_bathroom: Optional[bool] = None,
        is_furnished: Optional[bool] = None,
        sort_by: str = "room_number",
        sort_desc: bool = False,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Room], int]:
        """Get rooms with filters and sorting."""
        filters = []
        if search:
            term = f"%{search.lower()}%"
            filters.append(or_(
                func.lower(Room.room_number).like(term),
                func.lower(Room.description).like(term),
            ))
        if room_type:
            filters.append(Room.type == room_type.value)
        if status:
            filters.append(Room.status == status.value)
        if floor is not None:
            filters.append(Room.floor == floor)
        if min_rent is not None:
            filters.append(Room.monthly_rent >= min_rent)
        if max_rent is not None:
            filters.append(Room.monthly_rent <= max_rent)
        if has_air_conditioning is not None:
            filters.append(Room.has_air_conditioning == has_air_conditioning)
        if has_private_bathroom is not None:
            filters.append(Room.has_private_bathroom == has_private_bathroom)
        if is_furnished is not None:
            filters.append(Room.is_furnished == is_furnished)

        sort_column = SORT_COLUMNS.get(sort_by, Room.room_number)
        stmt = select(Room).where(*filters).order_by(
            sort_column.desc() if sort_desc else sort_column.asc()
        )
        count_stmt = select(func.count(Room.id)).where(*filters)

        total = (await self.db.execute(count_stmt)).scalar()

        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def get_room_by_id(self, room_id: uuid.UUID) -> Optional[Room]:
        result = await self.db.execute(select(Room).where(Room.id == room_id))
        return result.scalar_one_or_none()

    async def get_room_by_number(self, room_number: str) -> Optional[Room]:
        result = await self.db.execute(select(Room).where(Room.room_number == room_number))
        return result.scalar_one_or_none()

    async def get_available_rooms(self) -> List[Room]:
        stmt = (
            select(Room)
            .where(Room.status == RoomStatus.VACANT.value)
            .order_by(Room.floor, Room.room_number)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_rooms_by_status(self, status: RoomStatus) -> List[Room]:
        stmt = select(Room).where(Room.status == status.value).order_by(Room.room_number)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_room(self, data: dict) -> Room:
        """Create a room; room numbers are unique."""
        if await self.get_room_by_number(data["room_number"]):
            raise RoomError(f"Room with number '{data['room_number']}' already exists")

        room = Room(**data)
        self.db.add(room)
        await self.db.commit()
        await self.db.refresh(room)

        logger.info(f"Room {room.room_number} created")
        return room

    async def update_room(self, room_id: uuid.UUID, data: dict) -> Optional[Room]:
        room = await self.get_room_by_id(room_id)
        if not room:
            return None

        new_number = data.get("room_number")
        if new_number and new_number != room.room_number:
            if await self.get_room_by_number(new_number):
                raise RoomError(f"Room with number '{new_number}' already exists")

        for key, value in data.items():
            if value is not None:
                setattr(room, key, value)

        await self.db.commit()
        await self.db.refresh(room)
        return room

    async def change_status(self, room_id: uuid.UUID, status: RoomStatus) -> Optional[Room]:
        """Set room status; a room with active tenants stays RENTED."""
        room = await self.get_room_by_id(room_id)
        if not room:
            return None

        if status != RoomStatus.RENTED and await self._count_active_tenants(room_id) > 0:
            raise RoomError("Room has active tenants and must remain rented")

        room.status = status.value
        await self.db.commit()
        await self.db.refresh(room)

        logger.info(f"Room {room.room_number} status changed to {status.value}")
        return room

    async def delete_room(self, room_id: uuid.UUID) -> bool:
        """Delete a room that has no active tenants and no unpaid invoices."""
        room = await self.get_room_by_id(room_id)
        if not room:
            return False

        if await self._count_active_tenants(room_id) > 0:
            raise RoomError("Cannot delete room with active tenants")

        unpaid_stmt = select(func.count(Invoice.id)).where(
            Invoice.room_id == room_id,
            Invoice.status.in_(OPEN_STATUSES),
        )
        if (await self.db.execute(unpaid_stmt)).scalar() > 0:
            raise RoomError("Cannot delete room with unpaid invoices")

        invoice_stmt = select(func.count(Invoice.id)).where(Invoice.room_id == room_id)
        if (await self.db.execute(invoice_stmt)).scalar() > 0:
            raise RoomError("Cannot delete room with invoice history")

        await self.db.delete(room)
        await self.db.commit()

        logger.info(f"Room {room.room_number} deleted")
        return True

    async def get_occupancy_statistics(self) -> Dict:
        rooms = (await self.db.execute(select(Room))).scalars().all()

        by_status = {status.value: 0 for status in RoomStatus}
        by_type: Dict[str, int] = {}
        potential = Decimal("0")
        current = Decimal("0")
        for room in rooms:
            by_status[room.status] = by_status.get(room.status, 0) + 1
            by_type[room.type] = by_type.get(room.type, 0) + 1
            potential += room.monthly_rent
            if room.status == RoomStatus.RENTED.value:
                current += room.monthly_rent

        total = len(rooms)
        rented = by_status[RoomStatus.RENTED.value]
        return {
            "total_rooms": total,
            "vacant_rooms": by_status[RoomStatus.VACANT.value],
            "rented_rooms": rented,
            "maintenance_rooms": by_status[RoomStatus.MAINTENANCE.value],
            "reserved_rooms": by_status[RoomStatus.RESERVED.value],
            "occupancy_rate": round(rented / total * 100, 2) if total else 0.0,
            "potential_monthly_revenue": float(potential),
            "current_monthly_revenue": float(current),
            "rooms_by_type": by_type,
        }

    async def _count_active_tenants(self, room_id: uuid.UUID) -> int:
        stmt = select(func.count(Tenant.id)).where(
            Tenant.room_id == room_id,
            Tenant.is_active == True,
        )
        return (await self.db.execute(stmt)).scalar()
