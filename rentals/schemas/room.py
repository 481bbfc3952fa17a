from pydantic import BaseModel, Field

from rentals.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, DecimalAsFloat
from rentals.models.room import RoomType, RoomStatus
from typing import Optional, Dict
from datetime import datetime
from decimal import Decimal
import uuid


class RoomBase(BaseModel):
    """Base room schema."""
    room_number: str = Field(..., min_length=1, max_length=20)
    type: RoomType = RoomType.SINGLE
    monthly_rent: Decimal = Field(..., gt=0)
    floor: int = Field(1, ge=0, le=200)
    area: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = Field(None, max_length=1000)
    has_air_conditioning: bool = False
    has_private_bathroom: bool = False
    is_furnished: bool = False


class RoomCreate(RoomBase, BaseCreateSchema):
    """Room creation schema."""
    status: RoomStatus = RoomStatus.VACANT


class RoomUpdate(BaseUpdateSchema):
    """Room update schema."""
    room_number: Optional[str] = Field(None, min_length=1, max_length=20)
    type: Optional[RoomType] = None
    monthly_rent: Optional[Decimal] = Field(None, gt=0)
    status: Optional[RoomStatus] = None
    floor: Optional[int] = Field(None, ge=0, le=200)
    area: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = Field(None, max_length=1000)
    has_air_conditioning: Optional[bool] = None
    has_private_bathroom: Optional[bool] = None
    is_furnished: Optional[bool] = None


class RoomStatusUpdate(BaseModel):
    status: RoomStatus


class RoomResponse(BaseResponseSchema):
    """Room response schema."""
    id: uuid.UUID
    room_number: str
    type: str
    monthly_rent: DecimalAsFloat
    status: str
    floor: int
    area: Optional[DecimalAsFloat] = None
    description: Optional[str] = None
    has_air_conditioning: bool
    has_private_bathroom: bool
    is_furnished: bool
    is_available: bool
    created_at: datetime
    updated_at: datetime


class RoomOccupancyStats(BaseModel):
    """Occupancy statistics across all rooms."""
    total_rooms: int
    vacant_rooms: int
    rented_rooms: int
    maintenance_rooms: int
    reserved_rooms: int
    occupancy_rate: float
    potential_monthly_revenue: float
    current_monthly_revenue: float
    rooms_by_type: Dict[str, int]
