from typing import Optional, List
from decimal import Decimal
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from rentals.api.deps import DB, CurrentUser, StaffOnly, ManagerOnly, AdminOnly
from rentals.models.room import RoomStatus, RoomType
from rentals.schemas.base import ApiResponse, PagedResponse
from rentals.schemas.room import (
    RoomCreate,
    RoomUpdate,
    RoomStatusUpdate,
    RoomResponse,
    RoomOccupancyStats,
)
from rentals.services.room_service import RoomService, RoomError


router = APIRouter(tags=["Rooms"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")


@router.get("", response_model=ApiResponse[PagedResponse[RoomResponse]])
async def list_rooms(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    search: Optional[str] = Query(None, description="Search room number or description"),
    room_type: Optional[RoomType] = Query(None, alias="type", description="Filter by room type"),
    room_status: Optional[RoomStatus] = Query(None, alias="status", description="Filter by status"),
    floor: Optional[int] = Query(None, ge=0),
    min_rent: Optional[Decimal] = Query(None, ge=0),
    max_rent: Optional[Decimal] = Query(None, ge=0),
    has_air_conditioning: Optional[bool] = Query(None),
    has_private_bathroom: Optional[bool] = Query(None),
    is_furnished: Optional[bool] = Query(None),
    sort_by: str = Query("room_number"),
    sort_desc: bool = Query(False),
):
    """
    Get paginated list of rooms.
    """
    rooms, total = await RoomService(db).get_rooms(
        search=search,
        room_type=room_type,
        status=room_status,
        floor=floor,
        min_rent=min_rent,
        max_rent=max_rent,
        has_air_conditioning=has_air_conditioning,
        has_private_bathroom=has_private_bathroom,
        is_furnished=is_furnished,
        sort_by=sort_by,
        sort_desc=sort_desc,
        skip=(page - 1) * size,
        limit=size,
    )
    items = [RoomResponse.model_validate(room) for room in rooms]
    return ApiResponse.ok(PagedResponse.build(items, total, page, size))


@router.get("/available", response_model=ApiResponse[List[RoomResponse]])
async def available_rooms(db: DB, current_user: CurrentUser):
    rooms = await RoomService(db).get_available_rooms()
    return ApiResponse.ok([RoomResponse.model_validate(room) for room in rooms])


@router.get("/status/{room_status}", response_model=ApiResponse[List[RoomResponse]])
async def rooms_by_status(room_status: RoomStatus, db: DB, current_user: CurrentUser):
    rooms = await RoomService(db).get_rooms_by_status(room_status)
    return ApiResponse.ok([RoomResponse.model_validate(room) for room in rooms])


@router.get("/statistics", response_model=ApiResponse[RoomOccupancyStats], dependencies=[ManagerOnly])
async def room_statistics(db: DB):
    """
    Occupancy counts and revenue figures.
    Requires: MANAGER
    """
    stats = await RoomService(db).get_occupancy_statistics()
    return ApiResponse.ok(RoomOccupancyStats(**stats))


@router.get("/{room_id}", response_model=ApiResponse[RoomResponse])
async def get_room(room_id: uuid.UUID, db: DB, current_user: CurrentUser):
    room = await RoomService(db).get_room_by_id(room_id)
    if not room:
        raise _not_found()
    return ApiResponse.ok(RoomResponse.model_validate(room))


@router.post(
    "",
    response_model=ApiResponse[RoomResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[ManagerOnly],
)
async def create_room(data: RoomCreate, db: DB):
    """
    Create a room.
    Requires: MANAGER
    """
    try:
        room = await RoomService(db).create_room(data.model_dump())
    except RoomError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    return ApiResponse.ok(RoomResponse.model_validate(room), message="Room created successfully")


@router.put("/{room_id}", response_model=ApiResponse[RoomResponse], dependencies=[ManagerOnly])
async def update_room(room_id: uuid.UUID, data: RoomUpdate, db: DB):
    try:
        room = await RoomService(db).update_room(room_id, data.model_dump(exclude_unset=True))
    except RoomError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    if not room:
        raise _not_found()
    return ApiResponse.ok(RoomResponse.model_validate(room), message="Room updated successfully")


@router.patch("/{room_id}/status", response_model=ApiResponse[RoomResponse], dependencies=[StaffOnly])
async def change_room_status(room_id: uuid.UUID, data: RoomStatusUpdate, db: DB):
    try:
        room = await RoomService(db).change_status(room_id, data.status)
    except RoomError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not room:
        raise _not_found()
    return ApiResponse.ok(RoomResponse.model_validate(room), message=f"Room status changed to {data.status.value}")


@router.delete("/{room_id}", response_model=ApiResponse[None], dependencies=[AdminOnly])
async def delete_room(room_id: uuid.UUID, db: DB):
    """
    Delete a room without tenants or invoices.
    Requires: ADMIN
    """
    try:
        deleted = await RoomService(db).delete_room(room_id)
    except RoomError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not deleted:
        raise _not_found()
    return ApiResponse.ok(message="Room deleted successfully")
