from typing import Optional, List
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from rentals.api.deps import DB, CurrentUser, StaffOnly, ManagerOnly, AdminOnly
from rentals.schemas.base import ApiResponse, PagedResponse
from rentals.schemas.tenant import (
    TenantCreate,
    TenantUpdate,
    AssignRoomRequest,
    TenantResponse,
    TenantStatistics,
)
from rentals.services.tenant_service import TenantService, TenantError


router = APIRouter(tags=["Tenants"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tenant not found")


@router.get("", response_model=ApiResponse[PagedResponse[TenantResponse]])
async def list_tenants(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    search: Optional[str] = Query(None, description="Search name, email or phone"),
    is_active: Optional[bool] = Query(None),
    room_id: Optional[uuid.UUID] = Query(None),
    has_room: Optional[bool] = Query(None),
    contract_expiring_days: Optional[int] = Query(None, ge=0, description="Contracts ending within N days"),
    sort_by: str = Query("last_name"),
    sort_desc: bool = Query(False),
):
    """
    Get paginated list of tenants.
    """
    tenants, total = await TenantService(db).get_tenants(
        search=search,
        is_active=is_active,
        room_id=room_id,
        has_room=has_room,
        contract_expiring_days=contract_expiring_days,
        sort_by=sort_by,
        sort_desc=sort_desc,
        skip=(page - 1) * size,
        limit=size,
    )
    items = [TenantResponse.from_tenant(tenant) for tenant in tenants]
    return ApiResponse.ok(PagedResponse.build(items, total, page, size))


@router.get("/active", response_model=ApiResponse[List[TenantResponse]])
async def active_tenants(db: DB, current_user: CurrentUser):
    tenants = await TenantService(db).get_active_tenants()
    return ApiResponse.ok([TenantResponse.from_tenant(t) for t in tenants])


@router.get("/unassigned", response_model=ApiResponse[List[TenantResponse]])
async def unassigned_tenants(db: DB, current_user: CurrentUser):
    tenants = await TenantService(db).get_unassigned_tenants()
    return ApiResponse.ok([TenantResponse.from_tenant(t) for t in tenants])


@router.get("/room/{room_id}", response_model=ApiResponse[List[TenantResponse]])
async def tenants_by_room(room_id: uuid.UUID, db: DB, current_user: CurrentUser):
    tenants = await TenantService(db).get_tenants_by_room(room_id)
    return ApiResponse.ok([TenantResponse.from_tenant(t) for t in tenants])


@router.get("/statistics", response_model=ApiResponse[TenantStatistics], dependencies=[ManagerOnly])
async def tenant_statistics(db: DB):
    stats = await TenantService(db).get_statistics()
    return ApiResponse.ok(TenantStatistics(**stats))


@router.get("/{tenant_id}", response_model=ApiResponse[TenantResponse])
async def get_tenant(tenant_id: uuid.UUID, db: DB, current_user: CurrentUser):
    tenant = await TenantService(db).get_tenant_by_id(tenant_id)
    if not tenant:
        raise _not_found()
    return ApiResponse.ok(TenantResponse.from_tenant(tenant))


@router.post(
    "",
    response_model=ApiResponse[TenantResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def create_tenant(data: TenantCreate, db: DB):
    try:
        tenant = await TenantService(db).create_tenant(data.model_dump())
    except TenantError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    return ApiResponse.ok(TenantResponse.from_tenant(tenant), message="Tenant created successfully")


@router.put("/{tenant_id}", response_model=ApiResponse[TenantResponse], dependencies=[StaffOnly])
async def update_tenant(tenant_id: uuid.UUID, data: TenantUpdate, db: DB):
    try:
        tenant = await TenantService(db).update_tenant(tenant_id, data.model_dump(exclude_unset=True))
    except TenantError as e:
        code = status.HTTP_409_CONFLICT if "already exists" in e.message else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=e.message)

    if not tenant:
        raise _not_found()
    return ApiResponse.ok(TenantResponse.from_tenant(tenant), message="Tenant updated successfully")


@router.post("/{tenant_id}/assign-room", response_model=ApiResponse[TenantResponse], dependencies=[StaffOnly])
async def assign_room(tenant_id: uuid.UUID, data: AssignRoomRequest, db: DB):
    """
    Move a tenant into a vacant room and start the contract.
    Requires: STAFF
    """
    try:
        tenant = await TenantService(db).assign_room(
            tenant_id,
            room_id=data.room_id,
            contract_start_date=data.contract_start_date,
            contract_end_date=data.contract_end_date,
            monthly_rent=data.monthly_rent,
            security_deposit=data.security_deposit,
        )
    except TenantError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not tenant:
        raise _not_found()
    return ApiResponse.ok(
        TenantResponse.from_tenant(tenant),
        message=f"Tenant assigned to room {tenant.room.room_number}",
    )


@router.post("/{tenant_id}/unassign-room", response_model=ApiResponse[TenantResponse], dependencies=[StaffOnly])
async def unassign_room(tenant_id: uuid.UUID, db: DB):
    try:
        tenant = await TenantService(db).unassign_room(tenant_id)
    except TenantError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not tenant:
        raise _not_found()
    return ApiResponse.ok(TenantResponse.from_tenant(tenant), message="Tenant unassigned from room")


@router.delete("/{tenant_id}", response_model=ApiResponse[None], dependencies=[AdminOnly])
async def delete_tenant(tenant_id: uuid.UUID, db: DB):
    try:
        deleted = await TenantService(db).delete_tenant(tenant_id)
    except TenantError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not deleted:
        raise _not_found()
    return ApiResponse.ok(message="Tenant deleted successfully")
