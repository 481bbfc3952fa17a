from typing import Optional, List
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from rentals.api.deps import DB, CurrentUser, Permissions, ManagerOnly, AdminOnly
from rentals.schemas.base import ApiResponse, PagedResponse
from rentals.schemas.user import (
    UserResponse,
    UserUpdate,
    UserActivationRequest,
    ResetPasswordRequest,
    RoleAssignmentRequest,
    RoleResponse,
    BulkUserOperationRequest,
    BulkOperationResult,
    UserStatistics,
)
from rentals.services.user_management_service import UserManagementService, UserManagementError


router = APIRouter(tags=["Users"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@router.get("", response_model=ApiResponse[PagedResponse[UserResponse]], dependencies=[ManagerOnly])
async def list_users(
    db: DB,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    search: Optional[str] = Query(None, description="Search by name or email"),
    is_active: Optional[bool] = Query(None, description="Filter by active status"),
    role: Optional[str] = Query(None, description="Filter by role code"),
    sort_by: str = Query("created_at"),
    sort_desc: bool = Query(True),
):
    """
    Get paginated list of users.
    Requires: MANAGER
    """
    users, total = await UserManagementService(db).get_users(
        search=search,
        is_active=is_active,
        role=role,
        sort_by=sort_by,
        sort_desc=sort_desc,
        skip=(page - 1) * size,
        limit=size,
    )
    items = [UserResponse.model_validate(user) for user in users]
    return ApiResponse.ok(PagedResponse.build(items, total, page, size))


@router.get("/statistics", response_model=ApiResponse[UserStatistics], dependencies=[ManagerOnly])
async def user_statistics(db: DB):
    stats = await UserManagementService(db).get_statistics()
    return ApiResponse.ok(UserStatistics(**stats))


@router.get("/roles", response_model=ApiResponse[List[RoleResponse]], dependencies=[ManagerOnly])
async def available_roles(db: DB):
    roles = await UserManagementService(db).get_available_roles()
    return ApiResponse.ok([RoleResponse.model_validate(role) for role in roles])


@router.post("/bulk", response_model=ApiResponse[BulkOperationResult], dependencies=[AdminOnly])
async def bulk_operation(
    data: BulkUserOperationRequest,
    db: DB,
    current_user: CurrentUser,
):
    """
    Activate, deactivate or delete many users. The acting admin and unknown ids are skipped.
    Requires: ADMIN
    """
    affected = await UserManagementService(db).bulk_operation(data.user_ids, data.operation, current_user.id)
    return ApiResponse.ok(BulkOperationResult(affected=affected), message=f"{affected} users updated")


@router.get("/{user_id}", response_model=ApiResponse[UserResponse], dependencies=[ManagerOnly])
async def get_user(user_id: uuid.UUID, db: DB):
    user = await UserManagementService(db).get_user_by_id(user_id)
    if not user:
        raise _not_found()
    return ApiResponse.ok(UserResponse.model_validate(user))


@router.put("/{user_id}", response_model=ApiResponse[UserResponse], dependencies=[AdminOnly])
async def update_user(user_id: uuid.UUID, data: UserUpdate, db: DB):
    try:
        user = await UserManagementService(db).update_user(user_id, data.model_dump(exclude_unset=True))
    except UserManagementError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    if not user:
        raise _not_found()
    return ApiResponse.ok(UserResponse.model_validate(user), message="User updated")


@router.delete("/{user_id}", response_model=ApiResponse[None], dependencies=[AdminOnly])
async def delete_user(user_id: uuid.UUID, db: DB, current_user: CurrentUser):
    try:
        deleted = await UserManagementService(db).delete_user(user_id, current_user.id)
    except UserManagementError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not deleted:
        raise _not_found()
    return ApiResponse.ok(message="User deleted")


@router.post("/{user_id}/activation", response_model=ApiResponse[UserResponse], dependencies=[AdminOnly])
async def set_activation(
    user_id: uuid.UUID,
    data: UserActivationRequest,
    db: DB,
    current_user: CurrentUser,
):
    try:
        user = await UserManagementService(db).set_activation(user_id, data.is_active, current_user.id)
    except UserManagementError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not user:
        raise _not_found()
    return ApiResponse.ok(
        UserResponse.model_validate(user),
        message="User activated" if data.is_active else "User deactivated",
    )


@router.post("/{user_id}/reset-password", response_model=ApiResponse[None], dependencies=[AdminOnly])
async def reset_password(user_id: uuid.UUID, data: ResetPasswordRequest, db: DB):
    user = await UserManagementService(db).reset_password(user_id, data.new_password)
    if not user:
        raise _not_found()
    return ApiResponse.ok(message="Password reset successfully")


@router.post("/{user_id}/roles", response_model=ApiResponse[UserResponse], dependencies=[AdminOnly])
async def assign_roles(
    user_id: uuid.UUID,
    data: RoleAssignmentRequest,
    db: DB,
    current_user: CurrentUser,
):
    try:
        user = await UserManagementService(db).assign_roles(user_id, data.roles, assigned_by=current_user.id)
    except UserManagementError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not user:
        raise _not_found()
    return ApiResponse.ok(UserResponse.model_validate(user), message="Roles assigned")


@router.delete("/{user_id}/roles", response_model=ApiResponse[UserResponse], dependencies=[AdminOnly])
async def remove_roles(
    user_id: uuid.UUID,
    data: RoleAssignmentRequest,
    db: DB,
    permissions: Permissions,
):
    target = await UserManagementService(db).get_user_by_id(user_id)
    if not target:
        raise _not_found()
    if not permissions.can_manage_user(target):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You cannot change your own roles")

    try:
        user = await UserManagementService(db).remove_roles(user_id, data.roles)
    except UserManagementError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return ApiResponse.ok(UserResponse.model_validate(user), message="Roles removed")
