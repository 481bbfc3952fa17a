from typing import List
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, status, Query, Response

from rentals.api.deps import DB, CurrentUser, AdminOnly
from rentals.schemas.base import ApiResponse
from rentals.schemas.system import (
    SystemSettingCreate,
    SystemSettingUpdate,
    BulkSettingsUpdate,
    SystemSettingResponse,
    SettingsByCategory,
    SettingsImportRequest,
    CountResult,
    SystemInfo,
    DatabaseInfo,
)
from rentals.services.system_management_service import SystemManagementService, SettingsError
from rentals.services.database_management_service import DatabaseManagementService


router = APIRouter(tags=["System"], dependencies=[AdminOnly])


def _not_found(key: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Setting '{key}' not found")


# ==================== SETTINGS ====================

@router.get("/settings", response_model=ApiResponse[List[SystemSettingResponse]])
async def list_settings(
    db: DB,
    include_hidden: bool = Query(False),
):
    """
    All settings ordered by category and key.
    Requires: ADMIN
    """
    items = await SystemManagementService(db).get_settings(include_hidden)
    return ApiResponse.ok([SystemSettingResponse.model_validate(s) for s in items])


@router.get("/settings/grouped", response_model=ApiResponse[List[SettingsByCategory]])
async def grouped_settings(db: DB):
    grouped = await SystemManagementService(db).get_settings_grouped()
    return ApiResponse.ok([
        SettingsByCategory(
            category=category,
            settings=[SystemSettingResponse.model_validate(s) for s in items],
        )
        for category, items in grouped.items()
    ])


@router.get("/settings/export")
async def export_settings(db: DB):
    """Download every setting as a JSON file that the import endpoint accepts."""
    content = await SystemManagementService(db).export_settings()
    filename = f"settings_{datetime.now(timezone.utc):%Y%m%d_%H%M%S}.json"
    return Response(
        content=content,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/settings/import", response_model=ApiResponse[CountResult])
async def import_settings(data: SettingsImportRequest, db: DB, current_user: CurrentUser):
    try:
        count = await SystemManagementService(db).import_settings(data.json_data, modified_by=current_user.email)
    except SettingsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return ApiResponse.ok(CountResult(count=count), message=f"{count} settings imported")


@router.post("/settings/seed", response_model=ApiResponse[CountResult])
async def seed_settings(db: DB):
    count = await SystemManagementService(db).seed_defaults()
    return ApiResponse.ok(CountResult(count=count), message=f"{count} default settings created")


@router.put("/settings/bulk", response_model=ApiResponse[CountResult])
async def bulk_update_settings(data: BulkSettingsUpdate, db: DB, current_user: CurrentUser):
    """Update many values at once; unknown and read-only keys are skipped."""
    count = await SystemManagementService(db).bulk_update(data.settings, modified_by=current_user.email)
    return ApiResponse.ok(CountResult(count=count), message=f"{count} settings updated")


@router.get("/settings/category/{category}", response_model=ApiResponse[List[SystemSettingResponse]])
async def settings_by_category(category: str, db: DB):
    items = await SystemManagementService(db).get_settings_by_category(category)
    return ApiResponse.ok([SystemSettingResponse.model_validate(s) for s in items])


@router.get("/settings/{key}", response_model=ApiResponse[SystemSettingResponse])
async def get_setting(key: str, db: DB):
    setting = await SystemManagementService(db).get_setting(key)
    if not setting:
        raise _not_found(key)
    return ApiResponse.ok(SystemSettingResponse.model_validate(setting))


@router.post("/settings", response_model=ApiResponse[SystemSettingResponse], status_code=status.HTTP_201_CREATED)
async def create_setting(data: SystemSettingCreate, db: DB, current_user: CurrentUser):
    try:
        setting = await SystemManagementService(db).create_setting(data.model_dump(), modified_by=current_user.email)
    except SettingsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return ApiResponse.ok(SystemSettingResponse.model_validate(setting), message="Setting created")


@router.put("/settings/{key}", response_model=ApiResponse[SystemSettingResponse])
async def update_setting(key: str, data: SystemSettingUpdate, db: DB, current_user: CurrentUser):
    try:
        setting = await SystemManagementService(db).update_setting(
            key, data.value, description=data.description, modified_by=current_user.email
        )
    except SettingsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not setting:
        raise _not_found(key)
    return ApiResponse.ok(SystemSettingResponse.model_validate(setting), message="Setting updated")


@router.delete("/settings/{key}", response_model=ApiResponse[None])
async def delete_setting(key: str, db: DB):
    try:
        deleted = await SystemManagementService(db).delete_setting(key)
    except SettingsError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not deleted:
        raise _not_found(key)
    return ApiResponse.ok(message="Setting deleted")


# ==================== SYSTEM / DATABASE ====================

@router.get("/info", response_model=ApiResponse[SystemInfo])
async def system_info(db: DB):
    info = await SystemManagementService(db).get_system_info()
    return ApiResponse.ok(SystemInfo(**info))


@router.get("/database/info", response_model=ApiResponse[DatabaseInfo])
async def database_info(db: DB):
    info = await DatabaseManagementService(db).get_database_info()
    return ApiResponse.ok(DatabaseInfo(**info))


@router.get("/database/test-connection", response_model=ApiResponse[bool])
async def test_connection(db: DB):
    connected = await DatabaseManagementService(db).test_connection()
    return ApiResponse.ok(connected, message="Database connection OK" if connected else "Database connection failed")


@router.post("/database/create-tables", response_model=ApiResponse[CountResult])
async def create_tables(db: DB):
    count = await DatabaseManagementService(db).create_tables()
    return ApiResponse.ok(CountResult(count=count), message=f"{count} tables ensured")


@router.post("/database/seed", response_model=ApiResponse[dict])
async def seed_database(db: DB):
    """Create roles, first admin, default settings and languages where missing."""
    result = await DatabaseManagementService(db).seed_data()
    return ApiResponse.ok(result, message="Seed data applied")
