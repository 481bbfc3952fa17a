from pydantic import BaseModel, Field

from rentals.schemas.base import BaseResponseSchema
from rentals.models.system_setting import SettingDataType
from typing import Optional, List, Dict
from datetime import datetime
import uuid


class SystemSettingCreate(BaseModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: str
    category: str = Field("general", max_length=50)
    data_type: SettingDataType = SettingDataType.STRING
    description: Optional[str] = Field(None, max_length=500)
    is_editable: bool = True
    is_visible: bool = True


class SystemSettingUpdate(BaseModel):
    value: str
    description: Optional[str] = Field(None, max_length=500)


class BulkSettingsUpdate(BaseModel):
    settings: Dict[str, str] = Field(..., description="key -> new value")


class SystemSettingResponse(BaseResponseSchema):
    id: uuid.UUID
    key: str
    value: str
    category: str
    data_type: str
    description: Optional[str] = None
    is_editable: bool
    is_visible: bool
    modified_by: Optional[str] = None
    updated_at: datetime


class SettingsByCategory(BaseModel):
    category: str
    settings: List[SystemSettingResponse]


class SettingsImportRequest(BaseModel):
    json_data: str = Field(..., description="Output of the export endpoint")


class CountResult(BaseModel):
    count: int


class SystemInfo(BaseModel):
    app_name: str
    version: str
    environment: str
    database_dialect: str
    server_time: datetime
    total_users: int
    total_rooms: int
    total_tenants: int
    total_invoices: int
    total_payments: int
    total_settings: int


class TableInfo(BaseModel):
    name: str
    row_count: int


class DatabaseInfo(BaseModel):
    dialect: str
    driver: str
    database: Optional[str] = None
    connected: bool
    table_count: int
    tables: List[TableInfo]
