from pydantic import BaseModel, Field, EmailStr, model_validator

from rentals.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, DecimalAsFloat
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
import uuid


class TenantBase(BaseModel):
    """Base tenant schema."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone_number: str = Field(..., min_length=5, max_length=20)
    date_of_birth: Optional[date] = None
    identification_number: Optional[str] = Field(None, max_length=50)
    emergency_contact_name: Optional[str] = Field(None, max_length=200)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)
    security_deposit: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None


class TenantCreate(TenantBase, BaseCreateSchema):
    """Tenant creation schema."""
    pass


class TenantUpdate(BaseUpdateSchema):
    """Tenant update schema."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, min_length=5, max_length=20)
    date_of_birth: Optional[date] = None
    identification_number: Optional[str] = Field(None, max_length=50)
    emergency_contact_name: Optional[str] = Field(None, max_length=200)
    emergency_contact_phone: Optional[str] = Field(None, max_length=20)
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    security_deposit: Optional[Decimal] = Field(None, ge=0)
    monthly_rent: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class AssignRoomRequest(BaseModel):
    """Assign a tenant to a room and start the contract."""
    room_id: uuid.UUID
    contract_start_date: date
    contract_end_date: date
    monthly_rent: Optional[Decimal] = Field(None, gt=0, description="Defaults to the room's rent")
    security_deposit: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_contract_dates(self):
        if self.contract_end_date <= self.contract_start_date:
            raise ValueError("Contract end date must be after start date")
        return self


class TenantResponse(BaseResponseSchema):
    """Tenant response schema."""
    id: uuid.UUID
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone_number: str
    date_of_birth: Optional[date] = None
    identification_number: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    room_id: Optional[uuid.UUID] = None
    room_number: Optional[str] = None
    contract_start_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    security_deposit: DecimalAsFloat
    monthly_rent: DecimalAsFloat
    is_active: bool
    has_active_contract: bool
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_tenant(cls, tenant) -> "TenantResponse":
        """Build from a Tenant whose room relationship is loaded."""
        response = cls.model_validate(tenant)
        response.room_number = tenant.room.room_number if tenant.room else None
        return response


class TenantStatistics(BaseModel):
    total_tenants: int
    active_tenants: int
    inactive_tenants: int
    tenants_with_room: int
    tenants_without_room: int
    contracts_expiring_30_days: int
    contracts_expiring_90_days: int
    total_monthly_rent: float
    average_monthly_rent: float
    total_security_deposits: float
