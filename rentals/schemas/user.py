from pydantic import BaseModel, EmailStr, Field

from rentals.schemas.base import BaseResponseSchema, BaseUpdateSchema
from typing import Optional, List, Dict, Literal
from datetime import datetime
import uuid


class RoleResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    code: str
    level: str
    description: Optional[str] = None


class UserResponse(BaseResponseSchema):
    """User response schema with role codes."""
    id: uuid.UUID
    email: str
    phone: Optional[str] = None
    first_name: str
    last_name: Optional[str] = None
    full_name: str
    is_active: bool
    roles: List[str] = Field(default_factory=list, validation_alias="role_codes")
    created_at: datetime
    updated_at: datetime
    last_login_at: Optional[datetime] = None


class UserUpdate(BaseUpdateSchema):
    """Profile or admin update."""
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)


class UserActivationRequest(BaseModel):
    is_active: bool


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(..., min_length=6)


class RoleAssignmentRequest(BaseModel):
    roles: List[str] = Field(..., min_length=1, description="Role codes, e.g. MANAGER")


class BulkUserOperationRequest(BaseModel):
    user_ids: List[uuid.UUID] = Field(..., min_length=1)
    operation: Literal["activate", "deactivate", "delete"]


class BulkOperationResult(BaseModel):
    affected: int


class UserStatistics(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    new_users_last_30_days: int
    users_by_role: Dict[str, int]
