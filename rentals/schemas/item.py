from pydantic import BaseModel, Field

from rentals.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, DecimalAsFloat
from typing import Optional
from datetime import datetime
from decimal import Decimal
import uuid


class ItemBase(BaseModel):
    item_code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    unit_of_measure: str = Field("unit", max_length=20)
    unit_price: Decimal = Field(..., ge=0)
    tax_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    category: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ItemCreate(ItemBase, BaseCreateSchema):
    is_active: bool = True


class ItemUpdate(BaseUpdateSchema):
    item_code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    unit_of_measure: Optional[str] = Field(None, max_length=20)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    tax_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    category: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None
    notes: Optional[str] = None


class ItemResponse(BaseResponseSchema):
    id: uuid.UUID
    item_code: str
    name: str
    description: Optional[str] = None
    unit_of_measure: str
    unit_price: DecimalAsFloat
    tax_percent: DecimalAsFloat
    category: Optional[str] = None
    is_active: bool
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
