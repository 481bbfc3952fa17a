from pydantic import BaseModel, Field, model_validator

from rentals.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, DecimalAsFloat
from rentals.models.invoice import InvoiceStatus
from typing import Optional, List, Dict
from datetime import date, datetime
from decimal import Decimal
import uuid


# ==================== Invoice Line Schemas ====================

class InvoiceItemCreate(BaseModel):
    """Invoice line; either item_id or description + unit_price."""
    item_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(None, max_length=500)
    quantity: Decimal = Field(Decimal("1"), gt=0)
    unit_of_measure: Optional[str] = Field(None, max_length=20)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    tax_percent: Optional[Decimal] = Field(None, ge=0, le=100)

    @model_validator(mode="after")
    def check_source(self):
        if self.item_id is None and (self.description is None or self.unit_price is None):
            raise ValueError("Line needs item_id or description and unit_price")
        return self


class InvoiceItemResponse(BaseResponseSchema):
    id: uuid.UUID
    item_id: Optional[uuid.UUID] = None
    line_number: int
    description: str
    quantity: DecimalAsFloat
    unit_of_measure: str
    unit_price: DecimalAsFloat
    tax_percent: DecimalAsFloat
    line_total: DecimalAsFloat
    tax_amount: DecimalAsFloat
    line_total_with_tax: DecimalAsFloat


# ==================== Invoice Schemas ====================

class InvoiceCreate(BaseCreateSchema):
    """Create an invoice for a tenant's current room."""
    tenant_id: uuid.UUID
    billing_period: date = Field(..., description="Any day in the billed month")
    due_date: date
    additional_charges: Decimal = Field(Decimal("0"), ge=0)
    additional_charges_description: Optional[str] = Field(None, max_length=500)
    discount: Decimal = Field(Decimal("0"), ge=0)
    notes: Optional[str] = None
    items: List[InvoiceItemCreate] = []


class InvoiceUpdate(BaseUpdateSchema):
    additional_charges: Optional[Decimal] = Field(None, ge=0)
    additional_charges_description: Optional[str] = Field(None, max_length=500)
    discount: Optional[Decimal] = Field(None, ge=0)
    due_date: Optional[date] = None
    status: Optional[InvoiceStatus] = None
    notes: Optional[str] = None


class GenerateMonthlyRequest(BaseModel):
    billing_period: date = Field(..., description="Any day in the month to bill")


class InvoiceResponse(BaseResponseSchema):
    """Invoice response schema."""
    id: uuid.UUID
    invoice_number: str
    tenant_id: uuid.UUID
    tenant_name: Optional[str] = None
    room_id: uuid.UUID
    room_number: Optional[str] = None
    monthly_rent: DecimalAsFloat
    additional_charges: DecimalAsFloat
    additional_charges_description: Optional[str] = None
    discount: DecimalAsFloat
    total_amount: DecimalAsFloat
    paid_amount: DecimalAsFloat
    remaining_balance: DecimalAsFloat
    status: str
    billing_period: date
    issue_date: date
    due_date: date
    paid_date: Optional[date] = None
    notes: Optional[str] = None
    is_overdue: bool
    version: int
    items: List[InvoiceItemResponse] = []
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_invoice(cls, invoice) -> "InvoiceResponse":
        """Build from an Invoice with tenant, room and items loaded."""
        response = cls.model_validate(invoice)
        response.tenant_name = invoice.tenant.full_name if invoice.tenant else None
        response.room_number = invoice.room.room_number if invoice.room else None
        return response


class InvoiceStatistics(BaseModel):
    total_invoices: int
    total_billed: float
    total_collected: float
    total_outstanding: float
    overdue_invoices: int
    overdue_amount: float
    invoices_by_status: Dict[str, int]
    amount_by_status: Dict[str, float]
    collection_rate: float


class ReminderResult(BaseModel):
    reminders_sent: int
    invoice_numbers: List[str]
