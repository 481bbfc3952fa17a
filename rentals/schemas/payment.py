from pydantic import BaseModel, Field

from rentals.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema, DecimalAsFloat
from rentals.models.payment import PaymentMethod
from typing import Optional, List, Dict
from datetime import date, datetime
from decimal import Decimal
import uuid


class PaymentCreate(BaseCreateSchema):
    """Record money received against an invoice."""
    invoice_id: uuid.UUID
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod = PaymentMethod.CASH
    payment_date: date
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentUpdate(BaseUpdateSchema):
    amount: Optional[Decimal] = Field(None, gt=0)
    method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class PaymentResponse(BaseResponseSchema):
    """Payment response schema."""
    id: uuid.UUID
    invoice_id: uuid.UUID
    invoice_number: Optional[str] = None
    tenant_name: Optional[str] = None
    amount: DecimalAsFloat
    method: str
    reference_number: Optional[str] = None
    payment_date: date
    notes: Optional[str] = None
    is_verified: bool
    recorded_by_id: Optional[uuid.UUID] = None
    recorded_at: datetime

    @classmethod
    def from_payment(cls, payment) -> "PaymentResponse":
        """Build from a Payment with invoice and invoice.tenant loaded."""
        response = cls.model_validate(payment)
        if payment.invoice is not None:
            response.invoice_number = payment.invoice.invoice_number
            if payment.invoice.tenant is not None:
                response.tenant_name = payment.invoice.tenant.full_name
        return response


class MethodBreakdown(BaseModel):
    method: str
    count: int
    amount: float


class PaymentStatistics(BaseModel):
    total_payments: int
    total_amount: float
    verified_payments: int
    unverified_payments: int
    this_month_count: int
    this_month_amount: float
    last_month_count: int
    last_month_amount: float
    by_method: List[MethodBreakdown]


class MonthlyPaymentSummary(BaseModel):
    month: int
    month_name: str
    count: int
    amount: float
    verified_count: int
    unverified_count: int


class YearlyPaymentSummary(BaseModel):
    year: int
    months: List[MonthlyPaymentSummary]
    total_count: int
    total_amount: float
    by_method: Dict[str, float]
