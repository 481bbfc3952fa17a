from typing import Optional, List
from datetime import date
from decimal import Decimal
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from rentals.api.deps import DB, CurrentUser, StaffOnly, ManagerOnly, AdminOnly
from rentals.models.payment import PaymentMethod
from rentals.schemas.base import ApiResponse, PagedResponse
from rentals.schemas.payment import (
    PaymentCreate,
    PaymentUpdate,
    PaymentResponse,
    PaymentStatistics,
    YearlyPaymentSummary,
)
from rentals.services.payment_service import PaymentService, PaymentError


router = APIRouter(tags=["Payments"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")


@router.get("", response_model=ApiResponse[PagedResponse[PaymentResponse]])
async def list_payments(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    invoice_id: Optional[uuid.UUID] = Query(None),
    tenant_id: Optional[uuid.UUID] = Query(None),
    method: Optional[PaymentMethod] = Query(None),
    is_verified: Optional[bool] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    min_amount: Optional[Decimal] = Query(None, ge=0),
    max_amount: Optional[Decimal] = Query(None, ge=0),
    sort_by: str = Query("payment_date"),
    sort_desc: bool = Query(True),
):
    """
    Get paginated list of payments.
    """
    payments, total = await PaymentService(db).get_payments(
        invoice_id=invoice_id,
        tenant_id=tenant_id,
        method=method,
        is_verified=is_verified,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        sort_by=sort_by,
        sort_desc=sort_desc,
        skip=(page - 1) * size,
        limit=size,
    )
    items = [PaymentResponse.from_payment(payment) for payment in payments]
    return ApiResponse.ok(PagedResponse.build(items, total, page, size))


@router.get("/invoice/{invoice_id}", response_model=ApiResponse[List[PaymentResponse]])
async def payments_by_invoice(invoice_id: uuid.UUID, db: DB, current_user: CurrentUser):
    payments = await PaymentService(db).get_payments_by_invoice(invoice_id)
    return ApiResponse.ok([PaymentResponse.from_payment(p) for p in payments])


@router.get("/tenant/{tenant_id}", response_model=ApiResponse[List[PaymentResponse]])
async def payments_by_tenant(tenant_id: uuid.UUID, db: DB, current_user: CurrentUser):
    payments = await PaymentService(db).get_payments_by_tenant(tenant_id)
    return ApiResponse.ok([PaymentResponse.from_payment(p) for p in payments])


@router.get("/statistics", response_model=ApiResponse[PaymentStatistics], dependencies=[ManagerOnly])
async def payment_statistics(db: DB):
    stats = await PaymentService(db).get_statistics()
    return ApiResponse.ok(PaymentStatistics(**stats))


@router.get("/monthly-summary/{year}", response_model=ApiResponse[YearlyPaymentSummary], dependencies=[ManagerOnly])
async def monthly_summary(db: DB, year: int):
    if year < 2000 or year > 2100:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Year must be between 2000 and 2100")

    summary = await PaymentService(db).get_monthly_summary(year)
    return ApiResponse.ok(YearlyPaymentSummary(**summary))


@router.get("/{payment_id}", response_model=ApiResponse[PaymentResponse])
async def get_payment(payment_id: uuid.UUID, db: DB, current_user: CurrentUser):
    payment = await PaymentService(db).get_payment_by_id(payment_id)
    if not payment:
        raise _not_found()
    return ApiResponse.ok(PaymentResponse.from_payment(payment))


@router.post(
    "",
    response_model=ApiResponse[PaymentResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def create_payment(data: PaymentCreate, db: DB, current_user: CurrentUser):
    """
    Record a payment against an invoice and update its balance.
    Requires: STAFF
    """
    try:
        payment = await PaymentService(db).create_payment(
            invoice_id=data.invoice_id,
            amount=data.amount,
            method=data.method,
            payment_date=data.payment_date,
            reference_number=data.reference_number,
            notes=data.notes,
            recorded_by_id=current_user.id,
        )
    except PaymentError as e:
        code = status.HTTP_404_NOT_FOUND if e.message == "Invoice not found" else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=e.message)

    return ApiResponse.ok(PaymentResponse.from_payment(payment), message="Payment recorded successfully")


@router.put("/{payment_id}", response_model=ApiResponse[PaymentResponse], dependencies=[ManagerOnly])
async def update_payment(payment_id: uuid.UUID, data: PaymentUpdate, db: DB):
    """
    Change an unverified payment; the invoice balance follows.
    Requires: MANAGER
    """
    try:
        payment = await PaymentService(db).update_payment(payment_id, data.model_dump(exclude_unset=True))
    except PaymentError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not payment:
        raise _not_found()
    return ApiResponse.ok(PaymentResponse.from_payment(payment), message="Payment updated successfully")


@router.delete("/{payment_id}", response_model=ApiResponse[None], dependencies=[AdminOnly])
async def delete_payment(payment_id: uuid.UUID, db: DB):
    try:
        deleted = await PaymentService(db).delete_payment(payment_id)
    except PaymentError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not deleted:
        raise _not_found()
    return ApiResponse.ok(message="Payment deleted successfully")


@router.post("/{payment_id}/verify", response_model=ApiResponse[PaymentResponse], dependencies=[ManagerOnly])
async def verify_payment(
    payment_id: uuid.UUID,
    db: DB,
    is_verified: bool = Query(True),
):
    payment = await PaymentService(db).verify_payment(payment_id, is_verified)
    if not payment:
        raise _not_found()
    return ApiResponse.ok(
        PaymentResponse.from_payment(payment),
        message="Payment verified" if is_verified else "Payment unverified",
    )
