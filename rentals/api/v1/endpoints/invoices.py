from typing import Optional, List
from datetime import date
import uuid

from fastapi import APIRouter, HTTPException, status, Query, Response

from rentals.api.deps import DB, CurrentUser, StaffOnly, ManagerOnly, AdminOnly
from rentals.models.invoice import InvoiceStatus
from rentals.models.payment import PaymentMethod
from rentals.schemas.base import ApiResponse, PagedResponse
from rentals.schemas.invoice import (
    InvoiceCreate,
    InvoiceUpdate,
    GenerateMonthlyRequest,
    InvoiceResponse,
    InvoiceStatistics,
    ReminderResult,
)
from rentals.services.invoice_service import InvoiceService, InvoiceError
from rentals.services.payment_service import PaymentError
from rentals.services.pdf_service import PdfService


router = APIRouter(tags=["Invoices"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")


@router.get("", response_model=ApiResponse[PagedResponse[InvoiceResponse]])
async def list_invoices(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    tenant_id: Optional[uuid.UUID] = Query(None),
    room_id: Optional[uuid.UUID] = Query(None),
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    billing_period: Optional[date] = Query(None, description="Any day in the billed month"),
    due_from: Optional[date] = Query(None),
    due_to: Optional[date] = Query(None),
    search: Optional[str] = Query(None, description="Search invoice number, tenant or room"),
    is_overdue: Optional[bool] = Query(None),
    sort_by: str = Query("issue_date"),
    sort_desc: bool = Query(True),
):
    """
    Get paginated list of invoices.
    """
    invoices, total = await InvoiceService(db).get_invoices(
        tenant_id=tenant_id,
        room_id=room_id,
        status=invoice_status,
        billing_period=billing_period,
        due_from=due_from,
        due_to=due_to,
        search=search,
        is_overdue=is_overdue,
        sort_by=sort_by,
        sort_desc=sort_desc,
        skip=(page - 1) * size,
        limit=size,
    )
    items = [InvoiceResponse.from_invoice(invoice) for invoice in invoices]
    return ApiResponse.ok(PagedResponse.build(items, total, page, size))


@router.get("/overdue", response_model=ApiResponse[List[InvoiceResponse]])
async def overdue_invoices(db: DB, current_user: CurrentUser):
    invoices = await InvoiceService(db).get_overdue_invoices()
    return ApiResponse.ok([InvoiceResponse.from_invoice(i) for i in invoices])


@router.get("/tenant/{tenant_id}", response_model=ApiResponse[List[InvoiceResponse]])
async def invoices_by_tenant(tenant_id: uuid.UUID, db: DB, current_user: CurrentUser):
    invoices = await InvoiceService(db).get_invoices_by_tenant(tenant_id)
    return ApiResponse.ok([InvoiceResponse.from_invoice(i) for i in invoices])


@router.get("/statistics", response_model=ApiResponse[InvoiceStatistics], dependencies=[ManagerOnly])
async def invoice_statistics(db: DB):
    stats = await InvoiceService(db).get_statistics()
    return ApiResponse.ok(InvoiceStatistics(**stats))


@router.post("/generate-monthly", response_model=ApiResponse[List[InvoiceResponse]], dependencies=[ManagerOnly])
async def generate_monthly(data: GenerateMonthlyRequest, db: DB):
    """
    Bill every active tenant with a room for the given month.
    Tenants already billed for that month are skipped.
    Requires: MANAGER
    """
    try:
        invoices = await InvoiceService(db).generate_monthly_invoices(data.billing_period)
    except InvoiceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return ApiResponse.ok(
        [InvoiceResponse.from_invoice(i) for i in invoices],
        message=f"Generated {len(invoices)} invoices",
    )


@router.post("/send-reminders", response_model=ApiResponse[ReminderResult], dependencies=[ManagerOnly])
async def send_reminders(db: DB):
    result = await InvoiceService(db).send_payment_reminders()
    return ApiResponse.ok(ReminderResult(**result), message=f"{result['reminders_sent']} reminders sent")


@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceResponse])
async def get_invoice(invoice_id: uuid.UUID, db: DB, current_user: CurrentUser):
    invoice = await InvoiceService(db).get_invoice_by_id(invoice_id)
    if not invoice:
        raise _not_found()
    return ApiResponse.ok(InvoiceResponse.from_invoice(invoice))


@router.get("/{invoice_id}/export-pdf")
async def export_invoice_pdf(invoice_id: uuid.UUID, db: DB, current_user: CurrentUser):
    """Download the invoice as a PDF document."""
    content = await PdfService(db).generate_invoice_pdf(invoice_id)
    if content is None:
        raise _not_found()

    invoice = await InvoiceService(db).get_invoice_by_id(invoice_id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice.invoice_number}.pdf"'},
    )


@router.post(
    "",
    response_model=ApiResponse[InvoiceResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def create_invoice(data: InvoiceCreate, db: DB):
    """
    Create an invoice for the tenant's current room.
    Requires: STAFF
    """
    try:
        invoice = await InvoiceService(db).create_invoice(data.model_dump())
    except InvoiceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return ApiResponse.ok(InvoiceResponse.from_invoice(invoice), message="Invoice created successfully")


@router.put("/{invoice_id}", response_model=ApiResponse[InvoiceResponse], dependencies=[StaffOnly])
async def update_invoice(invoice_id: uuid.UUID, data: InvoiceUpdate, db: DB):
    try:
        invoice = await InvoiceService(db).update_invoice(invoice_id, data.model_dump(exclude_unset=True))
    except InvoiceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not invoice:
        raise _not_found()
    return ApiResponse.ok(InvoiceResponse.from_invoice(invoice), message="Invoice updated successfully")


@router.delete("/{invoice_id}", response_model=ApiResponse[None], dependencies=[AdminOnly])
async def delete_invoice(invoice_id: uuid.UUID, db: DB):
    try:
        deleted = await InvoiceService(db).delete_invoice(invoice_id)
    except InvoiceError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not deleted:
        raise _not_found()
    return ApiResponse.ok(message="Invoice deleted successfully")


@router.post("/{invoice_id}/mark-paid", response_model=ApiResponse[InvoiceResponse], dependencies=[StaffOnly])
async def mark_paid(
    invoice_id: uuid.UUID,
    db: DB,
    current_user: CurrentUser,
    method: PaymentMethod = Query(PaymentMethod.CASH, description="Method of the settling payment"),
):
    """
    Record a payment for the full remaining balance.
    Requires: STAFF
    """
    try:
        invoice = await InvoiceService(db).mark_as_paid(invoice_id, method=method, recorded_by_id=current_user.id)
    except (InvoiceError, PaymentError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not invoice:
        raise _not_found()
    return ApiResponse.ok(InvoiceResponse.from_invoice(invoice), message="Invoice marked as paid")
