from typing import Optional, Any, Dict
from datetime import date

from fastapi import APIRouter, HTTPException, status, Query, Response

from rentals.api.deps import DB, ManagerOnly
from rentals.schemas.base import ApiResponse
from rentals.services.reporting_service import ReportingService, ReportError


router = APIRouter(tags=["Reports"], dependencies=[ManagerOnly])


def _check_range(from_date: Optional[date], to_date: Optional[date]):
    if from_date and to_date and to_date < from_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="to_date must not be before from_date")


@router.get("/occupancy", response_model=ApiResponse[Dict[str, Any]])
async def occupancy_report(
    db: DB,
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
):
    """
    Occupancy now and per month over the period.
    Requires: MANAGER
    """
    _check_range(from_date, to_date)
    return ApiResponse.ok(await ReportingService(db).get_occupancy_report(from_date, to_date))


@router.get("/monthly-revenue/{year}", response_model=ApiResponse[Dict[str, Any]])
async def monthly_revenue(year: int, db: DB):
    if year < 2000 or year > 2100:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Year must be between 2000 and 2100")
    return ApiResponse.ok(await ReportingService(db).get_monthly_revenue(year))


@router.get("/outstanding-payments", response_model=ApiResponse[Dict[str, Any]])
async def outstanding_payments(db: DB):
    """Unpaid balances with aging buckets."""
    return ApiResponse.ok(await ReportingService(db).get_outstanding_payments())


@router.get("/financial-summary", response_model=ApiResponse[Dict[str, Any]])
async def financial_summary(
    db: DB,
    from_date: date = Query(..., description="Start of the period"),
    to_date: date = Query(..., description="End of the period"),
):
    try:
        summary = await ReportingService(db).get_financial_summary(from_date, to_date)
    except ReportError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return ApiResponse.ok(summary)


@router.get("/tenant-statistics", response_model=ApiResponse[Dict[str, Any]])
async def tenant_statistics(db: DB):
    return ApiResponse.ok(await ReportingService(db).get_tenant_statistics())


@router.get("/room-utilization", response_model=ApiResponse[Dict[str, Any]])
async def room_utilization(db: DB):
    return ApiResponse.ok(await ReportingService(db).get_room_utilization())


@router.get("/payment-method-distribution", response_model=ApiResponse[Dict[str, Any]])
async def payment_method_distribution(
    db: DB,
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
):
    _check_range(from_date, to_date)
    return ApiResponse.ok(await ReportingService(db).get_payment_method_distribution(from_date, to_date))


@router.get("/dashboard-summary", response_model=ApiResponse[Dict[str, Any]])
async def dashboard_summary(db: DB):
    """Headline figures and alerts for the back-office dashboard."""
    return ApiResponse.ok(await ReportingService(db).get_dashboard_summary())


@router.get("/export/{report_type}")
async def export_report(
    report_type: str,
    db: DB,
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
):
    """
    Download tenants, rooms, invoices or payments as CSV.
    Requires: MANAGER
    """
    _check_range(from_date, to_date)
    try:
        content = await ReportingService(db).export_csv(report_type, from_date, to_date)
    except ReportError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    filename = f"{report_type.lower()}_{date.today():%Y%m%d}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
