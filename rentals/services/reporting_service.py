"""Management reports and CSV exports.

Reports are computed over the current rows in Python; amounts are returned
as floats so the dicts serialize directly into the API envelope.
"""
from typing import Dict, List, Optional
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
import calendar
import csv
import io
import logging

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.models.invoice import Invoice, InvoiceStatus, OPEN_STATUSES
from rentals.models.payment import Payment
from rentals.models.room import Room, RoomStatus
from rentals.models.tenant import Tenant


logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Column headers of the CSV exports, in output order
EXPORT_HEADERS = {
    "tenants": [
        "Id", "FirstName", "LastName", "Email", "PhoneNumber", "RoomNumber", "MonthlyRent",
        "SecurityDeposit", "IsActive", "ContractStart", "ContractEnd", "CreatedAt",
    ],
    "rooms": [
        "Id", "RoomNumber", "RoomType", "Floor", "Status", "MonthlyRent", "CurrentTenant",
        "IsOccupied", "CreatedAt",
    ],
    "invoices": [
        "Id", "InvoiceNumber", "TenantName", "RoomNumber", "MonthlyRent", "AdditionalCharges",
        "Discount", "TotalAmount", "PaidAmount", "RemainingBalance", "Status", "IssueDate", "DueDate",
    ],
    "payments": [
        "Id", "PaymentReference", "TenantName", "InvoiceNumber", "Amount", "PaymentMethod",
        "PaymentDate", "IsVerified", "Description",
    ],
}


class ReportError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


def percent(part, whole) -> float:
    if not whole:
        return 0.0
    return round(float(part) / float(whole) * 100, 2)


def age_group(age: int) -> str:
    if age < 25:
        return "Under 25"
    if age < 35:
        return "25-34"
    if age < 45:
        return "35-44"
    if age < 55:
        return "45-54"
    if age < 65:
        return "55-64"
    return "65+"


def years_between(born: date, today: date) -> int:
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def _fmt_date(value: Optional[date]) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d")


class ReportingService:
    """Read-only reporting over rooms, tenants, invoices and payments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _rooms(self) -> List[Room]:
        stmt = select(Room).options(selectinload(Room.tenants)).order_by(Room.room_number)
        return list((await self.db.execute(stmt)).scalars().all())

    async def _tenants(self) -> List[Tenant]:
        stmt = select(Tenant).options(selectinload(Tenant.room)).order_by(Tenant.last_name)
        return list((await self.db.execute(stmt)).scalars().all())

    async def _invoices(self, issued_from: Optional[date] = None, issued_to: Optional[date] = None) -> List[Invoice]:
        stmt = select(Invoice).options(selectinload(Invoice.tenant), selectinload(Invoice.room))
        if issued_from:
            stmt = stmt.where(Invoice.issue_date >= issued_from)
        if issued_to:
            stmt = stmt.where(Invoice.issue_date <= issued_to)
        return list((await self.db.execute(stmt.order_by(Invoice.issue_date))).scalars().all())

    async def _payments(self, paid_from: Optional[date] = None, paid_to: Optional[date] = None) -> List[Payment]:
        stmt = select(Payment).options(selectinload(Payment.invoice).selectinload(Invoice.tenant))
        if paid_from:
            stmt = stmt.where(Payment.payment_date >= paid_from)
        if paid_to:
            stmt = stmt.where(Payment.payment_date <= paid_to)
        return list((await self.db.execute(stmt.order_by(Payment.payment_date))).scalars().all())

    # ==================== REPORTS ====================

    async def get_occupancy_report(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None
    ) -> Dict:
        """Current occupancy plus occupied rooms per month over the period (default: last 12 months)."""
        today = date.today()
        end = to_date or today
        start = from_date or (end - timedelta(days=365))

        rooms = await self._rooms()
        tenants = await self._tenants()
        total_rooms = len(rooms)
        occupied_now = sum(1 for room in rooms if room.status == RoomStatus.RENTED.value)

        monthly = []
        cursor = start.replace(day=1)
        while cursor <= end:
            month_end = cursor.replace(day=calendar.monthrange(cursor.year, cursor.month)[1])
            occupied = len({
                t.room_id for t in tenants
                if t.is_active and t.room_id and t.contract_start_date
                and t.contract_start_date <= month_end
                and (t.contract_end_date is None or t.contract_end_date >= cursor)
            })
            monthly.append({
                "period": f"{cursor:%Y-%m}",
                "occupied_rooms": occupied,
                "occupancy_rate": percent(occupied, total_rooms),
            })
            cursor = (month_end + timedelta(days=1))

        return {
            "from_date": start.isoformat(),
            "to_date": end.isoformat(),
            "total_rooms": total_rooms,
            "current_occupancy": occupied_now,
            "current_occupancy_rate": percent(occupied_now, total_rooms),
            "monthly_occupancy": monthly,
            "average_occupancy_rate": round(
                sum(m["occupancy_rate"] for m in monthly) / len(monthly), 2
            ) if monthly else 0.0,
        }

    async def get_monthly_revenue(self, year: int) -> Dict:
        """Billed, collected and outstanding amounts for each month of the year."""
        invoices = [
            i for i in await self._invoices(date(year, 1, 1), date(year, 12, 31))
            if i.status != InvoiceStatus.CANCELLED.value
        ]
        payments = await self._payments(date(year, 1, 1), date(year, 12, 31))

        months = []
        for month in range(1, 13):
            billed = [i for i in invoices if i.issue_date.month == month]
            paid = [p for p in payments if p.payment_date.month == month]
            months.append({
                "month": month,
                "month_name": calendar.month_name[month],
                "billed": float(sum((i.total_amount for i in billed), ZERO)),
                "collected": float(sum((p.amount for p in paid), ZERO)),
                "outstanding": float(sum((i.remaining_balance for i in billed), ZERO)),
                "invoice_count": len(billed),
                "payment_count": len(paid),
            })

        total_collected = sum(m["collected"] for m in months)
        by_collected = sorted(months, key=lambda m: m["collected"])
        return {
            "year": year,
            "total_billed": sum(m["billed"] for m in months),
            "total_collected": total_collected,
            "total_outstanding": sum(m["outstanding"] for m in months),
            "average_monthly_revenue": round(total_collected / 12, 2),
            "total_invoices": len(invoices),
            "total_payments": len(payments),
            "monthly_breakdown": months,
            "highest_revenue_month": by_collected[-1]["month_name"],
            "lowest_revenue_month": by_collected[0]["month_name"],
        }

    async def get_outstanding_payments(self) -> Dict:
        """Overdue and upcoming balances with an aging analysis of the overdue ones."""
        today = date.today()
        horizon = today + timedelta(days=30)
        open_invoices = [
            i for i in await self._invoices()
            if i.status in OPEN_STATUSES and i.remaining_balance > 0
        ]

        def row(invoice: Invoice) -> Dict:
            return {
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "tenant_name": invoice.tenant.full_name,
                "room_number": invoice.room.room_number,
                "remaining_balance": float(invoice.remaining_balance),
                "due_date": invoice.due_date.isoformat(),
                "status": invoice.status,
            }

        overdue = []
        upcoming = []
        aging = {"0-30": 0, "31-60": 0, "61-90": 0, "90+": 0}
        for invoice in sorted(open_invoices, key=lambda i: i.due_date):
            if invoice.due_date < today:
                days = (today - invoice.due_date).days
                overdue.append({**row(invoice), "days_overdue": days})
                if days <= 30:
                    aging["0-30"] += 1
                elif days <= 60:
                    aging["31-60"] += 1
                elif days <= 90:
                    aging["61-90"] += 1
                else:
                    aging["90+"] += 1
            elif invoice.due_date <= horizon:
                upcoming.append({**row(invoice), "days_until_due": (invoice.due_date - today).days})

        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "summary": {
                "total_outstanding_amount": float(sum((i.remaining_balance for i in open_invoices), ZERO)),
                "total_overdue_amount": sum(r["remaining_balance"] for r in overdue),
                "total_upcoming_amount": sum(r["remaining_balance"] for r in upcoming),
                "overdue_count": len(overdue),
                "upcoming_count": len(upcoming),
            },
            "overdue_invoices": overdue,
            "upcoming_invoices": upcoming,
            "aging": aging,
        }

    async def get_financial_summary(self, from_date: date, to_date: date) -> Dict:
        if to_date < from_date:
            raise ReportError("to_date must not be before from_date")

        invoices = [
            i for i in await self._invoices(from_date, to_date)
            if i.status != InvoiceStatus.CANCELLED.value
        ]
        payments = await self._payments(from_date, to_date)
        tenants = await self._tenants()

        billed = sum((i.total_amount for i in invoices), ZERO)
        collected = sum((p.amount for p in payments), ZERO)
        verified = sum((p.amount for p in payments if p.is_verified), ZERO)
        outstanding = sum((i.remaining_balance for i in invoices), ZERO)
        deposits = sum((
            t.security_deposit for t in tenants
            if t.is_active and t.contract_start_date and from_date <= t.contract_start_date <= to_date
        ), ZERO)

        periods: Dict[str, Dict] = {}
        for invoice in invoices:
            entry = periods.setdefault(f"{invoice.issue_date:%Y-%m}", {
                "total_invoiced": ZERO, "paid_amount": ZERO, "outstanding_amount": ZERO, "invoice_count": 0,
            })
            entry["total_invoiced"] += invoice.total_amount
            entry["paid_amount"] += invoice.paid_amount
            entry["outstanding_amount"] += invoice.remaining_balance
            entry["invoice_count"] += 1

        breakdown = [
            {
                "period": period,
                "total_invoiced": float(entry["total_invoiced"]),
                "paid_amount": float(entry["paid_amount"]),
                "outstanding_amount": float(entry["outstanding_amount"]),
                "invoice_count": entry["invoice_count"],
                "collection_rate": percent(entry["paid_amount"], entry["total_invoiced"]),
            }
            for period, entry in sorted(periods.items())
        ]

        return {
            "from_date": from_date.isoformat(),
            "to_date": to_date.isoformat(),
            "total_billed": float(billed),
            "total_collected": float(collected),
            "verified_collected": float(verified),
            "total_outstanding": float(outstanding),
            "collection_rate": percent(billed - outstanding, billed),
            "security_deposits_received": float(deposits),
            "total_invoices": len(invoices),
            "total_payments": len(payments),
            "monthly_breakdown": breakdown,
        }

    async def get_tenant_statistics(self) -> Dict:
        today = date.today()
        tenants = await self._tenants()
        active = [t for t in tenants if t.is_active]
        assigned = [t for t in active if t.room_id]

        age_groups: Dict[str, int] = {}
        for tenant in active:
            if tenant.date_of_birth:
                group = age_group(years_between(tenant.date_of_birth, today))
                age_groups[group] = age_groups.get(group, 0) + 1

        stays = [
            ((min(t.contract_end_date, today) if t.contract_end_date else today) - t.contract_start_date).days
            for t in tenants
            if t.contract_start_date and t.contract_start_date <= today
        ]
        cutoff = datetime.now(timezone.utc) - timedelta(days=30)

        def created_recently(tenant: Tenant) -> bool:
            created = tenant.created_at
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            return created >= cutoff

        def expiring(days: int) -> int:
            limit = today + timedelta(days=days)
            return sum(1 for t in active if t.contract_end_date and today <= t.contract_end_date <= limit)

        rents = [t.monthly_rent for t in active]
        deposits = [t.security_deposit for t in active]
        return {
            "total_tenants": len(tenants),
            "active_tenants": len(active),
            "inactive_tenants": len(tenants) - len(active),
            "assigned_tenants": len(assigned),
            "unassigned_tenants": len(active) - len(assigned),
            "contracts_expiring_30_days": expiring(30),
            "contracts_expiring_90_days": expiring(90),
            "new_tenants_last_30_days": sum(1 for t in tenants if created_recently(t)),
            "age_groups": age_groups,
            "average_stay_days": round(sum(stays) / len(stays), 1) if stays else 0.0,
            "total_monthly_rent": float(sum(rents, ZERO)),
            "average_monthly_rent": round(float(sum(rents, ZERO)) / len(rents), 2) if rents else 0.0,
            "total_security_deposits": float(sum(deposits, ZERO)),
            "assignment_rate": percent(len(assigned), len(active)),
            "activity_rate": percent(len(active), len(tenants)),
        }

    async def get_room_utilization(self) -> Dict:
        rooms = await self._rooms()

        def current_tenant(room: Room) -> Optional[Tenant]:
            return next((t for t in room.tenants if t.is_active), None)

        def group(key) -> List[Dict]:
            buckets: Dict = {}
            for room in rooms:
                buckets.setdefault(key(room), []).append(room)
            rows = []
            for value, members in sorted(buckets.items(), key=lambda kv: (kv[0] is None, kv[0])):
                occupied = [r for r in members if current_tenant(r)]
                revenue = sum((current_tenant(r).monthly_rent for r in occupied), ZERO)
                rows.append({
                    "key": value,
                    "total_rooms": len(members),
                    "occupied_rooms": len(occupied),
                    "vacant_rooms": len(members) - len(occupied),
                    "occupancy_rate": percent(len(occupied), len(members)),
                    "monthly_revenue": float(revenue),
                    "average_rent": round(float(revenue) / len(occupied), 2) if occupied else 0.0,
                })
            return rows

        status_counts: Dict[str, int] = {}
        for room in rooms:
            status_counts[room.status] = status_counts.get(room.status, 0) + 1

        occupied = [r for r in rooms if current_tenant(r)]
        actual = sum((current_tenant(r).monthly_rent for r in occupied), ZERO)
        potential = sum((r.monthly_rent for r in rooms), ZERO)
        return {
            "total_rooms": len(rooms),
            "occupied_rooms": len(occupied),
            "vacant_rooms": len(rooms) - len(occupied),
            "occupancy_rate": percent(len(occupied), len(rooms)),
            "status_distribution": [
                {"status": status, "count": count, "percentage": percent(count, len(rooms))}
                for status, count in sorted(status_counts.items())
            ],
            "by_type": group(lambda r: r.type),
            "by_floor": group(lambda r: r.floor),
            "current_monthly_revenue": float(actual),
            "potential_monthly_revenue": float(potential),
            "revenue_efficiency": percent(actual, potential),
        }

    async def get_payment_method_distribution(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None
    ) -> Dict:
        end = to_date or date.today()
        start = from_date or (end - timedelta(days=365))
        payments = await self._payments(start, end)

        methods: Dict[str, List[Decimal]] = {}
        for payment in payments:
            methods.setdefault(payment.method, []).append(payment.amount)

        total = sum((p.amount for p in payments), ZERO)
        distribution = sorted(
            (
                {
                    "method": method,
                    "count": len(amounts),
                    "total_amount": float(sum(amounts, ZERO)),
                    "average_amount": round(float(sum(amounts, ZERO)) / len(amounts), 2),
                    "percentage": percent(sum(amounts, ZERO), total),
                }
                for method, amounts in methods.items()
            ),
            key=lambda row: row["total_amount"],
            reverse=True,
        )
        return {
            "from_date": start.isoformat(),
            "to_date": end.isoformat(),
            "total_payments": len(payments),
            "total_amount": float(total),
            "average_payment": round(float(total) / len(payments), 2) if payments else 0.0,
            "distribution": distribution,
        }

    async def get_dashboard_summary(self) -> Dict:
        today = date.today()
        month_start = today.replace(day=1)
        last_month_start = (month_start - timedelta(days=1)).replace(day=1)

        rooms = await self._rooms()
        tenants = await self._tenants()
        invoices = [i for i in await self._invoices() if i.status != InvoiceStatus.CANCELLED.value]
        payments = await self._payments(last_month_start, today)

        occupied = sum(1 for r in rooms if r.status == RoomStatus.RENTED.value)
        occupancy_rate = percent(occupied, len(rooms))
        this_month = sum((p.amount for p in payments if p.payment_date >= month_start), ZERO)
        last_month = sum((p.amount for p in payments if p.payment_date < month_start), ZERO)
        overdue = [i for i in invoices if i.is_overdue]
        expiring = sorted(
            (
                t for t in tenants
                if t.is_active and t.contract_end_date
                and today <= t.contract_end_date <= today + timedelta(days=30)
            ),
            key=lambda t: t.contract_end_date,
        )

        alerts = []
        if overdue:
            alerts.append({"type": "warning", "message": f"{len(overdue)} overdue invoice(s)"})
        if expiring:
            alerts.append({"type": "info", "message": f"{len(expiring)} contract(s) expiring in 30 days"})
        if rooms and occupancy_rate < 80:
            alerts.append({"type": "warning", "message": f"Low occupancy rate: {occupancy_rate}%"})

        return {
            "occupancy": {
                "total_rooms": len(rooms),
                "occupied_rooms": occupied,
                "vacant_rooms": sum(1 for r in rooms if r.status == RoomStatus.VACANT.value),
                "occupancy_rate": occupancy_rate,
            },
            "tenants": {
                "total_active": sum(1 for t in tenants if t.is_active),
                "unassigned": sum(1 for t in tenants if t.is_active and not t.room_id),
            },
            "financials": {
                "collected_this_month": float(this_month),
                "collected_last_month": float(last_month),
                "growth_rate": percent(this_month - last_month, last_month),
                "outstanding_amount": float(sum((i.remaining_balance for i in invoices if i.status in OPEN_STATUSES), ZERO)),
                "overdue_invoices": len(overdue),
                "overdue_amount": float(sum((i.remaining_balance for i in overdue), ZERO)),
            },
            "expiring_contracts": [
                {
                    "tenant_name": t.full_name,
                    "room_number": t.room.room_number if t.room else None,
                    "contract_end_date": t.contract_end_date.isoformat(),
                }
                for t in expiring[:5]
            ],
            "alerts": alerts,
        }

    # ==================== CSV EXPORT ====================

    async def export_csv(
        self,
        report_type: str,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None
    ) -> str:
        """
        Render one of the export tables as CSV text.

        Invoices and payments are limited to the date range (default: last 12 months).
        """
        report_type = report_type.lower()
        if report_type not in EXPORT_HEADERS:
            raise ReportError(f"Unknown report type: {report_type}")

        end = to_date or date.today()
        start = from_date or (end - timedelta(days=365))

        if report_type == "tenants":
            rows = [
                [
                    t.id, t.first_name, t.last_name, t.email, t.phone_number,
                    t.room.room_number if t.room else "", t.monthly_rent, t.security_deposit,
                    t.is_active, _fmt_date(t.contract_start_date), _fmt_date(t.contract_end_date),
                    _fmt_date(t.created_at),
                ]
                for t in await self._tenants()
            ]
        elif report_type == "rooms":
            rows = []
            for room in await self._rooms():
                tenant = next((t for t in room.tenants if t.is_active), None)
                rows.append([
                    room.id, room.room_number, room.type, room.floor if room.floor is not None else "",
                    room.status, room.monthly_rent, tenant.full_name if tenant else "",
                    tenant is not None, _fmt_date(room.created_at),
                ])
        elif report_type == "invoices":
            rows = [
                [
                    i.id, i.invoice_number, i.tenant.full_name, i.room.room_number, i.monthly_rent,
                    i.additional_charges, i.discount, i.total_amount, i.paid_amount,
                    i.remaining_balance, i.status, _fmt_date(i.issue_date), _fmt_date(i.due_date),
                ]
                for i in await self._invoices(start, end)
            ]
        else:
            rows = [
                [
                    p.id, p.reference_number or "", p.invoice.tenant.full_name, p.invoice.invoice_number,
                    p.amount, p.method, _fmt_date(p.payment_date), p.is_verified, p.notes or "",
                ]
                for p in await self._payments(start, end)
            ]

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(EXPORT_HEADERS[report_type])
        writer.writerows(rows)

        logger.info(f"Exported {len(rows)} {report_type} rows to CSV")
        return buffer.getvalue()
