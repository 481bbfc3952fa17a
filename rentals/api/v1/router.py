from fastapi import APIRouter

from rentals.api.v1.endpoints import (
    # Access Control
    auth,
    users,
    # Property
    rooms,
    tenants,
    # Billing
    invoices,
    payments,
    items,
    # Reporting
    reports,
    # Administration
    localization,
    system,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Access Control ====================
api_router.include_router(
    auth.router,
    prefix="/auth"
)

api_router.include_router(
    users.router,
    prefix="/users"
)

# ==================== Property ====================
api_router.include_router(
    rooms.router,
    prefix="/rooms"
)

api_router.include_router(
    tenants.router,
    prefix="/tenants"
)

# ==================== Billing ====================
api_router.include_router(
    invoices.router,
    prefix="/invoices"
)

api_router.include_router(
    payments.router,
    prefix="/payments"
)

api_router.include_router(
    items.router,
    prefix="/items"
)

# ==================== Reporting ====================
api_router.include_router(
    reports.router,
    prefix="/reports"
)

# ==================== Administration ====================
api_router.include_router(
    localization.router,
    prefix="/localization"
)

api_router.include_router(
    system.router,
    prefix="/system"
)
