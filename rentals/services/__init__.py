# Services module
from rentals.services.auth_service import AuthService
from rentals.services.user_management_service import UserManagementService
from rentals.services.room_service import RoomService
from rentals.services.tenant_service import TenantService
from rentals.services.item_service import ItemService
from rentals.services.invoice_service import InvoiceService
from rentals.services.payment_service import PaymentService

# Reporting & documents
from rentals.services.reporting_service import ReportingService
from rentals.services.pdf_service import PdfService

# Administration
from rentals.services.localization_service import LocalizationService
from rentals.services.system_management_service import SystemManagementService

__all__ = [
    "AuthService",
    "UserManagementService",
    "RoomService",
    "TenantService",
    "ItemService",
    "InvoiceService",
    "PaymentService",
    # Reporting & documents
    "ReportingService",
    "PdfService",
    # Administration
    "LocalizationService",
    "SystemManagementService",
]
