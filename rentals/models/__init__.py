# Models module
from rentals.models.role import Role, RoleLevel
from rentals.models.user import User, UserRole
from rentals.models.room import Room, RoomType, RoomStatus
from rentals.models.tenant import Tenant
from rentals.models.item import Item
from rentals.models.invoice import Invoice, InvoiceItem, InvoiceStatus
from rentals.models.payment import Payment, PaymentMethod
from rentals.models.system_setting import SystemSetting, SettingDataType
from rentals.models.localization import Language, Translation

__all__ = [
    "Role",
    "RoleLevel",
    "User",
    "UserRole",
    "Room",
    "RoomType",
    "RoomStatus",
    "Tenant",
    "Item",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "SystemSetting",
    "SettingDataType",
    "Language",
    "Translation",
]
