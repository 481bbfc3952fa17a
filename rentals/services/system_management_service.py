from typing import Dict, List, Optional
from datetime import datetime, timezone
import json
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.config import settings
from rentals.models.invoice import Invoice
from rentals.models.payment import Payment
from rentals.models.room import Room
from rentals.models.system_setting import SystemSetting, SettingDataType
from rentals.models.tenant import Tenant
from rentals.models.user import User


logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = [
    ("system.name", "Rental Management System", "general", SettingDataType.STRING, "Name of the application"),
    ("system.timezone", "UTC", "general", SettingDataType.STRING, "Default system timezone"),
    ("system.dateFormat", "MM/dd/yyyy", "general", SettingDataType.STRING, "Date format used throughout the system"),
    ("system.currency", "USD", "general", SettingDataType.STRING, "Default currency code"),
    ("system.currencySymbol", "$", "general", SettingDataType.STRING, "Currency symbol to display"),
    ("notification.emailEnabled", "false", "notification", SettingDataType.BOOLEAN, "Enable email notifications"),
    ("notification.smsEnabled", "false", "notification", SettingDataType.BOOLEAN, "Enable SMS notifications"),
    ("notification.invoiceReminderDays", "7", "notification", SettingDataType.NUMBER, "Days before due date to send invoice reminders"),
    ("payment.lateFeeEnabled", "true", "payment", SettingDataType.BOOLEAN, "Enable late payment fees"),
    ("payment.lateFeePercentage", "5", "payment", SettingDataType.NUMBER, "Late fee percentage of total amount"),
    ("payment.gracePeriodDays", "3", "payment", SettingDataType.NUMBER, "Grace period days before late fees apply"),
    ("display.itemsPerPage", "10", "display", SettingDataType.NUMBER, "Number of items to display per page"),
    ("display.theme", "light", "display", SettingDataType.STRING, "Default application theme (light/dark)"),
    ("security.sessionTimeout", "30", "security", SettingDataType.NUMBER, "Session timeout in minutes"),
    ("security.passwordExpiryDays", "90", "security", SettingDataType.NUMBER, "Number of days before password expires"),
]

EXPORT_FIELDS = ("key", "value", "category", "data_type", "description", "is_editable", "is_visible")


class SettingsError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class SystemManagementService:
    """Runtime system settings and system information."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_settings(self, include_hidden: bool = False) -> List[SystemSetting]:
        stmt = select(SystemSetting).order_by(SystemSetting.category, SystemSetting.key)
        if not include_hidden:
            stmt = stmt.where(SystemSetting.is_visible == True)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_settings_grouped(self) -> Dict[str, List[SystemSetting]]:
        grouped: Dict[str, List[SystemSetting]] = {}
        for setting in await self.get_settings():
            grouped.setdefault(setting.category, []).append(setting)
        return grouped

    async def get_setting(self, key: str) -> Optional[SystemSetting]:
        result = await self.db.execute(select(SystemSetting).where(SystemSetting.key == key))
        return result.scalar_one_or_none()

    async def get_settings_by_category(self, category: str) -> List[SystemSetting]:
        stmt = (
            select(SystemSetting)
            .where(func.lower(SystemSetting.category) == category.lower(), SystemSetting.is_visible == True)
            .order_by(SystemSetting.key)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def create_setting(self, data: dict, modified_by: Optional[str] = None) -> SystemSetting:
        if await self.get_setting(data["key"]):
            raise SettingsError(f"Setting '{data['key']}' already exists")

        setting = SystemSetting(**{
            **data,
            "data_type": SettingDataType(data.get("data_type") or SettingDataType.STRING).value,
            "modified_by": modified_by,
        })
        self.db.add(setting)
        await self.db.commit()
        await self.db.refresh(setting)

        logger.info(f"Setting {setting.key} created")
        return setting

    async def update_setting(
        self,
        key: str,
        value: str,
        description: Optional[str] = None,
        modified_by: Optional[str] = None
    ) -> Optional[SystemSetting]:
        setting = await self.get_setting(key)
        if not setting:
            return None

        if not setting.is_editable:
            raise SettingsError(f"Setting '{key}' is not editable")

        setting.value = value
        if description is not None:
            setting.description = description
        setting.modified_by = modified_by
        await self.db.commit()
        await self.db.refresh(setting)

        logger.info(f"Setting {key} updated by {modified_by}")
        return setting

    async def bulk_update(self, values: Dict[str, str], modified_by: Optional[str] = None) -> int:
        """Update many settings at once; unknown and non-editable keys are skipped."""
        if not values:
            return 0

        result = await self.db.execute(select(SystemSetting).where(SystemSetting.key.in_(list(values))))
        updated = 0
        for setting in result.scalars().all():
            if not setting.is_editable:
                logger.warning(f"Bulk update skipped non-editable setting {setting.key}")
                continue
            setting.value = values[setting.key]
            setting.modified_by = modified_by
            updated += 1

        await self.db.commit()
        return updated

    async def delete_setting(self, key: str) -> bool:
        setting = await self.get_setting(key)
        if not setting:
            return False

        if not setting.is_editable:
            raise SettingsError(f"Setting '{key}' cannot be deleted")

        await self.db.delete(setting)
        await self.db.commit()

        logger.info(f"Setting {key} deleted")
        return True

    async def seed_defaults(self) -> int:
        existing = set((await self.db.execute(select(SystemSetting.key))).scalars().all())
        created = 0
        for key, value, category, data_type, description in DEFAULT_SETTINGS:
            if key in existing:
                continue
            self.db.add(SystemSetting(
                key=key,
                value=value,
                category=category,
                data_type=data_type.value,
                description=description,
                modified_by="system",
            ))
            created += 1

        await self.db.commit()
        if created:
            logger.info(f"Seeded {created} default settings")
        return created

    async def export_settings(self) -> str:
        """All settings, hidden ones included, as an indented JSON array."""
        rows = [
            {field: getattr(setting, field) for field in EXPORT_FIELDS}
            for setting in await self.get_settings(include_hidden=True)
        ]
        return json.dumps(rows, indent=2, ensure_ascii=False)

    async def import_settings(self, json_data: str, modified_by: Optional[str] = None) -> int:
        """
        Load settings from an export.

        New keys are created; existing editable keys get the new value and
        description; existing non-editable keys are left untouched.
        """
        try:
            rows = json.loads(json_data)
        except json.JSONDecodeError as e:
            raise SettingsError(f"Invalid settings JSON: {e.msg}")

        if not isinstance(rows, list) or not rows:
            raise SettingsError("Invalid or empty settings data")

        imported = 0
        for row in rows:
            if not isinstance(row, dict) or not row.get("key"):
                raise SettingsError("Every imported setting needs a key")

            setting = await self.get_setting(row["key"])
            if setting is None:
                try:
                    data_type = SettingDataType(row.get("data_type") or SettingDataType.STRING.value).value
                except ValueError:
                    raise SettingsError(f"Unknown data type for setting '{row['key']}'")
                self.db.add(SystemSetting(
                    key=row["key"],
                    value=str(row.get("value", "")),
                    category=row.get("category") or "general",
                    data_type=data_type,
                    description=row.get("description"),
                    is_editable=row.get("is_editable", True),
                    is_visible=row.get("is_visible", True),
                    modified_by=modified_by,
                ))
                imported += 1
            elif setting.is_editable:
                setting.value = str(row.get("value", setting.value))
                setting.description = row.get("description", setting.description)
                setting.modified_by = modified_by
                imported += 1

        await self.db.commit()

        logger.info(f"Imported {imported} settings")
        return imported

    async def get_system_info(self) -> Dict:
        async def count(model) -> int:
            return (await self.db.execute(select(func.count()).select_from(model))).scalar()

        return {
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "database_dialect": self.db.get_bind().dialect.name,
            "server_time": datetime.now(timezone.utc),
            "total_users": await count(User),
            "total_rooms": await count(Room),
            "total_tenants": await count(Tenant),
            "total_invoices": await count(Invoice),
            "total_payments": await count(Payment),
            "total_settings": await count(SystemSetting),
        }
