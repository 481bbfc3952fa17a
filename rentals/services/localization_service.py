from typing import Dict, List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.models.localization import Language, Translation


logger = logging.getLogger(__name__)

DEFAULT_LANGUAGES = [
    {"code": "en", "name": "English", "native_name": "English", "is_default": True},
    {"code": "vi", "name": "Vietnamese", "native_name": "Tiếng Việt", "is_default": False},
]

# Category is the key prefix before the first dot
DEFAULT_TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "en": {
        "common.save": "Save",
        "common.cancel": "Cancel",
        "common.delete": "Delete",
        "common.edit": "Edit",
        "common.add": "Add",
        "common.search": "Search",
        "common.filter": "Filter",
        "common.refresh": "Refresh",
        "common.loading": "Loading...",
        "common.success": "Success",
        "common.error": "Error",
        "common.confirm": "Confirm",
        "common.yes": "Yes",
        "common.no": "No",
        "auth.login": "Login",
        "auth.logout": "Logout",
        "auth.email": "Email",
        "auth.password": "Password",
        "rooms.title": "Rooms",
        "rooms.roomNumber": "Room Number",
        "rooms.roomType": "Room Type",
        "rooms.status": "Status",
        "rooms.price": "Price",
        "rooms.available": "Available",
        "rooms.occupied": "Occupied",
        "tenants.title": "Tenants",
        "tenants.name": "Name",
        "tenants.phone": "Phone",
        "tenants.idCard": "ID Card",
        "invoices.title": "Invoices",
        "invoices.invoiceNumber": "Invoice Number",
        "invoices.amount": "Amount",
        "invoices.dueDate": "Due Date",
        "invoices.paid": "Paid",
        "invoices.unpaid": "Unpaid",
        "dashboard.title": "Dashboard",
        "dashboard.totalRooms": "Total Rooms",
        "dashboard.occupiedRooms": "Occupied Rooms",
        "dashboard.revenue": "Revenue",
    },
    "vi": {
        "common.save": "Lưu",
        "common.cancel": "Hủy",
        "common.delete": "Xóa",
        "common.edit": "Chỉnh sửa",
        "common.add": "Thêm",
        "common.search": "Tìm kiếm",
        "common.filter": "Lọc",
        "common.refresh": "Làm mới",
        "common.loading": "Đang tải...",
        "common.success": "Thành công",
        "common.error": "Lỗi",
        "common.confirm": "Xác nhận",
        "common.yes": "Có",
        "common.no": "Không",
        "auth.login": "Đăng nhập",
        "auth.logout": "Đăng xuất",
        "auth.email": "Email",
        "auth.password": "Mật khẩu",
        "rooms.title": "Phòng",
        "rooms.roomNumber": "Số phòng",
        "rooms.roomType": "Loại phòng",
        "rooms.status": "Trạng thái",
        "rooms.price": "Giá",
        "rooms.available": "Còn trống",
        "rooms.occupied": "Đã thuê",
        "tenants.title": "Người thuê",
        "tenants.name": "Họ tên",
        "tenants.phone": "Điện thoại",
        "tenants.idCard": "CMND/CCCD",
        "invoices.title": "Hóa đơn",
        "invoices.invoiceNumber": "Số hóa đơn",
        "invoices.amount": "Số tiền",
        "invoices.dueDate": "Hạn thanh toán",
        "invoices.paid": "Đã thanh toán",
        "invoices.unpaid": "Chưa thanh toán",
        "dashboard.title": "Tổng quan",
        "dashboard.totalRooms": "Tổng số phòng",
        "dashboard.occupiedRooms": "Phòng đã thuê",
        "dashboard.revenue": "Doanh thu",
    },
}


class LocalizationError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class LocalizationService:
    """Languages and their UI translation strings."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== LANGUAGES ====================

    async def get_languages(self, include_inactive: bool = False) -> List[Language]:
        stmt = select(Language).order_by(Language.is_default.desc(), Language.name)
        if not include_inactive:
            stmt = stmt.where(Language.is_active == True)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_language_by_code(self, code: str) -> Optional[Language]:
        result = await self.db.execute(select(Language).where(Language.code == code.lower()))
        return result.scalar_one_or_none()

    async def get_default_language(self) -> Optional[Language]:
        result = await self.db.execute(
            select(Language).where(Language.is_default == True, Language.is_active == True)
        )
        return result.scalars().first()

    async def _clear_default(self) -> None:
        await self.db.execute(
            update(Language).where(Language.is_default == True).values(is_default=False)
        )

    async def create_language(self, data: dict) -> Language:
        data["code"] = data["code"].lower()
        if await self.get_language_by_code(data["code"]):
            raise LocalizationError(f"Language '{data['code']}' already exists")

        if data.get("is_default"):
            await self._clear_default()

        language = Language(**data)
        self.db.add(language)
        await self.db.commit()
        await self.db.refresh(language)

        logger.info(f"Language {language.code} created")
        return language

    async def update_language(self, code: str, data: dict) -> Optional[Language]:
        language = await self.get_language_by_code(code)
        if not language:
            return None

        if data.get("is_active") is False and language.is_default:
            raise LocalizationError("The default language cannot be deactivated")

        for key, value in data.items():
            if value is not None:
                setattr(language, key, value)

        await self.db.commit()
        await self.db.refresh(language)
        return language

    async def delete_language(self, code: str) -> bool:
        """Soft delete: the language is deactivated, its translations are kept."""
        language = await self.get_language_by_code(code)
        if not language:
            return False

        if language.is_default:
            raise LocalizationError("The default language cannot be deleted")

        language.is_active = False
        await self.db.commit()

        logger.info(f"Language {language.code} deactivated")
        return True

    async def set_default_language(self, code: str) -> Optional[Language]:
        language = await self.get_language_by_code(code)
        if not language:
            return None

        if not language.is_active:
            raise LocalizationError("An inactive language cannot be the default")

        await self._clear_default()
        language.is_default = True
        await self.db.commit()
        await self.db.refresh(language)

        logger.info(f"Default language set to {language.code}")
        return language

    # ==================== TRANSLATIONS ====================

    async def _require_language(self, code: str) -> Language:
        language = await self.get_language_by_code(code)
        if not language:
            raise LocalizationError(f"Language '{code}' not found")
        return language

    async def get_translations(self, code: str, category: Optional[str] = None) -> List[Translation]:
        language = await self._require_language(code)
        stmt = (
            select(Translation)
            .options(selectinload(Translation.language))
            .where(Translation.language_id == language.id)
            .order_by(Translation.category, Translation.key)
        )
        if category:
            stmt = stmt.where(Translation.category == category)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_resources(self, code: str) -> Dict[str, Dict[str, str]]:
        """Translations for a language as {category: {key: value}}."""
        resources: Dict[str, Dict[str, str]] = {}
        for translation in await self.get_translations(code):
            resources.setdefault(translation.category, {})[translation.key] = translation.value
        return resources

    async def get_translation(self, code: str, key: str) -> Optional[Translation]:
        language = await self._require_language(code)
        result = await self.db.execute(
            select(Translation)
            .options(selectinload(Translation.language))
            .where(Translation.language_id == language.id, Translation.key == key)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _upsert(self, language: Language, key: str, value: str, category: str, description: Optional[str] = None) -> Translation:
        result = await self.db.execute(
            select(Translation).where(Translation.language_id == language.id, Translation.key == key)
        )
        translation = result.scalar_one_or_none()
        if translation is None:
            translation = Translation(language_id=language.id, key=key, value=value, category=category, description=description)
            self.db.add(translation)
        else:
            translation.value = value
            translation.category = category
            if description is not None:
                translation.description = description
        return translation

    async def upsert_translation(self, code: str, data: dict) -> Translation:
        language = await self._require_language(code)
        translation = await self._upsert(
            language, data["key"], data["value"], data.get("category") or "common", data.get("description")
        )
        await self.db.commit()

        logger.info(f"Translation {language.code}:{translation.key} saved")
        return await self.get_translation(code, data["key"])

    async def bulk_upsert(self, code: str, translations: Dict[str, str], category: str = "common") -> List[str]:
        language = await self._require_language(code)
        for key, value in translations.items():
            await self._upsert(language, key, value, category)
        await self.db.commit()

        logger.info(f"Saved {len(translations)} translations for {language.code}")
        return list(translations)

    async def delete_translation(self, code: str, key: str) -> bool:
        translation = await self.get_translation(code, key)
        if not translation:
            return False

        await self.db.delete(translation)
        await self.db.commit()
        return True

    # ==================== SEED ====================

    async def seed_defaults(self) -> int:
        """Create English and Vietnamese with their default strings; existing keys are left alone."""
        created = 0
        has_default = await self.get_default_language() is not None
        for definition in DEFAULT_LANGUAGES:
            language = await self.get_language_by_code(definition["code"])
            if language is None:
                language = Language(**{**definition, "is_default": definition["is_default"] and not has_default})
                self.db.add(language)
                await self.db.flush()

            existing = set((await self.db.execute(
                select(Translation.key).where(Translation.language_id == language.id)
            )).scalars().all())
            for key, value in DEFAULT_TRANSLATIONS[definition["code"]].items():
                if key not in existing:
                    self.db.add(Translation(
                        language_id=language.id, key=key, value=value, category=key.split(".", 1)[0]
                    ))
                    created += 1

        await self.db.commit()
        if created:
            logger.info(f"Seeded {created} translations")
        return created
