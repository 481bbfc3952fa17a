from typing import List, Optional, Tuple
import logging
import uuid

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from rentals.models.item import Item
from rentals.models.invoice import InvoiceItem


logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "item_code": Item.item_code,
    "name": Item.name,
    "unit_price": Item.unit_price,
    "category": Item.category,
    "created_at": Item.created_at,
}


class ItemError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ItemService:
    """Service for the billable item catalogue."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_items(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        is_active: Optional[bool] = None,
        sort_by: str = "name",
        sort_desc: bool = False,
        skip: int = 0,
        limit: int = 20
    ) -> Tuple[List[Item], int]:
        filters = []
        if search:
            term = f"%{search.lower()}%"
            filters.append(or_(
                func.lower(Item.item_code).like(term),
                func.lower(Item.name).like(term),
                func.lower(Item.description).like(term),
            ))
        if category:
            filters.append(Item.category == category)
        if is_active is not None:
            filters.append(Item.is_active == is_active)

        sort_column = SORT_COLUMNS.get(sort_by, Item.name)
        stmt = select(Item).where(*filters).order_by(
            sort_column.desc() if sort_desc else sort_column.asc()
        )
        total = (await self.db.execute(select(func.count(Item.id)).where(*filters))).scalar()
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def get_item_by_id(self, item_id: uuid.UUID) -> Optional[Item]:
        result = await self.db.execute(select(Item).where(Item.id == item_id))
        return result.scalar_one_or_none()

    async def get_item_by_code(self, item_code: str) -> Optional[Item]:
        result = await self.db.execute(select(Item).where(Item.item_code == item_code))
        return result.scalar_one_or_none()

    async def get_active_items(self) -> List[Item]:
        stmt = select(Item).where(Item.is_active == True).order_by(Item.category, Item.name)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_items_by_category(self, category: str) -> List[Item]:
        stmt = (
            select(Item)
            .where(Item.category == category, Item.is_active == True)
            .order_by(Item.name)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_categories(self) -> List[str]:
        stmt = (
            select(Item.category)
            .where(Item.category.is_not(None), Item.is_active == True)
            .distinct()
            .order_by(Item.category)
        )
        return [row[0] for row in (await self.db.execute(stmt)).all()]

    async def create_item(self, data: dict) -> Item:
        if await self.get_item_by_code(data["item_code"]):
            raise ItemError(f"Item with code '{data['item_code']}' already exists")

        item = Item(**data)
        self.db.add(item)
        await self.db.commit()
        await self.db.refresh(item)

        logger.info(f"Item {item.item_code} created")
        return item

    async def update_item(self, item_id: uuid.UUID, data: dict) -> Optional[Item]:
        item = await self.get_item_by_id(item_id)
        if not item:
            return None

        new_code = data.get("item_code")
        if new_code and new_code != item.item_code:
            if await self.get_item_by_code(new_code):
                raise ItemError(f"Item with code '{new_code}' already exists")

        for key, value in data.items():
            if value is not None:
                setattr(item, key, value)

        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def delete_item(self, item_id: uuid.UUID) -> bool:
        item = await self.get_item_by_id(item_id)
        if not item:
            return False

        used = (await self.db.execute(
            select(func.count(InvoiceItem.id)).where(InvoiceItem.item_id == item_id)
        )).scalar()
        if used > 0:
            raise ItemError("Item is used on invoices; deactivate it instead")

        await self.db.delete(item)
        await self.db.commit()

        logger.info(f"Item {item.item_code} deleted")
        return True
