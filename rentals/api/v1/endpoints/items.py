from typing import Optional, List
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from rentals.api.deps import DB, CurrentUser, StaffOnly, AdminOnly
from rentals.schemas.base import ApiResponse, PagedResponse
from rentals.schemas.item import ItemCreate, ItemUpdate, ItemResponse
from rentals.services.item_service import ItemService, ItemError


router = APIRouter(tags=["Items"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")


@router.get("", response_model=ApiResponse[PagedResponse[ItemResponse]])
async def list_items(
    db: DB,
    current_user: CurrentUser,
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(20, ge=1, le=100, description="Page size"),
    search: Optional[str] = Query(None, description="Search code, name or description"),
    category: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    sort_by: str = Query("name"),
    sort_desc: bool = Query(False),
):
    items, total = await ItemService(db).get_items(
        search=search,
        category=category,
        is_active=is_active,
        sort_by=sort_by,
        sort_desc=sort_desc,
        skip=(page - 1) * size,
        limit=size,
    )
    return ApiResponse.ok(PagedResponse.build([ItemResponse.model_validate(i) for i in items], total, page, size))


@router.get("/active", response_model=ApiResponse[List[ItemResponse]])
async def active_items(db: DB, current_user: CurrentUser):
    items = await ItemService(db).get_active_items()
    return ApiResponse.ok([ItemResponse.model_validate(i) for i in items])


@router.get("/categories", response_model=ApiResponse[List[str]])
async def item_categories(db: DB, current_user: CurrentUser):
    return ApiResponse.ok(await ItemService(db).get_categories())


@router.get("/category/{category}", response_model=ApiResponse[List[ItemResponse]])
async def items_by_category(category: str, db: DB, current_user: CurrentUser):
    items = await ItemService(db).get_items_by_category(category)
    return ApiResponse.ok([ItemResponse.model_validate(i) for i in items])


@router.get("/{item_id}", response_model=ApiResponse[ItemResponse])
async def get_item(item_id: uuid.UUID, db: DB, current_user: CurrentUser):
    item = await ItemService(db).get_item_by_id(item_id)
    if not item:
        raise _not_found()
    return ApiResponse.ok(ItemResponse.model_validate(item))


@router.post(
    "",
    response_model=ApiResponse[ItemResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def create_item(data: ItemCreate, db: DB):
    try:
        item = await ItemService(db).create_item(data.model_dump())
    except ItemError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    return ApiResponse.ok(ItemResponse.model_validate(item), message="Item created successfully")


@router.put("/{item_id}", response_model=ApiResponse[ItemResponse], dependencies=[StaffOnly])
async def update_item(item_id: uuid.UUID, data: ItemUpdate, db: DB):
    try:
        item = await ItemService(db).update_item(item_id, data.model_dump(exclude_unset=True))
    except ItemError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    if not item:
        raise _not_found()
    return ApiResponse.ok(ItemResponse.model_validate(item), message="Item updated successfully")


@router.delete("/{item_id}", response_model=ApiResponse[None], dependencies=[AdminOnly])
async def delete_item(item_id: uuid.UUID, db: DB):
    try:
        deleted = await ItemService(db).delete_item(item_id)
    except ItemError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not deleted:
        raise _not_found()
    return ApiResponse.ok(message="Item deleted successfully")
