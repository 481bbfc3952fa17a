"""
Base Schema Classes for Pydantic Models

RULE: All response schemas that read from ORM models inherit from BaseResponseSchema.
"""

from decimal import Decimal
from typing import Annotated, Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, PlainSerializer


# Money in, float out (JSON)
DecimalAsFloat = Annotated[Decimal, PlainSerializer(lambda x: float(x), return_type=float, when_used="json")]

T = TypeVar("T")


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas that read from ORM models.

    Usage:
        class RoomResponse(BaseResponseSchema):
            id: UUID
            room_number: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.
    Unknown fields are ignored.
    """
    model_config = ConfigDict(
        extra='ignore',
    )


class BaseUpdateSchema(BaseModel):
    """
    Base class for update/patch schemas.

    All fields are optional; use model_dump(exclude_unset=True).
    """
    model_config = ConfigDict(
        extra='ignore',
    )


class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope returned by every JSON endpoint.

    Usage:
        @router.get("/{id}", response_model=ApiResponse[RoomResponse])
        async def get_room(...):
            return ApiResponse.ok(RoomResponse.model_validate(room))
    """
    success: bool = True
    data: Optional[T] = None
    message: str = "Operation completed successfully"
    errors: Optional[List[str]] = None

    @classmethod
    def ok(cls, data: Any = None, message: str = "Operation completed successfully") -> "ApiResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, message: str, errors: Optional[List[str]] = None) -> "ApiResponse":
        return cls(success=False, data=None, message=message, errors=errors or [message])


class PagedResponse(BaseModel, Generic[T]):
    """Page of results with navigation metadata."""
    items: List[T]
    total: int
    page: int
    size: int
    pages: int
    has_previous: bool
    has_next: bool

    @classmethod
    def build(cls, items: List[Any], total: int, page: int, size: int) -> "PagedResponse":
        pages = (total + size - 1) // size if total > 0 else 1
        return cls(
            items=items,
            total=total,
            page=page,
            size=size,
            pages=pages,
            has_previous=page > 1,
            has_next=page < pages,
        )
