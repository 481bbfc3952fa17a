from pydantic import BaseModel, Field

from rentals.schemas.base import BaseResponseSchema
from typing import Optional, List, Dict
import uuid


class LanguageCreate(BaseModel):
    code: str = Field(..., min_length=2, max_length=10)
    name: str = Field(..., min_length=1, max_length=100)
    native_name: str = Field(..., min_length=1, max_length=100)
    is_default: bool = False
    is_active: bool = True


class LanguageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    native_name: Optional[str] = Field(None, min_length=1, max_length=100)
    is_active: Optional[bool] = None


class LanguageResponse(BaseResponseSchema):
    id: uuid.UUID
    code: str
    name: str
    native_name: str
    is_default: bool
    is_active: bool


class TranslationUpsert(BaseModel):
    key: str = Field(..., min_length=1, max_length=200)
    value: str
    category: str = Field("common", max_length=50)
    description: Optional[str] = Field(None, max_length=500)


class BulkTranslationUpsert(BaseModel):
    """Translations for one language, keyed by translation key."""
    language_code: str
    translations: Dict[str, str]
    category: str = "common"


class TranslationResponse(BaseResponseSchema):
    id: uuid.UUID
    key: str
    value: str
    category: str
    description: Optional[str] = None
    language_code: Optional[str] = None


class TranslationResources(BaseModel):
    """All strings for a language, grouped by category."""
    language_code: str
    resources: Dict[str, Dict[str, str]]


class TranslationValue(BaseModel):
    key: str
    value: str


class BulkResult(BaseModel):
    count: int
    keys: List[str] = []
