from typing import Optional, List

from fastapi import APIRouter, HTTPException, status, Query

from rentals.api.deps import DB, ManagerOnly, AdminOnly
from rentals.schemas.base import ApiResponse
from rentals.schemas.localization import (
    LanguageCreate,
    LanguageUpdate,
    LanguageResponse,
    TranslationUpsert,
    BulkTranslationUpsert,
    TranslationResponse,
    TranslationResources,
    BulkResult,
)
from rentals.services.localization_service import LocalizationService, LocalizationError


router = APIRouter(tags=["Localization"])


def _translation_response(translation) -> TranslationResponse:
    response = TranslationResponse.model_validate(translation)
    response.language_code = translation.language.code if translation.language else None
    return response


def _language_not_found(code: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Language '{code}' not found")


# ==================== LANGUAGES ====================

@router.get("/languages", response_model=ApiResponse[List[LanguageResponse]])
async def list_languages(
    db: DB,
    include_inactive: bool = Query(False),
):
    languages = await LocalizationService(db).get_languages(include_inactive)
    return ApiResponse.ok([LanguageResponse.model_validate(lang) for lang in languages])


@router.get("/languages/default", response_model=ApiResponse[LanguageResponse])
async def default_language(db: DB):
    language = await LocalizationService(db).get_default_language()
    if not language:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No default language configured")
    return ApiResponse.ok(LanguageResponse.model_validate(language))


@router.get("/languages/{code}", response_model=ApiResponse[LanguageResponse])
async def get_language(code: str, db: DB):
    language = await LocalizationService(db).get_language_by_code(code)
    if not language:
        raise _language_not_found(code)
    return ApiResponse.ok(LanguageResponse.model_validate(language))


@router.post(
    "/languages",
    response_model=ApiResponse[LanguageResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[AdminOnly],
)
async def create_language(data: LanguageCreate, db: DB):
    try:
        language = await LocalizationService(db).create_language(data.model_dump())
    except LocalizationError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return ApiResponse.ok(LanguageResponse.model_validate(language), message="Language created")


@router.put("/languages/{code}", response_model=ApiResponse[LanguageResponse], dependencies=[AdminOnly])
async def update_language(code: str, data: LanguageUpdate, db: DB):
    try:
        language = await LocalizationService(db).update_language(code, data.model_dump(exclude_unset=True))
    except LocalizationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not language:
        raise _language_not_found(code)
    return ApiResponse.ok(LanguageResponse.model_validate(language), message="Language updated")


@router.delete("/languages/{code}", response_model=ApiResponse[None], dependencies=[AdminOnly])
async def delete_language(code: str, db: DB):
    """Deactivate a language. The default language cannot be removed."""
    try:
        deleted = await LocalizationService(db).delete_language(code)
    except LocalizationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not deleted:
        raise _language_not_found(code)
    return ApiResponse.ok(message="Language deleted")


@router.post("/languages/{code}/set-default", response_model=ApiResponse[LanguageResponse], dependencies=[AdminOnly])
async def set_default_language(code: str, db: DB):
    try:
        language = await LocalizationService(db).set_default_language(code)
    except LocalizationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    if not language:
        raise _language_not_found(code)
    return ApiResponse.ok(LanguageResponse.model_validate(language), message=f"{language.name} is now the default language")


# ==================== TRANSLATIONS ====================

@router.get("/translations/{code}", response_model=ApiResponse[List[TranslationResponse]])
async def list_translations(
    code: str,
    db: DB,
    category: Optional[str] = Query(None),
):
    try:
        translations = await LocalizationService(db).get_translations(code, category)
    except LocalizationError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return ApiResponse.ok([_translation_response(t) for t in translations])


@router.get("/resources/{code}", response_model=ApiResponse[TranslationResources])
async def translation_resources(code: str, db: DB):
    """All strings for a language grouped by category, for client-side i18n."""
    try:
        resources = await LocalizationService(db).get_resources(code)
    except LocalizationError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return ApiResponse.ok(TranslationResources(language_code=code, resources=resources))


@router.get("/translations/{code}/{key}", response_model=ApiResponse[TranslationResponse])
async def get_translation(code: str, key: str, db: DB):
    try:
        translation = await LocalizationService(db).get_translation(code, key)
    except LocalizationError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    if not translation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Translation '{key}' not found")
    return ApiResponse.ok(_translation_response(translation))


@router.put("/translations/{code}", response_model=ApiResponse[TranslationResponse], dependencies=[ManagerOnly])
async def upsert_translation(code: str, data: TranslationUpsert, db: DB):
    """
    Create or replace one translation.
    Requires: MANAGER
    """
    try:
        translation = await LocalizationService(db).upsert_translation(code, data.model_dump())
    except LocalizationError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return ApiResponse.ok(_translation_response(translation), message="Translation saved")


@router.post("/translations/bulk", response_model=ApiResponse[BulkResult], dependencies=[ManagerOnly])
async def bulk_upsert_translations(data: BulkTranslationUpsert, db: DB):
    try:
        keys = await LocalizationService(db).bulk_upsert(data.language_code, data.translations, data.category)
    except LocalizationError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    return ApiResponse.ok(BulkResult(count=len(keys), keys=keys), message=f"{len(keys)} translations saved")


@router.delete("/translations/{code}/{key}", response_model=ApiResponse[None], dependencies=[ManagerOnly])
async def delete_translation(code: str, key: str, db: DB):
    try:
        deleted = await LocalizationService(db).delete_translation(code, key)
    except LocalizationError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Translation '{key}' not found")
    return ApiResponse.ok(message="Translation deleted")


@router.post("/seed", response_model=ApiResponse[BulkResult], dependencies=[AdminOnly])
async def seed_translations(db: DB):
    count = await LocalizationService(db).seed_defaults()
    return ApiResponse.ok(BulkResult(count=count), message=f"{count} default translations added")
