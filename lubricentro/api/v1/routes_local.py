# lubricentro/api/v1/routes_local.py
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from lubricentro.api.deps import get_cache
from lubricentro.core.errors import ValidationError
from lubricentro.domain.offline.cache import OfflineCache
from lubricentro.domain.offline.schemas import StoreSettings, ValidationReport

router = APIRouter(prefix="/api/v1/local", tags=["local"])


@router.get("/validate", response_model=ValidationReport)
async def validate_endpoint(cache: OfflineCache = Depends(get_cache)):
    return cache.validate_local_data()


@router.get("/export")
async def export_endpoint(cache: OfflineCache = Depends(get_cache)):
    return cache.export_local_data()


@router.post("/import")
async def import_endpoint(
    payload: Dict[str, Any] = Body(...),
    cache: OfflineCache = Depends(get_cache),
):
    success, message = cache.import_local_data(payload)
    if not success:
        raise ValidationError(message)
    return {"detail": message}


@router.get("/settings")
async def get_settings_endpoint(cache: OfflineCache = Depends(get_cache)):
    return cache.get_settings().model_dump(by_alias=True)


@router.put("/settings")
async def save_settings_endpoint(payload: StoreSettings, cache: OfflineCache = Depends(get_cache)):
    cache.save_settings(payload)
    return cache.get_settings().model_dump(by_alias=True)
